"""
Import context: catalog metadata loaded once per import run.

Holds the product attribute definitions, the store view map, the category
tree and the store settings the engines need. Engines read it; only the
category importer adds to it, when it creates categories.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import ImportConfig
from .data import CategoryInfo
from .exceptions import ImportConfigurationError
from .models import (
    PRODUCT_VALUE_TABLES, ENTITY_TYPE_CATEGORY, ENTITY_TYPE_PRODUCT,
    AttributeSet, CategoryEntity, CategoryVarchar, ConfigData, EavAttribute, StoreView,
)
from .serializer import ValueSerializer, create_serializer

logger = logging.getLogger(__name__)

TREE_ROOT_ID = 1

CONFIG_PRODUCT_URL_SUFFIX = 'catalog/seo/product_url_suffix'
CONFIG_SAVE_REWRITES_HISTORY = 'catalog/seo/save_rewrites_history'


@dataclass
class AttributeInfo:
    attribute_id: int
    code: str
    backend_type: str
    frontend_input: Optional[str] = None

    @property
    def table(self):
        return PRODUCT_VALUE_TABLES[self.backend_type]


@dataclass
class ImportContext:
    product_attributes: Dict[str, AttributeInfo]
    store_view_map: Dict[str, int]
    category_info: Dict[int, CategoryInfo]
    category_attribute_ids: Dict[str, int]
    product_url_suffix: str = '.html'
    save_rewrites_history: bool = True
    serializer: ValueSerializer = None
    default_attribute_set_id: Optional[int] = None

    def attribute(self, code: str) -> AttributeInfo:
        return self.product_attributes[code]

    def concrete_store_ids(self):
        """All store view ids except the global one (0)."""
        return sorted(store_id for store_id in self.store_view_map.values() if store_id != 0)

    def add_category(self, info: CategoryInfo) -> None:
        self.category_info[info.category_id] = info

    @classmethod
    def load(cls, session: Session, config: ImportConfig) -> "ImportContext":
        """Read all metadata from the database."""
        attributes = {}
        category_attribute_ids = {}
        for attribute in session.execute(select(EavAttribute)).scalars():
            if attribute.entity_type == ENTITY_TYPE_PRODUCT and attribute.backend_type in PRODUCT_VALUE_TABLES:
                attributes[attribute.attribute_code] = AttributeInfo(
                    attribute.attribute_id, attribute.attribute_code, attribute.backend_type, attribute.frontend_input
                )
            elif attribute.entity_type == ENTITY_TYPE_CATEGORY:
                category_attribute_ids[attribute.attribute_code] = attribute.attribute_id

        for required in ('name', 'url_key'):
            if required not in attributes:
                raise ImportConfigurationError(f"Product attribute '{required}' is not defined")
        if 'url_key' not in category_attribute_ids:
            raise ImportConfigurationError("Category attribute 'url_key' is not defined")

        store_view_map = {code: store_id for code, store_id in session.execute(select(StoreView.code, StoreView.store_id))}

        settings = {path: value for path, value in session.execute(
            select(ConfigData.path, ConfigData.value).where(
                ConfigData.scope == 'default',
                ConfigData.path.in_([CONFIG_PRODUCT_URL_SUFFIX, CONFIG_SAVE_REWRITES_HISTORY])
            )
        )}
        url_suffix = settings.get(CONFIG_PRODUCT_URL_SUFFIX)
        if url_suffix is None:
            url_suffix = '.html'

        if config.save_rewrites_history is not None:
            save_history = config.save_rewrites_history
        else:
            save_history = settings.get(CONFIG_SAVE_REWRITES_HISTORY, '1') == '1'

        context = cls(
            product_attributes=attributes,
            store_view_map=store_view_map,
            category_info=load_category_info(session, category_attribute_ids['url_key']),
            category_attribute_ids=category_attribute_ids,
            product_url_suffix=url_suffix,
            save_rewrites_history=save_history,
            serializer=create_serializer(session, config.magento_version),
            default_attribute_set_id=session.execute(
                select(func.min(AttributeSet.attribute_set_id)).where(AttributeSet.entity_type == ENTITY_TYPE_PRODUCT)
            ).scalar(),
        )
        logger.info(
            f"Import context loaded: {len(attributes)} attributes, {len(store_view_map)} store views, "
            f"{len(context.category_info)} categories, suffix '{url_suffix}', history {save_history}, "
            f"metadata {type(context.serializer).__name__}"
        )
        return context


def split_category_path(path: str):
    """'1/2/5' -> [2, 5]: category ids below the tree root."""
    ids = [int(part) for part in path.split('/') if part]
    if ids and ids[0] == TREE_ROOT_ID:
        ids = ids[1:]
    return ids


def load_category_info(session: Session, url_key_attribute_id: int) -> Dict[int, CategoryInfo]:
    info = {}
    for category_id, path in session.execute(select(CategoryEntity.entity_id, CategoryEntity.path)):
        if category_id == TREE_ROOT_ID:
            continue
        info[category_id] = CategoryInfo(category_id, split_category_path(path))

    url_keys = session.execute(
        select(CategoryVarchar.entity_id, CategoryVarchar.store_id, CategoryVarchar.value)
        .where(CategoryVarchar.attribute_id == url_key_attribute_id)
    )
    for category_id, store_id, url_key in url_keys:
        if category_id in info and url_key is not None:
            info[category_id].url_keys[store_id] = url_key
    return info
