"""Type Transition Handler: detects product type changes and cleans up after the old type."""
import logging
from typing import List, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import ImportConfig, ProductTypeChange
from ..context import ImportContext
from ..data import (
    PLACEHOLDER_NAME, BundleProduct, ConfigurableProduct, DownloadableProduct, GroupedProduct, Product,
    SimpleProduct, VirtualProduct,
)
from ..models import ProductEntity
from .relation_storage import RelationStorage

logger = logging.getLogger(__name__)

# Old types whose child rows would be lost in a conversion
TYPES_WITH_CHILD_DATA = (GroupedProduct.TYPE, BundleProduct.TYPE, ConfigurableProduct.TYPE, DownloadableProduct.TYPE)

# New types that drop data of the old type (weight)
TYPES_DROPPING_DATA = (VirtualProduct.TYPE,)


class ProductTypeChanger:

    def __init__(self, session: Session, context: ImportContext, relation_storage: RelationStorage):
        self.session = session
        self.context = context
        self.relation_storage = relation_storage

    def _placeholder_ids(self, product_ids: List[int]) -> Set[int]:
        """Ids of stored products that are still placeholders."""
        name = self.context.attribute('name')
        rows = self.session.execute(
            select(name.table.c.entity_id).where(
                name.table.c.attribute_id == name.attribute_id,
                name.table.c.store_id == 0,
                name.table.c.value == PLACEHOLDER_NAME,
                name.table.c.entity_id.in_(product_ids)
            )
        )
        return {entity_id for (entity_id,) in rows}

    def handle_type_changes(self, updated_products: List[Product], config: ImportConfig) -> None:
        if not updated_products:
            return

        product_ids = [product.id for product in updated_products]
        old_types = {
            entity_id: type_id for entity_id, type_id in
            self.session.query(ProductEntity.entity_id, ProductEntity.type_id).filter(
                ProductEntity.entity_id.in_(product_ids)
            ).all()
        }

        changed = [p for p in updated_products if p.id in old_types and old_types[p.id] != p.get_type()]
        if not changed:
            return

        placeholder_ids = set()
        if config.product_type_change == ProductTypeChange.FORBIDDEN:
            placeholder_ids = self._placeholder_ids([p.id for p in changed])

        for product in changed:
            self.convert_product_type(product, old_types[product.id], config, product.id in placeholder_ids)

    def convert_product_type(self, product: Product, old_type: str, config: ImportConfig,
                             is_placeholder: bool = False) -> None:
        new_type = product.get_type()

        if config.product_type_change == ProductTypeChange.FORBIDDEN:
            # placeholders are created as simple products and get their real type when replaced
            if not is_placeholder and product.global_store_view().get_name() != PLACEHOLDER_NAME:
                product.add_error("Type conversion is not allowed", 'type')
                return

        if config.product_type_change == ProductTypeChange.NON_DESTRUCTIVE:
            if old_type in TYPES_WITH_CHILD_DATA or new_type in TYPES_DROPPING_DATA:
                product.add_error(f"Type conversion losing data from {old_type} to {new_type} is not allowed", 'type')
                return

        # remove data of the old type
        if old_type in (SimpleProduct.TYPE, VirtualProduct.TYPE):
            pass
        elif old_type == DownloadableProduct.TYPE:
            self.relation_storage.remove_links_and_samples([product])
        elif old_type == GroupedProduct.TYPE:
            self.relation_storage.remove_linked_products([product])
        elif old_type == BundleProduct.TYPE:
            self.relation_storage.remove_options([product])
        elif old_type == ConfigurableProduct.TYPE:
            self.relation_storage.remove_linked_variants([product])
        else:
            product.add_error(f"Type conversion from {old_type} to {new_type} is not supported", 'type')
            return

        # prepare for the new type
        if new_type == VirtualProduct.TYPE:
            for store_view in product.get_store_views():
                store_view.set_weight(None)

        logger.info(f"Product {product.sku} ({product.id}) changes type from {old_type} to {new_type}")
