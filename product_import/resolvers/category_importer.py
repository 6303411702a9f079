"""
Category Importer: turns category name paths into category ids.

A path starts with the name of a root category, e.g.
"Default Category/Men/Shoes". Missing categories are created when the
import allows it.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..context import ImportContext, TREE_ROOT_ID, split_category_path
from ..data import CategoryInfo
from ..models import CategoryEntity, CategoryVarchar
from ..utils import generate_slug

logger = logging.getLogger(__name__)


class CategoryImporter:

    def __init__(self, session: Session, context: ImportContext):
        self.session = session
        self.context = context
        self._children: Optional[Dict[Tuple[int, str], int]] = None
        # ids created since the last commit
        self._created: List[int] = []

    def _name_attribute_id(self) -> int:
        return self.context.category_attribute_ids['name']

    def _load_children(self) -> Dict[Tuple[int, str], int]:
        """(parent id, global name) -> category id for the whole tree."""
        rows = self.session.query(CategoryEntity.entity_id, CategoryEntity.parent_id, CategoryVarchar.value).join(
            CategoryVarchar, CategoryVarchar.entity_id == CategoryEntity.entity_id
        ).filter(
            CategoryVarchar.attribute_id == self._name_attribute_id(),
            CategoryVarchar.store_id == 0
        ).all()
        return {(parent_id, name): category_id for category_id, parent_id, name in rows}

    def import_category_paths(self, paths: List[str], auto_create: bool,
                              separator: str) -> Tuple[List[int], Optional[str]]:
        """Ids of all paths; paths that cannot be resolved are collected in the error."""
        if self._children is None:
            self._children = self._load_children()

        ids = []
        errors = []
        for path in paths:
            category_id, error = self.import_category_path(path, auto_create, separator)
            if error is None:
                ids.append(category_id)
            else:
                errors.append(error)

        return ids, ('; '.join(errors) if errors else None)

    def import_category_path(self, path: str, auto_create: bool, separator: str) -> Tuple[Optional[int], Optional[str]]:
        names = [name.strip() for name in path.split(separator)]
        if not path.strip() or '' in names:
            return None, f"category path is empty or malformed: {path}"

        parent_id = TREE_ROOT_ID
        parent_path = str(TREE_ROOT_ID)
        for level, name in enumerate(names, start=1):
            key = (parent_id, name)
            if key in self._children:
                category_id = self._children[key]
            elif auto_create:
                if level == 1:
                    return None, f"root category not found: {name}"
                category_id = self._create_category(parent_id, parent_path, name, level)
                self._children[key] = category_id
            else:
                return None, f"category not found: {path}"
            parent_id = category_id
            parent_path = f"{parent_path}/{category_id}"

        return parent_id, None

    def _create_category(self, parent_id: int, parent_path: str, name: str, level: int) -> int:
        parent = self.session.get(CategoryEntity, parent_id)
        position = parent.children_count + 1 if parent else 1

        category = CategoryEntity(parent_id=parent_id, path='', level=level, position=position, children_count=0)
        self.session.add(category)
        self.session.flush()
        category.path = f"{parent_path}/{category.entity_id}"

        if parent is not None:
            parent.children_count += 1

        url_key = generate_slug(name)
        for code, value in (('name', name), ('url_key', url_key)):
            if code in self.context.category_attribute_ids:
                self.session.add(CategoryVarchar(
                    entity_id=category.entity_id,
                    attribute_id=self.context.category_attribute_ids[code],
                    store_id=0,
                    value=value
                ))
        self.session.flush()

        self.context.add_category(CategoryInfo(category.entity_id, split_category_path(category.path), {0: url_key}))
        self._created.append(category.entity_id)
        logger.info(f"Created category '{name}' with id {category.entity_id} (path {category.path})")
        return category.entity_id

    def mark_committed(self) -> None:
        self._created = []

    def forget_uncommitted(self) -> None:
        """Drop categories whose creation was rolled back; the tree is read again on next use."""
        for category_id in self._created:
            self.context.category_info.pop(category_id, None)
        if self._created:
            logger.info(f"Forgot {len(self._created)} rolled back categories")
        self._created = []
        self._children = None
