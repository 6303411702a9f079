"""
Name resolvers: cached name -> id maps over the catalog lookup tables.

Every resolver returns a (value, error) pair. error is None on success;
otherwise it holds a message for the product's error list and value is None.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models import ENTITY_TYPE_PRODUCT, AttributeSet, CustomerGroup, StoreView, TaxClass, Website

logger = logging.getLogger(__name__)


class NameResolver:
    """Base resolver: loads its lookup table on first use and keeps it for the import run."""

    # Used in error messages
    label = 'name'

    def __init__(self, session: Session):
        self.session = session
        self._map: Optional[Dict[str, int]] = None

    def _load(self) -> Dict[str, int]:
        raise NotImplementedError

    def get_map(self) -> Dict[str, int]:
        if self._map is None:
            self._map = self._load()
            logger.debug(f"{self.__class__.__name__} loaded {len(self._map)} entries")
        return self._map

    def resolve_name(self, name: str) -> Tuple[Optional[int], Optional[str]]:
        name = name.strip() if isinstance(name, str) else name
        id_map = self.get_map()
        if name in id_map:
            return id_map[name], None
        return None, f"{self.label} not found: {name}"

    def resolve_codes(self, codes: List[str]) -> Tuple[List[int], Optional[str]]:
        """Resolve all codes; any unknown code makes the whole list fail."""
        ids = []
        unknown = []
        for code in codes:
            id_, error = self.resolve_name(code)
            if error is None:
                ids.append(id_)
            else:
                unknown.append(str(code).strip())
        if unknown:
            return [], f"{self.label}s not found: {', '.join(unknown)}"
        return ids, None


class AttributeSetResolver(NameResolver):
    label = 'attribute set name'

    def _load(self):
        rows = self.session.query(AttributeSet.attribute_set_name, AttributeSet.attribute_set_id).filter(
            AttributeSet.entity_type == ENTITY_TYPE_PRODUCT
        ).all()
        return {name: id_ for name, id_ in rows}


class TaxClassResolver(NameResolver):
    label = 'tax class name'

    def _load(self):
        rows = self.session.query(TaxClass.class_name, TaxClass.class_id).filter(TaxClass.class_type == 'PRODUCT').all()
        return {name: id_ for name, id_ in rows}


class StoreViewResolver(NameResolver):
    label = 'store view code'

    def _load(self):
        return {code: id_ for code, id_ in self.session.query(StoreView.code, StoreView.store_id).all()}


class WebsiteResolver(NameResolver):
    label = 'website code'

    def _load(self):
        return {code: id_ for code, id_ in self.session.query(Website.code, Website.website_id).all()}


class CustomerGroupResolver(NameResolver):
    label = 'customer group code'

    def _load(self):
        rows = self.session.query(CustomerGroup.customer_group_code, CustomerGroup.customer_group_id).all()
        return {code: id_ for code, id_ in rows}
