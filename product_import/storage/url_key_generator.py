"""
Url Key Generator

Gives products without an explicit url key one derived from their name or
sku, and makes sure no two products share a url key.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import DuplicateUrlKeyStrategy, UrlKeyScheme
from ..context import ImportContext
from ..data import Product
from ..utils import generate_slug

logger = logging.getLogger(__name__)


class UrlKeyGenerator:

    def __init__(self, session: Session, context: ImportContext):
        self.session = session
        self.context = context
        self._owners: Dict[str, Set[int]] = {}
        # url keys claimed in the current batch: key -> sku
        self._claimed: Dict[str, str] = {}

    def create_url_keys_for_new_products(self, products: List[Product], scheme: UrlKeyScheme,
                                         strategy: DuplicateUrlKeyStrategy) -> None:
        self._create_url_keys(products, scheme, strategy, existing=False)

    def create_url_keys_for_existing_products(self, products: List[Product], scheme: UrlKeyScheme,
                                              strategy: DuplicateUrlKeyStrategy) -> None:
        self._create_url_keys(products, scheme, strategy, existing=True)

    def _base_key(self, product: Product, scheme: UrlKeyScheme, existing: bool) -> Optional[str]:
        name = product.global_store_view().get_name()
        if existing and name is None:
            # keep the stored url key
            return None
        if scheme == UrlKeyScheme.FROM_SKU:
            return generate_slug(product.sku)
        if name is None:
            return None
        return generate_slug(name)

    def _create_url_keys(self, products: List[Product], scheme: UrlKeyScheme,
                         strategy: DuplicateUrlKeyStrategy, existing: bool) -> None:
        self._prefetch(self._candidate_keys(products, scheme, existing))

        claimed = self._claimed

        for product in products:
            global_view = product.global_store_view()

            for store_view in product.get_store_views():
                url_key = store_view.get_url_key()
                if url_key is None or store_view is global_view:
                    continue
                if self._taken(url_key, product, claimed):
                    product.add_error(f"Url key already exists: {url_key}", 'url_key')
                else:
                    claimed[url_key] = product.sku

            explicit_key = global_view.get_url_key()
            if explicit_key is not None:
                if self._taken(explicit_key, product, claimed):
                    product.add_error(f"Url key already exists: {explicit_key}", 'url_key')
                else:
                    claimed[explicit_key] = product.sku
                continue

            url_key = self._base_key(product, scheme, existing)
            if url_key is None:
                continue

            if self._taken(url_key, product, claimed):
                url_key = self._deduplicate(url_key, product, strategy, claimed)
                if url_key is None:
                    continue

            global_view.set_url_key(url_key)
            claimed[url_key] = product.sku

    def _deduplicate(self, url_key: str, product: Product, strategy: DuplicateUrlKeyStrategy,
                     claimed: Dict[str, str]) -> Optional[str]:
        if strategy == DuplicateUrlKeyStrategy.ADD_SKU:
            candidate = f"{url_key}-{generate_slug(product.sku)}"
            if not self._taken(candidate, product, claimed):
                return candidate
            url_key = candidate
        elif strategy == DuplicateUrlKeyStrategy.ADD_SERIAL:
            serial = 1
            while self._taken(f"{url_key}-{serial}", product, claimed):
                serial += 1
            return f"{url_key}-{serial}"

        product.add_error(f"Generated url key already exists: {url_key}", 'url_key')
        return None

    def _candidate_keys(self, products: List[Product], scheme: UrlKeyScheme, existing: bool) -> Set[str]:
        keys = set()
        for product in products:
            for store_view in product.get_store_views():
                if store_view.get_url_key() is not None:
                    keys.add(store_view.get_url_key())
            base = self._base_key(product, scheme, existing)
            if base is not None:
                keys.add(base)
                keys.add(f"{base}-{generate_slug(product.sku)}")
        return keys

    def _prefetch(self, keys: Iterable[str]) -> None:
        keys = [key for key in keys if key not in self._owners]
        if not keys:
            return
        for key in keys:
            self._owners[key] = set()
        attribute = self.context.attribute('url_key')
        table = attribute.table
        for start in range(0, len(keys), 500):
            rows = self.session.execute(
                select(table.c.value, table.c.entity_id).where(
                    table.c.attribute_id == attribute.attribute_id,
                    table.c.value.in_(keys[start:start + 500])
                )
            )
            for value, entity_id in rows:
                self._owners[value].add(entity_id)

    def _taken(self, url_key: str, product: Product, claimed: Dict[str, str]) -> bool:
        """True when another product uses the key, stored or in this batch."""
        if url_key in claimed and claimed[url_key] != product.sku:
            return True
        if url_key not in self._owners:
            self._prefetch([url_key])
        owners = self._owners[url_key]
        return any(owner != product.id for owner in owners)

    def start_batch(self) -> None:
        """Forget stored url keys and batch claims; the database changes between batches."""
        self._owners = {}
        self._claimed = {}
