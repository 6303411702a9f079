"""
URL Rewrite Engine

Keeps url_rewrite in line with the url keys and categories of products.
For every changed product and store view the full set of request paths is
computed (the direct path plus one path per category level), compared with
the stored rewrites, and the difference is written: new paths are inserted,
replaced paths become 301 redirects to their successor when history is
kept, and paths that did not change are left alone.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..bulk import RowBatcher, delete_in, insert_ignore_rows
from ..context import ImportContext
from ..data import Product, UrlRewriteInfo
from ..models import CategoryProduct, UrlRewrite, UrlRewriteProductCategory

logger = logging.getLogger(__name__)

ENTITY_TYPE = 'product'
REDIRECT_NONE = 0
REDIRECT_PERMANENT = 301

# store id -> product id -> {'url_key': ..., 'category_ids': {...}}
ExistingValues = Dict[int, Dict[int, Dict[str, object]]]


def product_target_path(product_id: int, category_id: Optional[int] = None) -> str:
    if category_id is None:
        return f"catalog/product/view/id/{product_id}"
    return f"catalog/product/view/id/{product_id}/category/{category_id}"


class UrlRewriteStorage:

    def __init__(self, session: Session, context: ImportContext, batcher: RowBatcher):
        self.session = session
        self.context = context
        self.batcher = batcher
        self.table = UrlRewrite.__table__

    def get_existing_product_values(self, products: List[Product]) -> ExistingValues:
        """Snapshot of the stored url keys and category links, taken before the products are written."""
        product_ids = list({product.id for product in products if product.id is not None})
        if not product_ids:
            return {}

        category_ids = self._category_ids(product_ids)

        attribute = self.context.attribute('url_key')
        rows = self.session.execute(
            select(attribute.table.c.entity_id, attribute.table.c.store_id, attribute.table.c.value).where(
                attribute.table.c.attribute_id == attribute.attribute_id,
                attribute.table.c.entity_id.in_(product_ids)
            )
        )
        data: ExistingValues = defaultdict(dict)
        for product_id, store_id, url_key in rows:
            data[store_id][product_id] = {
                'url_key': url_key,
                'category_ids': set(category_ids.get(product_id, set())),
            }
        return dict(data)

    def _category_ids(self, product_ids: List[int]) -> Dict[int, Set[int]]:
        category_ids = defaultdict(set)
        rows = self.session.execute(
            select(CategoryProduct.product_id, CategoryProduct.category_id).where(
                CategoryProduct.product_id.in_(product_ids)
            )
        )
        for product_id, category_id in rows:
            category_ids[product_id].add(category_id)
        return category_ids

    def update_rewrites(self, products: List[Product], existing_values: ExistingValues) -> None:
        changed_products = self.get_changed_products(products, existing_values)
        new_rewrites = self.get_new_rewrite_values(changed_products)
        self.rewrite_existing_rewrites(new_rewrites)

    def get_changed_products(self, products: List[Product], existing_values: ExistingValues) -> List[Product]:
        """Products with a store view whose url key or categories changed, or that had no url key yet."""
        changed = {}
        for product in products:
            new_category_ids = set(product.get_category_ids())
            for store_view in product.get_store_views():
                store_id = store_view.get_store_view_id()
                if store_id is None:
                    continue

                existing = existing_values.get(store_id, {}).get(product.id)
                if existing is None:
                    changed[product.id] = product
                    break

                # links are only added, never removed
                old_category_ids = existing['category_ids']
                categories_changed = bool((old_category_ids | new_category_ids) ^ old_category_ids)

                url_key = store_view.get_url_key()
                if categories_changed or (url_key is not None and url_key != existing['url_key']):
                    changed[product.id] = product
                    break
        return list(changed.values())

    def get_new_rewrite_values(self, products: List[Product]) -> List[UrlRewriteInfo]:
        """All rewrites the products should have, computed from the stored url keys and categories."""
        if not products:
            return []

        product_ids = [product.id for product in products]
        all_store_ids = self.context.concrete_store_ids()

        attribute = self.context.attribute('url_key')
        rows = self.session.execute(
            select(attribute.table.c.entity_id, attribute.table.c.store_id, attribute.table.c.value).where(
                attribute.table.c.attribute_id == attribute.attribute_id,
                attribute.table.c.entity_id.in_(product_ids)
            ).order_by(attribute.table.c.entity_id, attribute.table.c.store_id)
        )

        url_keys: Dict[int, Dict[int, str]] = defaultdict(dict)
        explicit: Set[Tuple[int, int]] = set()
        for product_id, store_id, url_key in rows:
            if not url_key:
                continue
            if store_id == 0:
                # global url key: every store view without its own
                for a_store_id in all_store_ids:
                    if (product_id, a_store_id) not in explicit:
                        url_keys[product_id][a_store_id] = url_key
            else:
                url_keys[product_id][store_id] = url_key
                explicit.add((product_id, store_id))

        category_ids = self._category_ids(product_ids)
        suffix = self.context.product_url_suffix

        rewrites: Dict[Tuple[int, str], UrlRewriteInfo] = {}
        for product_id in sorted(url_keys):
            for store_id, url_key in sorted(url_keys[product_id].items()):
                short_url = f"{url_key}{suffix}"
                direct = UrlRewriteInfo(product_id, short_url, product_target_path(product_id), REDIRECT_NONE, store_id)
                rewrites.setdefault((store_id, direct.request_path), direct)

                for category_id in sorted(category_ids.get(product_id, ())):
                    for info in self._category_rewrites(product_id, store_id, category_id, short_url):
                        rewrites.setdefault((store_id, info.request_path), info)

        return list(rewrites.values())

    def _category_rewrites(self, product_id: int, store_id: int, category_id: int, short_url: str) -> List[UrlRewriteInfo]:
        category = self.context.category_info.get(category_id)
        if category is None:
            return []

        rewrites = []
        path = ""
        for i, ancestor_id in enumerate(category.path):
            # the store's root category is not part of the url
            if i == 0:
                continue
            ancestor = self.context.category_info.get(ancestor_id)
            segment = ancestor.url_key(store_id) if ancestor else None
            if not segment:
                logger.warning(f"Category {ancestor_id} has no url key; skipping its rewrites for product {product_id}")
                break
            path += f"{segment}/"
            rewrites.append(UrlRewriteInfo(
                product_id, f"{path}{short_url}", product_target_path(product_id, ancestor_id),
                REDIRECT_NONE, store_id, {'category_id': str(ancestor_id)}
            ))
        return rewrites

    def _get_existing_url_rewrite_data(self, url_rewrites: List[UrlRewriteInfo]):
        """store id -> (product id, category id or None) -> stored rewrite rows"""
        product_ids = defaultdict(set)
        for info in url_rewrites:
            product_ids[info.store_id].add(info.product_id)

        serializer = self.context.serializer
        metadata_column = self.table.c['metadata']
        data = defaultdict(lambda: defaultdict(list))
        for store_id, ids in product_ids.items():
            rows = self.session.execute(
                select(
                    self.table.c.url_rewrite_id, self.table.c.entity_id, self.table.c.request_path,
                    self.table.c.target_path, self.table.c.redirect_type, metadata_column
                ).where(
                    self.table.c.store_id == store_id,
                    self.table.c.entity_type == ENTITY_TYPE,
                    self.table.c.entity_id.in_(list(ids))
                ).order_by(self.table.c.url_rewrite_id)
            ).mappings()
            for row in rows:
                category_id = serializer.extract(row['metadata'], 'category_id')
                data[store_id][(row['entity_id'], category_id)].append(row)
        return data

    def rewrite_existing_rewrites(self, url_rewrites: List[UrlRewriteInfo]) -> None:
        if not url_rewrites:
            return

        existing = self._get_existing_url_rewrite_data(url_rewrites)
        save_history = self.context.save_rewrites_history

        new_rewrites = []
        redirects = []
        old_rewrite_ids = []
        for info in url_rewrites:
            old_rows = existing.get(info.store_id, {}).get((info.product_id, info.category_id))
            if not old_rows:
                new_rewrites.append(info)
                continue

            if any(row['redirect_type'] == REDIRECT_NONE and row['request_path'] == info.request_path
                   and row['target_path'] == info.target_path for row in old_rows):
                # unchanged
                continue

            for row in old_rows:
                old_rewrite_ids.append(row['url_rewrite_id'])

                if row['redirect_type'] == REDIRECT_NONE and not save_history:
                    continue

                # a redirect must not point to itself
                if row['request_path'] == info.request_path:
                    continue

                redirects.append(UrlRewriteInfo(
                    info.product_id, row['request_path'], info.request_path, REDIRECT_PERMANENT, info.store_id,
                    dict(info.metadata) if info.metadata else {}, 0
                ))

            new_rewrites.append(info)

        if old_rewrite_ids:
            delete_in(self.session, UrlRewriteProductCategory.__table__, 'url_rewrite_id', old_rewrite_ids)
            delete_in(self.session, self.table, 'url_rewrite_id', old_rewrite_ids)

        self.write_url_rewrites(new_rewrites, build_index=True)
        self.write_url_rewrites(redirects, build_index=False)

        logger.info(
            f"Url rewrites: {len(new_rewrites)} written, {len(redirects)} redirects, {len(old_rewrite_ids)} replaced"
        )

    def write_url_rewrites(self, url_rewrites: List[UrlRewriteInfo], build_index: bool) -> None:
        if not url_rewrites:
            return

        serializer = self.context.serializer
        rows = [{
            'entity_type': ENTITY_TYPE,
            'entity_id': info.product_id,
            'request_path': info.request_path,
            'target_path': info.target_path,
            'redirect_type': info.redirect_type,
            'store_id': info.store_id,
            'is_autogenerated': info.autogenerated,
            'metadata': None if info.metadata is None else serializer.serialize(info.metadata),
        } for info in url_rewrites]

        watermark = self.session.execute(select(func.max(self.table.c.url_rewrite_id))).scalar() or 0

        # duplicates of (request_path, store_id) are skipped; a product's global and
        # store view values may both produce the same path
        insert_ignore_rows(self.session, self.table, rows, self.batcher)

        if build_index:
            self._build_category_index(url_rewrites, watermark)

    def _build_category_index(self, url_rewrites: List[UrlRewriteInfo], watermark: int) -> None:
        """Link the rewrites inserted after watermark to their category."""
        wanted = {
            (info.store_id, info.request_path, info.target_path)
            for info in url_rewrites if info.category_id is not None
        }
        if not wanted:
            return

        product_ids = list({info.product_id for info in url_rewrites})
        rows = self.session.execute(
            select(
                self.table.c.url_rewrite_id, self.table.c.entity_id, self.table.c.store_id,
                self.table.c.request_path, self.table.c.target_path
            ).where(
                self.table.c.url_rewrite_id > watermark,
                self.table.c.entity_id.in_(product_ids),
                self.table.c.target_path.like('%/category/%')
            )
        )

        index_rows = []
        for url_rewrite_id, product_id, store_id, request_path, target_path in rows:
            if (store_id, request_path, target_path) not in wanted:
                continue
            index_rows.append({
                'url_rewrite_id': url_rewrite_id,
                'category_id': int(target_path.rsplit('/', 1)[1]),
                'product_id': product_id,
            })
        insert_ignore_rows(self.session, UrlRewriteProductCategory.__table__, index_rows, self.batcher)
