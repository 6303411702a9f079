"""
Relation Storage: the type specific child rows of products.

Linked products, grouped members, configurable variants, bundle options,
downloadable links and tier prices are written with replace semantics: when
a product supplies one of them, its stored rows of that kind are deleted and
the new ones inserted. The remove_* methods are also used to clean up after
a product type change.
"""

import logging
from typing import List

from sqlalchemy import delete
from sqlalchemy.orm import Session

from ..bulk import RowBatcher, delete_in, insert_rows
from ..data import BundleProduct, ConfigurableProduct, DownloadableProduct, GroupedProduct, Product, resolved_value
from ..models import (
    LINK_TYPE_CROSS_SELL, LINK_TYPE_GROUPED, LINK_TYPE_RELATED, LINK_TYPE_UP_SELL,
    BundleOption, BundleSelection, DownloadableLink, DownloadableSample, ProductLink, ProductRelation,
    ProductSuperLink, TierPrice,
)

logger = logging.getLogger(__name__)

LINK_TYPES = {
    Product.LINK_RELATED: LINK_TYPE_RELATED,
    Product.LINK_UP_SELL: LINK_TYPE_UP_SELL,
    Product.LINK_CROSS_SELL: LINK_TYPE_CROSS_SELL,
}


def last_payload_per_product(products: List[Product]) -> List[Product]:
    """One product per id; of several payloads for the same sku the last one wins."""
    return list({product.id: product for product in products}.values())


class RelationStorage:

    def __init__(self, session: Session, batcher: RowBatcher):
        self.session = session
        self.batcher = batcher

    def store_relations(self, products: List[Product]) -> None:
        """Write all child rows the products supply."""
        self.store_linked_products(products)
        self.store_tier_prices(products)
        self.store_grouped_members([p for p in products if isinstance(p, GroupedProduct) and p.members is not None])
        self.store_variants([p for p in products if isinstance(p, ConfigurableProduct) and p.variants is not None])
        self.store_bundle_options([p for p in products if isinstance(p, BundleProduct) and p.options is not None])
        self.store_downloads([p for p in products if isinstance(p, DownloadableProduct)])

    # Linked products

    def _remove_links(self, product_ids: List[int], link_type: int) -> None:
        if product_ids:
            self.session.execute(delete(ProductLink.__table__).where(
                ProductLink.product_id.in_(product_ids), ProductLink.link_type_id == link_type
            ))

    def store_linked_products(self, products: List[Product]) -> None:
        for kind, link_type in LINK_TYPES.items():
            supplied = last_payload_per_product(
                [p for p in products if kind in p.links and p.links[kind].is_resolved()]
            )
            if not supplied:
                continue
            self._remove_links([p.id for p in supplied], link_type)
            rows = []
            for product in supplied:
                for position, linked_id in enumerate(dict.fromkeys(product.links[kind].value), start=1):
                    rows.append({
                        'product_id': product.id, 'linked_product_id': linked_id,
                        'link_type_id': link_type, 'position': position, 'qty': None,
                    })
            insert_rows(self.session, ProductLink.__table__, rows, self.batcher)

    # Grouped

    def store_grouped_members(self, products: List[GroupedProduct]) -> None:
        if not products:
            return
        products = last_payload_per_product(products)
        self.remove_linked_products(products)
        link_rows = []
        relation_rows = {}
        for product in products:
            seen = set()
            for position, member in enumerate(product.members, start=1):
                if member.product_id in seen:
                    continue
                seen.add(member.product_id)
                link_rows.append({
                    'product_id': product.id, 'linked_product_id': member.product_id,
                    'link_type_id': LINK_TYPE_GROUPED, 'position': position, 'qty': member.default_quantity,
                })
                relation_rows[(product.id, member.product_id)] = {'parent_id': product.id, 'child_id': member.product_id}
        insert_rows(self.session, ProductLink.__table__, link_rows, self.batcher)
        insert_rows(self.session, ProductRelation.__table__, list(relation_rows.values()), self.batcher)

    def remove_linked_products(self, products: List[Product]) -> None:
        product_ids = [p.id for p in products]
        self._remove_links(product_ids, LINK_TYPE_GROUPED)
        delete_in(self.session, ProductRelation.__table__, 'parent_id', product_ids)

    # Configurable

    def store_variants(self, products: List[ConfigurableProduct]) -> None:
        if not products:
            return
        products = last_payload_per_product(products)
        self.remove_linked_variants(products)
        super_rows = []
        relation_rows = []
        for product in products:
            for variant_id in dict.fromkeys(resolved_value(product.variants, [])):
                super_rows.append({'product_id': variant_id, 'parent_id': product.id})
                relation_rows.append({'parent_id': product.id, 'child_id': variant_id})
        insert_rows(self.session, ProductSuperLink.__table__, super_rows, self.batcher)
        insert_rows(self.session, ProductRelation.__table__, relation_rows, self.batcher)

    def remove_linked_variants(self, products: List[Product]) -> None:
        product_ids = [p.id for p in products]
        delete_in(self.session, ProductSuperLink.__table__, 'parent_id', product_ids)
        delete_in(self.session, ProductRelation.__table__, 'parent_id', product_ids)

    # Bundle

    def store_bundle_options(self, products: List[BundleProduct]) -> None:
        if not products:
            return
        products = last_payload_per_product(products)
        self.remove_options(products)
        selection_rows = []
        relation_rows = {}
        for product in products:
            for position, option in enumerate(product.options, start=1):
                entity = BundleOption(
                    parent_id=product.id, required=int(option.required), position=position,
                    type=option.input_type, title=option.title
                )
                self.session.add(entity)
                self.session.flush()
                for selection_position, selection in enumerate(option.selections, start=1):
                    selection_rows.append({
                        'option_id': entity.option_id, 'parent_product_id': product.id,
                        'product_id': selection.product_id, 'position': selection_position,
                        'is_default': int(selection.is_default), 'selection_qty': selection.quantity,
                    })
                    relation_rows[(product.id, selection.product_id)] = {
                        'parent_id': product.id, 'child_id': selection.product_id
                    }
        insert_rows(self.session, BundleSelection.__table__, selection_rows, self.batcher)
        insert_rows(self.session, ProductRelation.__table__, list(relation_rows.values()), self.batcher)

    def remove_options(self, products: List[Product]) -> None:
        product_ids = [p.id for p in products]
        delete_in(self.session, BundleSelection.__table__, 'parent_product_id', product_ids)
        delete_in(self.session, BundleOption.__table__, 'parent_id', product_ids)
        delete_in(self.session, ProductRelation.__table__, 'parent_id', product_ids)

    # Downloadable

    def store_downloads(self, products: List[DownloadableProduct]) -> None:
        with_links = last_payload_per_product([p for p in products if p.download_links is not None])
        if with_links:
            delete_in(self.session, DownloadableLink.__table__, 'product_id', [p.id for p in with_links])
            insert_rows(self.session, DownloadableLink.__table__, [
                {
                    'product_id': product.id, 'title': link.title, 'link_url': link.url,
                    'sort_order': position, 'number_of_downloads': link.number_of_downloads,
                }
                for product in with_links
                for position, link in enumerate(product.download_links, start=1)
            ], self.batcher)

        with_samples = last_payload_per_product([p for p in products if p.download_samples is not None])
        if with_samples:
            delete_in(self.session, DownloadableSample.__table__, 'product_id', [p.id for p in with_samples])
            insert_rows(self.session, DownloadableSample.__table__, [
                {'product_id': product.id, 'title': sample.title, 'sample_url': sample.url, 'sort_order': position}
                for product in with_samples
                for position, sample in enumerate(product.download_samples, start=1)
            ], self.batcher)

    def remove_links_and_samples(self, products: List[Product]) -> None:
        product_ids = [p.id for p in products]
        delete_in(self.session, DownloadableLink.__table__, 'product_id', product_ids)
        delete_in(self.session, DownloadableSample.__table__, 'product_id', product_ids)

    # Tier prices

    def store_tier_prices(self, products: List[Product]) -> None:
        supplied = [p for p in products if p.tier_prices is not None]
        if not supplied:
            return
        delete_in(self.session, TierPrice.__table__, 'entity_id', [p.id for p in supplied])
        rows = {}
        for product in supplied:
            for tier_price in product.tier_prices:
                all_groups = 1 if tier_price.customer_group_id is None else 0
                group_id = tier_price.customer_group_id or 0
                key = (product.id, all_groups, group_id, float(tier_price.qty), tier_price.website_id or 0)
                # last one wins for identical keys
                rows[key] = {
                    'entity_id': product.id, 'all_groups': all_groups, 'customer_group_id': group_id,
                    'qty': tier_price.qty, 'value': tier_price.value, 'website_id': tier_price.website_id or 0,
                }
        insert_rows(self.session, TierPrice.__table__, list(rows.values()), self.batcher)
