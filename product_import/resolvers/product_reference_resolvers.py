"""
Resolvers for references to other products and for tier prices.

Products are referenced by sku. A sku that does not exist yet is created
as a disabled placeholder product, so that a product may refer to another
that is imported in a later batch; that batch then replaces the placeholder.
"""

import logging
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from ..context import ImportContext
from ..data import (
    PLACEHOLDER_NAME, STATUS_DISABLED, VISIBILITY_NOT_VISIBLE,
    BundleProduct, ConfigurableProduct, GroupedProduct, Product, Resolved, SimpleProduct, Unresolved,
)
from ..models import ProductEntity
from .name_resolvers import CustomerGroupResolver, WebsiteResolver

logger = logging.getLogger(__name__)


class ProductSkuResolver:
    """Maps skus to product ids, creating placeholders for unknown skus."""

    def __init__(self, session: Session, context: ImportContext):
        self.session = session
        self.context = context

    def resolve_skus(self, skus: Iterable[str]) -> Dict[str, int]:
        skus = list(dict.fromkeys(sku.strip() for sku in skus if sku and sku.strip()))
        if not skus:
            return {}

        sku2id = {
            sku: entity_id for sku, entity_id in
            self.session.query(ProductEntity.sku, ProductEntity.entity_id).filter(ProductEntity.sku.in_(skus)).all()
        }

        missing = [sku for sku in skus if sku not in sku2id]
        for sku in missing:
            sku2id[sku] = self._create_placeholder(sku)

        if missing:
            logger.info(f"Created {len(missing)} placeholder products: {', '.join(missing)}")
        return sku2id

    def _create_placeholder(self, sku: str) -> int:
        entity = ProductEntity(
            sku=sku,
            type_id=SimpleProduct.TYPE,
            attribute_set_id=self.context.default_attribute_set_id or 0,
            has_options=0,
            required_options=0
        )
        self.session.add(entity)
        self.session.flush()

        values = (('name', PLACEHOLDER_NAME), ('status', STATUS_DISABLED), ('visibility', VISIBILITY_NOT_VISIBLE))
        for code, value in values:
            if code not in self.context.product_attributes:
                continue
            attribute = self.context.attribute(code)
            self.session.execute(attribute.table.insert().values(
                entity_id=entity.entity_id, attribute_id=attribute.attribute_id, store_id=0, value=value
            ))
        return entity.entity_id


class LinkedProductReferenceResolver:
    """Related, up-sell and cross-sell skus."""

    def __init__(self, sku_resolver: ProductSkuResolver):
        self.sku_resolver = sku_resolver

    def resolve_linked_product_references(self, products: List[Product]) -> None:
        skus = []
        for product in products:
            for resolution in product.links.values():
                if isinstance(resolution, Unresolved):
                    skus.extend(resolution.symbol)

        sku2id = self.sku_resolver.resolve_skus(skus)

        for product in products:
            for kind, resolution in list(product.links.items()):
                if isinstance(resolution, Unresolved):
                    product.links[kind] = Resolved(
                        [sku2id[sku.strip()] for sku in resolution.symbol if sku and sku.strip()]
                    )


class GroupedProductReferenceResolver:

    def __init__(self, sku_resolver: ProductSkuResolver):
        self.sku_resolver = sku_resolver

    def resolve_ids(self, products: List[GroupedProduct]) -> None:
        members = [member for product in products for member in (product.members or [])]
        sku2id = self.sku_resolver.resolve_skus(member.sku for member in members)
        for member in members:
            member.product_id = sku2id.get(member.sku.strip())

        for product in products:
            for member in product.members or []:
                if member.product_id is None:
                    product.add_error("grouped member sku is empty", 'members')


class BundleProductReferenceResolver:

    def __init__(self, sku_resolver: ProductSkuResolver):
        self.sku_resolver = sku_resolver

    def resolve_ids(self, products: List[BundleProduct]) -> None:
        selections = [
            selection
            for product in products
            for option in (product.options or [])
            for selection in option.selections
        ]
        sku2id = self.sku_resolver.resolve_skus(selection.sku for selection in selections)
        for selection in selections:
            selection.product_id = sku2id.get(selection.sku.strip())

        for product in products:
            for option in product.options or []:
                if any(selection.product_id is None for selection in option.selections):
                    product.add_error(f"bundle selection sku is empty in option '{option.title}'", 'options')


class ConfigurableProductReferenceResolver:

    def __init__(self, sku_resolver: ProductSkuResolver):
        self.sku_resolver = sku_resolver

    def resolve_ids(self, products: List[ConfigurableProduct]) -> None:
        skus = []
        for product in products:
            if isinstance(product.variants, Unresolved):
                skus.extend(product.variants.symbol)

        sku2id = self.sku_resolver.resolve_skus(skus)

        for product in products:
            if isinstance(product.variants, Unresolved):
                product.variants = Resolved(
                    [sku2id[sku.strip()] for sku in product.variants.symbol if sku and sku.strip()]
                )


class TierPriceResolver:
    """Customer group and website codes of tier prices."""

    def __init__(self, customer_group_resolver: CustomerGroupResolver, website_resolver: WebsiteResolver):
        self.customer_group_resolver = customer_group_resolver
        self.website_resolver = website_resolver

    def resolve_references(self, products: List[Product]) -> None:
        for product in products:
            if not product.tier_prices:
                continue
            for tier_price in product.tier_prices:
                if tier_price.customer_group_code is None:
                    tier_price.customer_group_id = None
                else:
                    tier_price.customer_group_id, error = self.customer_group_resolver.resolve_name(
                        tier_price.customer_group_code
                    )
                    if error is not None:
                        product.add_error(error, 'tier_prices')

                if tier_price.website_code is None:
                    tier_price.website_id = 0
                else:
                    tier_price.website_id, error = self.website_resolver.resolve_name(tier_price.website_code)
                    if error is not None:
                        product.add_error(error, 'tier_prices')
