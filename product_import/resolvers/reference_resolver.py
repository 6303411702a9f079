"""
Reference Resolution Engine

Replaces the symbolic references of a batch of products with database ids
in two passes. The first pass handles references to catalog data (attribute
sets, categories, websites, store views, tax classes, options); the second
handles references to other products, which may only be looked up after
every product of the batch has its own references in place.

Unknown names never raise: they become errors on the product and the field
is marked Failed. Only a reference key the engine has no resolver for raises
ReferenceResolutionError.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from ..config import ImportConfig
from ..context import ImportContext
from ..data import BundleProduct, ConfigurableProduct, Failed, GroupedProduct, Product, Resolved, Unresolved
from ..exceptions import ReferenceResolutionError
from .category_importer import CategoryImporter
from .name_resolvers import (
    AttributeSetResolver, CustomerGroupResolver, StoreViewResolver, TaxClassResolver, WebsiteResolver,
)
from .option_resolver import OptionResolver
from .product_reference_resolvers import (
    BundleProductReferenceResolver, ConfigurableProductReferenceResolver, GroupedProductReferenceResolver,
    LinkedProductReferenceResolver, ProductSkuResolver, TierPriceResolver,
)

logger = logging.getLogger(__name__)


class ReferenceResolver:

    def __init__(self, session: Session, context: ImportContext):
        self.category_importer = CategoryImporter(session, context)
        self.attribute_set_resolver = AttributeSetResolver(session)
        self.tax_class_resolver = TaxClassResolver(session)
        self.store_view_resolver = StoreViewResolver(session)
        self.website_resolver = WebsiteResolver(session)
        self.option_resolver = OptionResolver(session, context)

        sku_resolver = ProductSkuResolver(session, context)
        self.linked_product_resolver = LinkedProductReferenceResolver(sku_resolver)
        self.tier_price_resolver = TierPriceResolver(CustomerGroupResolver(session), self.website_resolver)
        self.bundle_resolver = BundleProductReferenceResolver(sku_resolver)
        self.grouped_resolver = GroupedProductReferenceResolver(sku_resolver)
        self.configurable_resolver = ConfigurableProductReferenceResolver(sku_resolver)

    def mark_committed(self) -> None:
        """Categories and options created so far are persistent."""
        self.category_importer.mark_committed()

    def forget_uncommitted(self) -> None:
        """Clear cached categories and options that a rollback removed from the database."""
        self.category_importer.forget_uncommitted()
        self.option_resolver.forget_uncommitted()

    def resolve_external_references(self, products: List[Product], config: ImportConfig) -> None:
        """Pass 1: references to catalog data."""
        # type independent, so done up front
        self.tier_price_resolver.resolve_references(products)

        for product in products:
            self._resolve_product_level(product, config)
            self._resolve_store_views(product, config)

    def _resolve_product_level(self, product: Product, config: ImportConfig) -> None:
        for key, resolution in list(product.references.items()):
            if not isinstance(resolution, Unresolved):
                continue

            if key == Product.ATTRIBUTE_SET_ID:
                value, error = self.attribute_set_resolver.resolve_name(resolution.symbol)
            elif key == Product.CATEGORY_IDS:
                value, error = self.category_importer.import_category_paths(
                    resolution.symbol, config.auto_create_categories, config.category_path_separator
                )
            elif key == Product.WEBSITE_IDS:
                value, error = self.website_resolver.resolve_codes(resolution.symbol)
            else:
                raise ReferenceResolutionError(f"Unknown unresolved attribute: {key}")

            if error is None:
                product.references[key] = Resolved(value)
            else:
                product.add_error(error, key)
                product.references[key] = Failed(error)

    def _resolve_store_views(self, product: Product, config: ImportConfig) -> None:
        for code, store_view in product.store_views.items():
            store_view_id, error = self.store_view_resolver.resolve_name(code)
            if error is None:
                store_view.store_view_id = Resolved(store_view_id)
            else:
                product.add_error(error, 'store_view')
                store_view.store_view_id = Failed(error)

            for key, resolution in list(store_view.references.items()):
                if not isinstance(resolution, Unresolved):
                    continue
                if key == store_view.ATTR_TAX_CLASS_ID:
                    value, error = self.tax_class_resolver.resolve_name(resolution.symbol)
                else:
                    raise ReferenceResolutionError(f"Unknown unresolved attribute: {key}")
                self._apply(product, store_view.references, key, value, error)

            for attribute_code, resolution in list(store_view.selects.items()):
                if not isinstance(resolution, Unresolved):
                    continue
                if resolution.symbol == "" or resolution.symbol is None:
                    # no value
                    del store_view.selects[attribute_code]
                    continue
                value, error = self.option_resolver.resolve_option(
                    attribute_code, resolution.symbol, config.auto_create_option_attributes
                )
                self._apply(product, store_view.selects, attribute_code, value, error)

            for attribute_code, resolution in list(store_view.multi_selects.items()):
                if not isinstance(resolution, Unresolved):
                    continue
                labels = [label for label in resolution.symbol if label != "" and label is not None]
                if not labels:
                    del store_view.multi_selects[attribute_code]
                    continue
                value, error = self.option_resolver.resolve_options(
                    attribute_code, labels, config.auto_create_option_attributes
                )
                self._apply(product, store_view.multi_selects, attribute_code, value, error)

    @staticmethod
    def _apply(product: Product, fields: Dict, key: str, value, error) -> None:
        if error is None:
            fields[key] = Resolved(value)
        else:
            product.add_error(error, key)
            fields[key] = Failed(error)

    def resolve_product_references(self, products: List[Product], config: ImportConfig) -> None:
        """Pass 2: references to other products, routed by product type."""
        self.linked_product_resolver.resolve_linked_product_references(products)

        products_by_type = defaultdict(list)
        for product in products:
            products_by_type[product.get_type()].append(product)

        if products_by_type[BundleProduct.TYPE]:
            self.bundle_resolver.resolve_ids(products_by_type[BundleProduct.TYPE])
        if products_by_type[GroupedProduct.TYPE]:
            self.grouped_resolver.resolve_ids(products_by_type[GroupedProduct.TYPE])
        if products_by_type[ConfigurableProduct.TYPE]:
            self.configurable_resolver.resolve_ids(products_by_type[ConfigurableProduct.TYPE])
