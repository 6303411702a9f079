"""Validation of products before they are written."""
import logging

from ..context import ImportContext
from ..data import PRODUCT_TYPES, Product

logger = logging.getLogger(__name__)

SKU_MAX_LENGTH = 64


class Validator:

    def __init__(self, context: ImportContext):
        self.context = context

    def validate(self, product: Product) -> None:
        """Adds an error to the product for every rule it breaks."""
        sku = product.sku.strip() if isinstance(product.sku, str) else ''
        if not sku:
            product.add_error("missing sku", 'sku')
        elif len(sku) > SKU_MAX_LENGTH:
            product.add_error(f"sku has {len(sku)} characters (max {SKU_MAX_LENGTH}): {sku}", 'sku')

        if product.get_type() not in PRODUCT_TYPES:
            product.add_error(f"unknown product type: {product.get_type()}", 'type')

        if product.id is None:
            # an attribute set that failed to resolve has been reported already
            if Product.ATTRIBUTE_SET_ID not in product.references:
                product.add_error("missing attribute set id", 'attribute_set_id')
            if product.global_store_view().get_name() in (None, ''):
                product.add_error("missing name", 'name')

        for store_view in product.get_store_views():
            for code in store_view.eav_values():
                if code not in self.context.product_attributes:
                    product.add_error(f"attribute not found: {code}", code)

            url_key = store_view.get_url_key()
            if url_key is not None and url_key.strip() == '':
                product.add_error("url_key is empty", 'url_key')
