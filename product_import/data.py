"""
Domain records handed to the importer.

A product owns its store views in a dict keyed by store view code; the
global values live in the 'admin' store view. Symbolic references
(attribute set name, category paths, option labels, ...) are kept as
Resolution values until the reference resolver replaces them with ids.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

GLOBAL_STORE_VIEW_CODE = 'admin'

PLACEHOLDER_NAME = 'Product Placeholder'

STATUS_ENABLED = 1
STATUS_DISABLED = 2

VISIBILITY_NOT_VISIBLE = 1
VISIBILITY_BOTH = 4


# Resolution of a single symbolic field

class Resolution:
    """Base of the three states a symbolic field passes through."""

    def is_resolved(self) -> bool:
        return False


@dataclass(frozen=True)
class Unresolved(Resolution):
    symbol: Any


@dataclass(frozen=True)
class Resolved(Resolution):
    value: Any

    def is_resolved(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed(Resolution):
    message: str


def resolved_value(resolution: Optional[Resolution], default=None):
    """The value of a Resolved field, or default for any other state."""
    if isinstance(resolution, Resolved):
        return resolution.value
    return default


@dataclass
class ProductError:
    message: str
    field: Optional[str] = None

    def __str__(self):
        return self.message


@dataclass
class TierPrice:
    qty: float
    value: float
    customer_group_code: Optional[str] = None
    website_code: Optional[str] = None
    customer_group_id: Optional[int] = None
    website_id: Optional[int] = None


@dataclass
class GroupedMember:
    sku: str
    default_quantity: float = 0
    product_id: Optional[int] = None


@dataclass
class BundleSelection:
    sku: str
    quantity: float = 1
    is_default: bool = False
    product_id: Optional[int] = None


@dataclass
class BundleOption:
    title: str
    input_type: str = 'select'
    required: bool = True
    selections: List[BundleSelection] = field(default_factory=list)


@dataclass
class DownloadLink:
    title: str
    url: str
    number_of_downloads: int = 0


@dataclass
class DownloadSample:
    title: str
    url: str


@dataclass
class UrlRewriteInfo:
    product_id: int
    request_path: str
    target_path: str
    redirect_type: int
    store_id: int
    metadata: Optional[Dict[str, str]] = None
    autogenerated: int = 1

    @property
    def category_id(self) -> Optional[str]:
        if not self.metadata:
            return None
        return self.metadata.get('category_id')


@dataclass
class CategoryInfo:
    """A category as seen by the rewrite engine.

    path lists the ids from the store's root category down to this category;
    the tree root (id 1) is not part of it. url_keys maps store id to url key,
    store 0 holding the global key.
    """
    category_id: int
    path: List[int]
    url_keys: Dict[int, str] = field(default_factory=dict)

    def url_key(self, store_id: int) -> Optional[str]:
        if store_id in self.url_keys:
            return self.url_keys[store_id]
        return self.url_keys.get(0)


class ProductStoreView:
    """The attribute values of a product for one store view."""

    ATTR_NAME = 'name'
    ATTR_URL_KEY = 'url_key'
    ATTR_TAX_CLASS_ID = 'tax_class_id'

    def __init__(self, code: str):
        self.code = code
        self.store_view_id: Resolution = Unresolved(code)
        # plain attribute values by attribute code
        self.attributes: Dict[str, Any] = {}
        # symbolic references by attribute code
        self.references: Dict[str, Resolution] = {}
        self.selects: Dict[str, Resolution] = {}
        self.multi_selects: Dict[str, Resolution] = {}

    def get_store_view_id(self) -> Optional[int]:
        return resolved_value(self.store_view_id)

    def set_attribute(self, code: str, value: Any) -> None:
        self.attributes[code] = value

    def get_attribute(self, code: str, default=None):
        return self.attributes.get(code, default)

    def remove_attribute(self, code: str) -> None:
        self.attributes.pop(code, None)

    def set_name(self, name: Optional[str]) -> None:
        self.set_attribute(self.ATTR_NAME, name)

    def get_name(self) -> Optional[str]:
        return self.attributes.get(self.ATTR_NAME)

    def set_url_key(self, url_key: Optional[str]) -> None:
        self.set_attribute(self.ATTR_URL_KEY, url_key)

    def get_url_key(self) -> Optional[str]:
        return self.attributes.get(self.ATTR_URL_KEY)

    def set_status(self, status: int) -> None:
        self.set_attribute('status', status)

    def set_visibility(self, visibility: int) -> None:
        self.set_attribute('visibility', visibility)

    def set_price(self, price) -> None:
        self.set_attribute('price', price)

    def set_weight(self, weight) -> None:
        self.set_attribute('weight', weight)

    def set_description(self, description: Optional[str]) -> None:
        self.set_attribute('description', description)

    def set_tax_class_name(self, name: str) -> None:
        self.references[self.ATTR_TAX_CLASS_ID] = Unresolved(name)

    def set_tax_class_id(self, tax_class_id: int) -> None:
        self.references[self.ATTR_TAX_CLASS_ID] = Resolved(tax_class_id)

    def set_select_option(self, attribute_code: str, label: str) -> None:
        self.selects[attribute_code] = Unresolved(label)

    def set_multiple_select_options(self, attribute_code: str, labels: List[str]) -> None:
        self.multi_selects[attribute_code] = Unresolved(list(labels))

    def eav_values(self) -> Dict[str, Any]:
        """All values to be written to the EAV tables, references included once resolved."""
        values = dict(self.attributes)
        for code, resolution in self.references.items():
            if resolution.is_resolved():
                values[code] = resolution.value
        for code, resolution in self.selects.items():
            if resolution.is_resolved():
                values[code] = resolution.value
        for code, resolution in self.multi_selects.items():
            if resolution.is_resolved():
                values[code] = ','.join(str(option_id) for option_id in resolution.value)
        return values


class Product:
    """Base class of all product types.

    Product-level references live in `references`, keyed by the id field
    they resolve to: attribute_set_id, category_ids and website_ids.
    """

    TYPE = None

    ATTRIBUTE_SET_ID = 'attribute_set_id'
    CATEGORY_IDS = 'category_ids'
    WEBSITE_IDS = 'website_ids'

    LINK_RELATED = 'related'
    LINK_UP_SELL = 'up_sell'
    LINK_CROSS_SELL = 'cross_sell'

    def __init__(self, sku: str):
        self.id: Optional[int] = None
        self.sku = sku
        self.references: Dict[str, Resolution] = {}
        self.store_views: Dict[str, ProductStoreView] = {}
        self.links: Dict[str, Resolution] = {}
        self.tier_prices: Optional[List[TierPrice]] = None
        self.errors: List[ProductError] = []

    def get_type(self) -> str:
        return self.TYPE

    # Errors

    def add_error(self, message: str, field: Optional[str] = None) -> None:
        self.errors.append(ProductError(message, field))

    def is_ok(self) -> bool:
        return not self.errors

    def get_error_messages(self) -> List[str]:
        return [error.message for error in self.errors]

    # Store views

    def global_store_view(self) -> ProductStoreView:
        return self.store_view(GLOBAL_STORE_VIEW_CODE)

    def store_view(self, code: str) -> ProductStoreView:
        """The store view with this code, created on first use."""
        if code not in self.store_views:
            self.store_views[code] = ProductStoreView(code)
        return self.store_views[code]

    def get_store_views(self) -> List[ProductStoreView]:
        return list(self.store_views.values())

    # Product level references

    def set_attribute_set_by_name(self, name: str) -> None:
        self.references[self.ATTRIBUTE_SET_ID] = Unresolved(name)

    def set_attribute_set_id(self, attribute_set_id: int) -> None:
        self.references[self.ATTRIBUTE_SET_ID] = Resolved(attribute_set_id)

    def get_attribute_set_id(self) -> Optional[int]:
        return resolved_value(self.references.get(self.ATTRIBUTE_SET_ID))

    def add_category_paths(self, paths: List[str]) -> None:
        self.references[self.CATEGORY_IDS] = Unresolved(list(paths))

    def set_category_ids(self, category_ids: List[int]) -> None:
        self.references[self.CATEGORY_IDS] = Resolved(list(category_ids))

    def get_category_ids(self) -> List[int]:
        return resolved_value(self.references.get(self.CATEGORY_IDS), [])

    def set_website_codes(self, codes: List[str]) -> None:
        self.references[self.WEBSITE_IDS] = Unresolved(list(codes))

    def set_website_ids(self, website_ids: List[int]) -> None:
        self.references[self.WEBSITE_IDS] = Resolved(list(website_ids))

    def get_website_ids(self) -> List[int]:
        return resolved_value(self.references.get(self.WEBSITE_IDS), [])

    # Linked products

    def set_related_product_skus(self, skus: List[str]) -> None:
        self.links[self.LINK_RELATED] = Unresolved(list(skus))

    def set_up_sell_product_skus(self, skus: List[str]) -> None:
        self.links[self.LINK_UP_SELL] = Unresolved(list(skus))

    def set_cross_sell_product_skus(self, skus: List[str]) -> None:
        self.links[self.LINK_CROSS_SELL] = Unresolved(list(skus))

    def set_tier_prices(self, tier_prices: List[TierPrice]) -> None:
        self.tier_prices = list(tier_prices)

    def has_options(self) -> bool:
        return False

    def __repr__(self):
        return f"<{self.__class__.__name__}(sku='{self.sku}', id={self.id})>"


class SimpleProduct(Product):
    TYPE = 'simple'


class VirtualProduct(Product):
    TYPE = 'virtual'


class DownloadableProduct(Product):
    TYPE = 'downloadable'

    def __init__(self, sku: str):
        super().__init__(sku)
        self.download_links: Optional[List[DownloadLink]] = None
        self.download_samples: Optional[List[DownloadSample]] = None

    def set_download_links(self, links: List[DownloadLink]) -> None:
        self.download_links = list(links)

    def set_download_samples(self, samples: List[DownloadSample]) -> None:
        self.download_samples = list(samples)


class GroupedProduct(Product):
    TYPE = 'grouped'

    def __init__(self, sku: str):
        super().__init__(sku)
        self.members: Optional[List[GroupedMember]] = None

    def set_members(self, members: List[GroupedMember]) -> None:
        self.members = list(members)


class BundleProduct(Product):
    TYPE = 'bundle'

    def __init__(self, sku: str):
        super().__init__(sku)
        self.options: Optional[List[BundleOption]] = None

    def set_options(self, options: List[BundleOption]) -> None:
        self.options = list(options)

    def has_options(self) -> bool:
        return True


class ConfigurableProduct(Product):
    TYPE = 'configurable'

    def __init__(self, sku: str):
        super().__init__(sku)
        self.variants: Optional[Resolution] = None

    def set_variant_skus(self, skus: List[str]) -> None:
        self.variants = Unresolved(list(skus))

    def get_variant_ids(self) -> List[int]:
        return resolved_value(self.variants, [])

    def has_options(self) -> bool:
        return True


PRODUCT_TYPES = {
    product_class.TYPE: product_class
    for product_class in (SimpleProduct, VirtualProduct, DownloadableProduct,
                          GroupedProduct, BundleProduct, ConfigurableProduct)
}
