from .reference_resolver import ReferenceResolver
from .name_resolvers import (
    AttributeSetResolver, CustomerGroupResolver, NameResolver, StoreViewResolver, TaxClassResolver, WebsiteResolver,
)
from .category_importer import CategoryImporter
from .option_resolver import OptionResolver

__all__ = [
    'ReferenceResolver',
    'NameResolver',
    'AttributeSetResolver',
    'CustomerGroupResolver',
    'StoreViewResolver',
    'TaxClassResolver',
    'WebsiteResolver',
    'CategoryImporter',
    'OptionResolver',
]
