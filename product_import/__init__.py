"""
Bulk product importer for an EAV catalog schema.

This package resolves the symbolic references of imported products
(category paths, attribute set names, store view codes, option labels,
skus of other products), stores products in transactional batches and
keeps the url rewrites of the stored products up to date.
"""

from .config import Config, DuplicateUrlKeyStrategy, ImportConfig, ProductTypeChange, UrlKeyScheme
from .data import (
    BundleOption, BundleProduct, BundleSelection, ConfigurableProduct, DownloadableProduct, DownloadLink,
    DownloadSample, GroupedMember, GroupedProduct, Product, ProductStoreView, SimpleProduct, TierPrice,
    VirtualProduct,
)
from .database import DatabaseManager
from .exceptions import ImportConfigurationError, ProductImportError, ReferenceResolutionError
from .importer import Importer

__all__ = [
    'Config',
    'ImportConfig',
    'UrlKeyScheme',
    'DuplicateUrlKeyStrategy',
    'ProductTypeChange',
    'Product',
    'ProductStoreView',
    'SimpleProduct',
    'VirtualProduct',
    'DownloadableProduct',
    'GroupedProduct',
    'BundleProduct',
    'ConfigurableProduct',
    'TierPrice',
    'GroupedMember',
    'BundleOption',
    'BundleSelection',
    'DownloadLink',
    'DownloadSample',
    'DatabaseManager',
    'Importer',
    'ProductImportError',
    'ReferenceResolutionError',
    'ImportConfigurationError',
]
