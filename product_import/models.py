"""
Database Models for the Product Importer

This module contains SQLAlchemy models for the catalog schema the importer
writes to: the product entity table, its EAV value tables, link tables,
url rewrites and the lookup tables references are resolved against.
"""

from sqlalchemy import Column, Integer, SmallInteger, String, Text, DateTime, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, declared_attr
from sqlalchemy.sql import func

Base = declarative_base()

ENTITY_TYPE_PRODUCT = 'catalog_product'
ENTITY_TYPE_CATEGORY = 'catalog_category'

# Link types of catalog_product_link
LINK_TYPE_RELATED = 1
LINK_TYPE_GROUPED = 3
LINK_TYPE_UP_SELL = 4
LINK_TYPE_CROSS_SELL = 5


# Lookup tables

class Website(Base):
    __tablename__ = 'store_website'

    website_id = Column(Integer, primary_key=True)
    code = Column(String(32), unique=True, nullable=False)
    name = Column(String(64))

    def __repr__(self):
        return f"<Website(id={self.website_id}, code='{self.code}')>"


class StoreView(Base):
    __tablename__ = 'store'

    store_id = Column(Integer, primary_key=True, autoincrement=False)
    code = Column(String(32), unique=True, nullable=False)
    website_id = Column(Integer, nullable=False, default=0)
    name = Column(String(255))

    def __repr__(self):
        return f"<StoreView(id={self.store_id}, code='{self.code}')>"


class AttributeSet(Base):
    __tablename__ = 'eav_attribute_set'

    attribute_set_id = Column(Integer, primary_key=True)
    entity_type = Column(String(50), nullable=False, default=ENTITY_TYPE_PRODUCT)
    attribute_set_name = Column(String(255), nullable=False)

    __table_args__ = (
        UniqueConstraint('entity_type', 'attribute_set_name', name='uq_attribute_set_entity_type_name'),
    )


class EavAttribute(Base):
    """Attribute metadata; backend_type names the value table of the attribute."""
    __tablename__ = 'eav_attribute'

    attribute_id = Column(Integer, primary_key=True)
    entity_type = Column(String(50), nullable=False, default=ENTITY_TYPE_PRODUCT)
    attribute_code = Column(String(255), nullable=False)
    backend_type = Column(String(8), nullable=False, default='static')
    frontend_input = Column(String(50))

    __table_args__ = (
        UniqueConstraint('entity_type', 'attribute_code', name='uq_eav_attribute_entity_type_code'),
    )

    def __repr__(self):
        return f"<EavAttribute(id={self.attribute_id}, code='{self.attribute_code}', backend='{self.backend_type}')>"


class AttributeOption(Base):
    __tablename__ = 'eav_attribute_option'

    option_id = Column(Integer, primary_key=True)
    attribute_id = Column(Integer, nullable=False, index=True)
    sort_order = Column(Integer, nullable=False, default=0)


class AttributeOptionValue(Base):
    __tablename__ = 'eav_attribute_option_value'

    value_id = Column(Integer, primary_key=True)
    option_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False, default=0)
    value = Column(String(255))


class TaxClass(Base):
    __tablename__ = 'tax_class'

    class_id = Column(Integer, primary_key=True)
    class_name = Column(String(255), nullable=False)
    class_type = Column(String(8), nullable=False, default='PRODUCT')


class CustomerGroup(Base):
    __tablename__ = 'customer_group'

    customer_group_id = Column(Integer, primary_key=True, autoincrement=False)
    customer_group_code = Column(String(32), unique=True, nullable=False)


class ConfigData(Base):
    """Store settings (catalog/seo/product_url_suffix and friends)."""
    __tablename__ = 'core_config_data'

    config_id = Column(Integer, primary_key=True)
    scope = Column(String(8), nullable=False, default='default')
    scope_id = Column(Integer, nullable=False, default=0)
    path = Column(String(255), nullable=False)
    value = Column(Text)

    __table_args__ = (
        UniqueConstraint('scope', 'scope_id', 'path', name='uq_core_config_data_scope_path'),
    )


# Product entity and its EAV values

class ProductEntity(Base):
    __tablename__ = 'catalog_product_entity'

    entity_id = Column(Integer, primary_key=True)
    attribute_set_id = Column(Integer, nullable=False, default=0)
    type_id = Column(String(32), nullable=False, default='simple')
    sku = Column(String(64), unique=True, nullable=False)
    has_options = Column(SmallInteger, nullable=False, default=0)
    required_options = Column(SmallInteger, nullable=False, default=0)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProductEntity(id={self.entity_id}, sku='{self.sku}', type='{self.type_id}')>"


class ProductEavValueMixin:
    """Columns shared by all product value tables: one row per (entity, attribute, store)."""

    value_id = Column(Integer, primary_key=True)
    entity_id = Column(Integer, nullable=False, index=True)
    attribute_id = Column(Integer, nullable=False)
    store_id = Column(Integer, nullable=False, default=0)

    @declared_attr
    def __table_args__(cls):
        return (
            UniqueConstraint('entity_id', 'attribute_id', 'store_id', name=f'uq_{cls.__tablename__}_entity_attribute_store'),
        )


class ProductVarchar(ProductEavValueMixin, Base):
    __tablename__ = 'catalog_product_entity_varchar'
    value = Column(String(255))


class ProductInt(ProductEavValueMixin, Base):
    __tablename__ = 'catalog_product_entity_int'
    value = Column(Integer)


class ProductDecimal(ProductEavValueMixin, Base):
    __tablename__ = 'catalog_product_entity_decimal'
    value = Column(Numeric(20, 6))


class ProductText(ProductEavValueMixin, Base):
    __tablename__ = 'catalog_product_entity_text'
    value = Column(Text)


class ProductDatetime(ProductEavValueMixin, Base):
    __tablename__ = 'catalog_product_entity_datetime'
    value = Column(DateTime)


PRODUCT_VALUE_TABLES = {
    'varchar': ProductVarchar.__table__,
    'int': ProductInt.__table__,
    'decimal': ProductDecimal.__table__,
    'text': ProductText.__table__,
    'datetime': ProductDatetime.__table__,
}


# Categories

class CategoryEntity(Base):
    """Category tree node; path holds the ids from the tree root to the node, '/'-separated."""
    __tablename__ = 'catalog_category_entity'

    entity_id = Column(Integer, primary_key=True)
    attribute_set_id = Column(Integer, nullable=False, default=0)
    parent_id = Column(Integer, nullable=False, default=0)
    path = Column(String(255), nullable=False, default='')
    position = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=0)
    children_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index('idx_category_parent', 'parent_id'),
    )

    def __repr__(self):
        return f"<CategoryEntity(id={self.entity_id}, path='{self.path}')>"


class CategoryVarchar(Base):
    __tablename__ = 'catalog_category_entity_varchar'

    value_id = Column(Integer, primary_key=True)
    entity_id = Column(Integer, nullable=False, index=True)
    attribute_id = Column(Integer, nullable=False)
    store_id = Column(Integer, nullable=False, default=0)
    value = Column(String(255))

    __table_args__ = (
        UniqueConstraint('entity_id', 'attribute_id', 'store_id', name='uq_category_varchar_entity_attribute_store'),
    )


# Product links

class CategoryProduct(Base):
    __tablename__ = 'catalog_category_product'

    entity_id = Column(Integer, primary_key=True)
    category_id = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('category_id', 'product_id', name='uq_category_product'),
    )


class ProductWebsite(Base):
    __tablename__ = 'catalog_product_website'

    product_id = Column(Integer, primary_key=True, autoincrement=False)
    website_id = Column(Integer, primary_key=True, autoincrement=False)


class ProductLink(Base):
    """Related, up-sell, cross-sell and grouped member links."""
    __tablename__ = 'catalog_product_link'

    link_id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    linked_product_id = Column(Integer, nullable=False)
    link_type_id = Column(SmallInteger, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    qty = Column(Numeric(12, 4))

    __table_args__ = (
        UniqueConstraint('link_type_id', 'product_id', 'linked_product_id', name='uq_product_link_type_product_linked'),
    )


class ProductSuperLink(Base):
    """Configurable product -> variant."""
    __tablename__ = 'catalog_product_super_link'

    link_id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False)
    parent_id = Column(Integer, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('product_id', 'parent_id', name='uq_super_link_product_parent'),
    )


class ProductRelation(Base):
    __tablename__ = 'catalog_product_relation'

    parent_id = Column(Integer, primary_key=True, autoincrement=False)
    child_id = Column(Integer, primary_key=True, autoincrement=False)


class BundleOption(Base):
    __tablename__ = 'catalog_product_bundle_option'

    option_id = Column(Integer, primary_key=True)
    parent_id = Column(Integer, nullable=False, index=True)
    required = Column(SmallInteger, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(255))
    title = Column(String(255))


class BundleSelection(Base):
    __tablename__ = 'catalog_product_bundle_selection'

    selection_id = Column(Integer, primary_key=True)
    option_id = Column(Integer, nullable=False, index=True)
    parent_product_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_default = Column(SmallInteger, nullable=False, default=0)
    selection_qty = Column(Numeric(12, 4))


class DownloadableLink(Base):
    __tablename__ = 'downloadable_link'

    link_id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255))
    link_url = Column(String(255))
    sort_order = Column(Integer, nullable=False, default=0)
    number_of_downloads = Column(Integer)


class DownloadableSample(Base):
    __tablename__ = 'downloadable_sample'

    sample_id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255))
    sample_url = Column(String(255))
    sort_order = Column(Integer, nullable=False, default=0)


class TierPrice(Base):
    __tablename__ = 'catalog_product_entity_tier_price'

    value_id = Column(Integer, primary_key=True)
    entity_id = Column(Integer, nullable=False, index=True)
    all_groups = Column(SmallInteger, nullable=False, default=1)
    customer_group_id = Column(Integer, nullable=False, default=0)
    qty = Column(Numeric(12, 4), nullable=False, default=1)
    value = Column(Numeric(20, 6), nullable=False)
    website_id = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('entity_id', 'all_groups', 'customer_group_id', 'qty', 'website_id',
                         name='uq_tier_price_entity_group_qty_website'),
    )


# Url rewrites

class UrlRewrite(Base):
    __tablename__ = 'url_rewrite'

    url_rewrite_id = Column(Integer, primary_key=True)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(Integer, nullable=False)
    request_path = Column(String(255))
    target_path = Column(String(255))
    redirect_type = Column(SmallInteger, nullable=False, default=0)
    store_id = Column(Integer, nullable=False)
    description = Column(String(255))
    is_autogenerated = Column(SmallInteger, nullable=False, default=0)
    metadata_ = Column('metadata', String(255))

    __table_args__ = (
        UniqueConstraint('request_path', 'store_id', name='uq_url_rewrite_request_path_store'),
        Index('idx_url_rewrite_store_entity', 'store_id', 'entity_id'),
    )

    def __repr__(self):
        return f"<UrlRewrite(id={self.url_rewrite_id}, request_path='{self.request_path}', store={self.store_id})>"


class UrlRewriteProductCategory(Base):
    __tablename__ = 'catalog_url_rewrite_product_category'

    url_rewrite_id = Column(Integer, primary_key=True, autoincrement=False)
    category_id = Column(Integer, primary_key=True, autoincrement=False)
    product_id = Column(Integer, primary_key=True, autoincrement=False)
