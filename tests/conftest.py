"""Pytest configuration and fixtures for the test suite."""
import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from product_import.config import ImportConfig
from product_import.context import ImportContext
from product_import.importer import Importer
from product_import.models import (
    ENTITY_TYPE_CATEGORY, ENTITY_TYPE_PRODUCT, PRODUCT_VALUE_TABLES,
    AttributeOption, AttributeOptionValue, AttributeSet, Base, CategoryEntity, CategoryProduct, CategoryVarchar,
    ConfigData, CustomerGroup, EavAttribute, ProductEntity, StoreView, TaxClass, UrlRewrite, UrlRewriteProductCategory,
    Website,
)

DEFAULT_ATTRIBUTE_SET_ID = 4
TAXABLE_GOODS_ID = 2

# Category tree: 1 (tree root) / 2 Default Category / 3 Men / 4 Shoes
DEFAULT_CATEGORY_ID = 2
MEN_CATEGORY_ID = 3
SHOES_CATEGORY_ID = 4

PRODUCT_ATTRIBUTES = [
    # code, backend type, frontend input
    ('name', 'varchar', 'text'),
    ('url_key', 'varchar', 'text'),
    ('status', 'int', 'select'),
    ('visibility', 'int', 'select'),
    ('price', 'decimal', 'price'),
    ('weight', 'decimal', 'weight'),
    ('description', 'text', 'textarea'),
    ('tax_class_id', 'int', 'select'),
    ('color', 'int', 'select'),
    ('material', 'varchar', 'multiselect'),
    ('news_from_date', 'datetime', 'date'),
    ('sku', 'static', 'text'),
]


def seed_catalog(session):
    session.add_all([
        Website(website_id=0, code='admin', name='Admin'),
        Website(website_id=1, code='base', name='Main Website'),
        StoreView(store_id=0, code='admin', website_id=0, name='Admin'),
        StoreView(store_id=1, code='default', website_id=1, name='Default Store View'),
        StoreView(store_id=2, code='nl', website_id=1, name='Nederlands'),
        AttributeSet(attribute_set_id=3, entity_type=ENTITY_TYPE_CATEGORY, attribute_set_name='Default'),
        AttributeSet(attribute_set_id=DEFAULT_ATTRIBUTE_SET_ID, entity_type=ENTITY_TYPE_PRODUCT, attribute_set_name='Default'),
        AttributeSet(attribute_set_id=9, entity_type=ENTITY_TYPE_PRODUCT, attribute_set_name='Clothing'),
        TaxClass(class_id=TAXABLE_GOODS_ID, class_name='Taxable Goods', class_type='PRODUCT'),
        TaxClass(class_id=3, class_name='Retail Customer', class_type='CUSTOMER'),
        CustomerGroup(customer_group_id=0, customer_group_code='NOT LOGGED IN'),
        CustomerGroup(customer_group_id=1, customer_group_code='General'),
        ConfigData(scope='default', scope_id=0, path='catalog/seo/product_url_suffix', value='.html'),
    ])

    attributes = {}
    for code, backend_type, frontend_input in PRODUCT_ATTRIBUTES:
        attribute = EavAttribute(entity_type=ENTITY_TYPE_PRODUCT, attribute_code=code,
                                 backend_type=backend_type, frontend_input=frontend_input)
        session.add(attribute)
        attributes[code] = attribute
    category_name = EavAttribute(entity_type=ENTITY_TYPE_CATEGORY, attribute_code='name', backend_type='varchar')
    category_url_key = EavAttribute(entity_type=ENTITY_TYPE_CATEGORY, attribute_code='url_key', backend_type='varchar')
    session.add_all([category_name, category_url_key])
    session.flush()

    for option_id, label in ((10, 'Red'), (11, 'Blue')):
        session.add(AttributeOption(option_id=option_id, attribute_id=attributes['color'].attribute_id))
        session.add(AttributeOptionValue(option_id=option_id, store_id=0, value=label))
    for option_id, label in ((20, 'Cotton'), (21, 'Wool')):
        session.add(AttributeOption(option_id=option_id, attribute_id=attributes['material'].attribute_id))
        session.add(AttributeOptionValue(option_id=option_id, store_id=0, value=label))

    categories = [
        # id, parent, path, level, name, url key
        (1, 0, '1', 0, 'Root Catalog', None),
        (DEFAULT_CATEGORY_ID, 1, '1/2', 1, 'Default Category', 'default-category'),
        (MEN_CATEGORY_ID, 2, '1/2/3', 2, 'Men', 'men'),
        (SHOES_CATEGORY_ID, 3, '1/2/3/4', 3, 'Shoes', 'shoes'),
    ]
    for category_id, parent_id, path, level, name, url_key in categories:
        session.add(CategoryEntity(entity_id=category_id, attribute_set_id=3, parent_id=parent_id,
                                   path=path, level=level, children_count=1 if level < 3 else 0))
        session.add(CategoryVarchar(entity_id=category_id, attribute_id=category_name.attribute_id,
                                    store_id=0, value=name))
        if url_key:
            session.add(CategoryVarchar(entity_id=category_id, attribute_id=category_url_key.attribute_id,
                                        store_id=0, value=url_key))
    # Dutch url key for Men
    session.add(CategoryVarchar(entity_id=MEN_CATEGORY_ID, attribute_id=category_url_key.attribute_id,
                                store_id=2, value='heren'))
    session.commit()


class CatalogReader:
    """Read helpers for assertions on the stored catalog."""

    def __init__(self, session):
        self.session = session

    def attribute(self, code):
        return self.session.execute(
            select(EavAttribute).where(EavAttribute.entity_type == ENTITY_TYPE_PRODUCT,
                                       EavAttribute.attribute_code == code)
        ).scalar_one()

    def product(self, sku):
        return self.session.execute(
            select(ProductEntity).where(ProductEntity.sku == sku).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def value(self, product_id, code, store_id=0):
        attribute = self.attribute(code)
        table = PRODUCT_VALUE_TABLES[attribute.backend_type]
        return self.session.execute(
            select(table.c.value).where(
                table.c.entity_id == product_id,
                table.c.attribute_id == attribute.attribute_id,
                table.c.store_id == store_id
            )
        ).scalar_one_or_none()

    def rewrites(self, product_id, store_id=None):
        # rows change through Core statements; refresh instances the session already holds
        query = (select(UrlRewrite).where(UrlRewrite.entity_id == product_id)
                 .order_by(UrlRewrite.url_rewrite_id).execution_options(populate_existing=True))
        if store_id is not None:
            query = query.where(UrlRewrite.store_id == store_id)
        return list(self.session.execute(query).scalars())

    def request_paths(self, product_id, store_id):
        return sorted(rewrite.request_path for rewrite in self.rewrites(product_id, store_id))

    def all_rewrites(self):
        return list(self.session.execute(
            select(UrlRewrite).order_by(UrlRewrite.url_rewrite_id).execution_options(populate_existing=True)
        ).scalars())

    def category_index(self, product_id):
        return list(self.session.execute(
            select(UrlRewriteProductCategory.url_rewrite_id, UrlRewriteProductCategory.category_id)
            .where(UrlRewriteProductCategory.product_id == product_id)
        ))

    def category_ids(self, product_id):
        return sorted(self.session.execute(
            select(CategoryProduct.category_id).where(CategoryProduct.product_id == product_id)
        ).scalars())

    def count(self, model):
        return len(self.session.execute(select(model)).all())


@pytest.fixture
def engine():
    """In-memory SQLite database with a seeded catalog."""
    engine = create_engine(
        'sqlite://',
        poolclass=StaticPool,
        connect_args={'check_same_thread': False},
        echo=False
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    seed_catalog(session)
    session.close()
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a database session for a test."""
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def catalog(db_session):
    return CatalogReader(db_session)


@pytest.fixture
def context(db_session):
    return ImportContext.load(db_session, ImportConfig())


@pytest.fixture
def results():
    """Collects the products passed to the result callback."""
    return []


@pytest.fixture
def make_importer(db_session, results):
    """Factory for importers that report to the results fixture."""
    def factory(**options):
        config = ImportConfig(result_callbacks=[results.append], **options)
        return Importer(db_session, config)
    return factory
