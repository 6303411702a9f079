"""Tests for the batch persistence engine."""
import pytest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from product_import.config import ImportConfig
from product_import.data import (
    BundleOption, BundleProduct, BundleSelection, ConfigurableProduct, GroupedMember, GroupedProduct,
    SimpleProduct, TierPrice, Unresolved,
)
from product_import.exceptions import ReferenceResolutionError
from product_import.models import (
    CategoryEntity, CategoryProduct, ProductEntity, ProductLink, ProductRelation, ProductSuperLink, ProductVarchar,
    ProductWebsite, TierPrice as TierPriceRow, UrlRewrite, BundleOption as BundleOptionRow,
    BundleSelection as BundleSelectionRow,
)
from product_import.storage.product_storage import ProductStorage
from product_import.storage.url_rewrite_storage import UrlRewriteStorage

from conftest import DEFAULT_ATTRIBUTE_SET_ID, MEN_CATEGORY_ID, SHOES_CATEGORY_ID, TAXABLE_GOODS_ID


def simple(sku, name, category_paths=None, **attributes):
    product = SimpleProduct(sku)
    product.set_attribute_set_by_name('Default')
    product.set_website_codes(['base'])
    if category_paths is not None:
        product.add_category_paths(category_paths)
    store_view = product.global_store_view()
    store_view.set_name(name)
    store_view.set_price(attributes.pop('price', '10.00'))
    for code, value in attributes.items():
        store_view.set_attribute(code, value)
    return product


@pytest.fixture
def store(db_session, context, results):
    """Store products with a fresh ProductStorage."""
    def store_products(products, **options):
        config = ImportConfig(result_callbacks=[results.append], **options)
        ProductStorage(db_session, context, config).store_products(products)
        return products
    return store_products


class TestInsertAndUpdate:
    """Test the main table and EAV writes."""

    def test_new_product_is_inserted(self, store, catalog):
        """A new sku gets a main table row and its attribute values."""
        product = simple('ABC', 'Red Hat')
        product.global_store_view().set_tax_class_name('Taxable Goods')
        store([product])

        assert product.is_ok(), product.get_error_messages()
        row = catalog.product('ABC')
        assert row.entity_id == product.id
        assert row.type_id == 'simple'
        assert row.attribute_set_id == DEFAULT_ATTRIBUTE_SET_ID
        assert row.has_options == 0
        assert catalog.value(product.id, 'name') == 'Red Hat'
        assert catalog.value(product.id, 'url_key') == 'red-hat'
        assert catalog.value(product.id, 'tax_class_id') == TAXABLE_GOODS_ID

    def test_existing_product_is_updated(self, store, catalog):
        """Re-importing a sku updates its values and keeps its id."""
        first = simple('ABC', 'Red Hat')
        store([first])

        second = simple('ABC', 'Red Hat', price='12.50')
        second.store_view('nl').set_name('Rode Hoed')
        store([second])

        assert second.id == first.id
        assert float(catalog.value(first.id, 'price')) == 12.5
        assert catalog.value(first.id, 'name', store_id=2) == 'Rode Hoed'
        assert catalog.count(ProductEntity) == 1

    def test_update_without_attribute_set_keeps_stored_one(self, store, catalog):
        """An existing product may omit its attribute set."""
        product = simple('ABC', 'Red Hat')
        product.set_attribute_set_by_name('Clothing')
        store([product])

        update = SimpleProduct('ABC')
        update.global_store_view().set_price('15.00')
        store([update])

        assert update.is_ok(), update.get_error_messages()
        assert catalog.product('ABC').attribute_set_id == 9

    def test_same_new_sku_twice_in_batch(self, store, catalog):
        """Two payloads for one new sku create one product."""
        global_values = simple('ABC', 'Red Hat')
        store_values = SimpleProduct('ABC')
        store_values.set_attribute_set_by_name('Default')
        store_values.global_store_view().set_name('Red Hat')
        store_values.store_view('nl').set_name('Rode Hoed')

        store([global_values, store_values])

        assert catalog.count(ProductEntity) == 1
        assert global_values.id == store_values.id
        assert catalog.value(global_values.id, 'name', store_id=2) == 'Rode Hoed'

    def test_configurable_has_options(self, store, catalog):
        """Bundle and configurable products are flagged as having options."""
        product = ConfigurableProduct('CONF')
        product.set_attribute_set_by_name('Default')
        product.global_store_view().set_name('Conf Shirt')
        store([product])

        row = catalog.product('CONF')
        assert row.has_options == 1
        assert row.required_options == 1

    def test_links_to_categories_and_websites(self, store, catalog, db_session):
        """Category and website links are written once, even when imported twice."""
        product = simple('ABC', 'Red Hat', ['Default Category/Men/Shoes'])
        store([product])
        store([simple('ABC', 'Red Hat', ['Default Category/Men/Shoes'])])

        assert catalog.category_ids(product.id) == [SHOES_CATEGORY_ID]
        assert catalog.count(ProductWebsite) == 1

    def test_unknown_category_id_is_not_linked(self, store, catalog):
        """Links to categories that do not exist are skipped."""
        product = simple('ABC', 'Red Hat')
        product.set_category_ids([MEN_CATEGORY_ID, 999])
        store([product])

        assert product.is_ok()
        assert catalog.category_ids(product.id) == [MEN_CATEGORY_ID]


class TestErrorIsolation:
    """Test that product errors only exclude the product concerned."""

    def test_unresolvable_category_only_fails_its_product(self, store, catalog):
        """The other products of the batch are stored."""
        good = simple('GOOD', 'Good Hat', ['Default Category/Men'])
        bad = simple('BAD', 'Bad Hat', ['Default Category/Women'])

        store([good, bad], auto_create_categories=False)

        assert good.is_ok()
        assert not bad.is_ok()
        assert bad.id is None
        assert catalog.product('GOOD') is not None
        assert catalog.product('BAD') is None
        assert bad.get_error_messages() == ['category not found: Default Category/Women']

    def test_validation_errors(self, store, catalog):
        """New products need a name and an attribute set."""
        no_name = SimpleProduct('NONAME')
        no_name.set_attribute_set_by_name('Default')
        no_set = SimpleProduct('NOSET')
        no_set.global_store_view().set_name('No Set')
        long_sku = simple('X' * 65, 'Long')

        store([no_name, no_set, long_sku])

        assert 'missing name' in no_name.get_error_messages()
        assert 'missing attribute set id' in no_set.get_error_messages()
        assert long_sku.errors[0].field == 'sku'
        assert catalog.count(ProductEntity) == 0

    def test_unknown_attribute_code(self, store):
        """Values for attributes that do not exist are rejected."""
        product = simple('ABC', 'Red Hat', shoe_size='42')
        store([product])

        assert product.get_error_messages() == ['attribute not found: shoe_size']

    def test_unknown_store_view(self, store, catalog):
        """A store view code that does not exist fails the product."""
        product = simple('ABC', 'Red Hat')
        product.store_view('fr').set_name('Chapeau Rouge')
        store([product])

        assert product.get_error_messages() == ['store view code not found: fr']
        assert product.store_views['fr'].get_store_view_id() is None
        assert catalog.product('ABC') is None


class TestAtomicity:
    """Test that a failing batch leaves nothing behind."""

    def test_failure_before_rewrites_rolls_back_batch(self, store, catalog, results):
        """Main, EAV and link rows of the batch disappear; the exception reaches the caller."""
        products = [simple('ABC', 'Red Hat', ['Default Category/Men']), simple('DEF', 'Blue Hat')]

        with patch.object(UrlRewriteStorage, 'update_rewrites', side_effect=OperationalError('INSERT', {}, Exception('lost'))):
            with pytest.raises(OperationalError):
                store(products)

        assert catalog.count(ProductEntity) == 0
        assert catalog.count(ProductVarchar) == 0
        assert catalog.count(CategoryProduct) == 0
        assert catalog.count(ProductWebsite) == 0
        assert catalog.count(UrlRewrite) == 0
        assert results == []

    def test_failed_update_keeps_previous_state(self, store, catalog):
        """An update that fails leaves the stored values as they were."""
        product = simple('ABC', 'Red Hat')
        store([product])

        with patch.object(UrlRewriteStorage, 'update_rewrites', side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                store([simple('ABC', 'Blue Hat')])

        assert catalog.value(product.id, 'name') == 'Red Hat'
        assert catalog.request_paths(product.id, 1) == ['red-hat.html']

    def test_categories_of_failed_resolution_are_forgotten(self, db_session, context, catalog):
        """A category created by a batch that failed while resolving is created again by the next batch."""
        storage = ProductStorage(db_session, context, ImportConfig())
        broken = simple('DEF', 'Blue Hat')
        broken.references['brand_id'] = Unresolved('Acme')

        with pytest.raises(ReferenceResolutionError):
            storage.store_products([simple('ABC', 'Red Hat', ['Default Category/Men/Boots']), broken])
        assert catalog.count(CategoryEntity) == 4

        product = simple('GHI', 'Green Hat', ['Default Category/Men/Boots'])
        storage.store_products([product])

        assert product.is_ok(), product.get_error_messages()
        category_id, = catalog.category_ids(product.id)
        category = db_session.get(CategoryEntity, category_id)
        assert category is not None
        assert category.parent_id == MEN_CATEGORY_ID
        assert context.category_info[category_id].path[-1] == category_id


class TestDryRunAndCallbacks:
    """Test dry runs and result callbacks."""

    def test_dry_run_writes_nothing(self, store, catalog, results):
        """Products are resolved and validated, then discarded."""
        good = simple('ABC', 'Red Hat')
        bad = simple('DEF', 'Blue Hat', shoe_size='42')

        store([good, bad], dry_run=True)

        assert catalog.count(ProductEntity) == 0
        assert good.is_ok()
        assert not bad.is_ok()
        assert results == [good, bad]

    def test_every_product_is_reported_once(self, store, results):
        """Failed products are reported with their errors."""
        good = simple('ABC', 'Red Hat')
        bad = simple('DEF', 'Blue Hat')
        bad.set_attribute_set_by_name('Shoes')

        store([good, bad])

        assert results == [good, bad]
        assert good.id is not None
        assert bad.get_error_messages() == ['attribute set name not found: Shoes']

    def test_all_callbacks_are_called(self, db_session, context):
        """Each callback sees every product."""
        seen_a, seen_b = [], []
        config = ImportConfig(result_callbacks=[seen_a.append, seen_b.append])
        products = [simple('ABC', 'Red Hat'), simple('DEF', 'Blue Hat')]

        ProductStorage(db_session, context, config).store_products(products)

        assert seen_a == products
        assert seen_b == products


class TestRelations:
    """Test child rows of product types."""

    def test_linked_products_are_replaced(self, store, db_session):
        """Related products supplied again replace the earlier ones."""
        product = simple('ABC', 'Red Hat')
        product.set_related_product_skus(['REL1', 'REL2'])
        store([product])

        update = simple('ABC', 'Red Hat')
        update.set_related_product_skus(['REL2'])
        store([update])

        links = db_session.query(ProductLink).filter(ProductLink.product_id == product.id).all()
        assert len(links) == 1
        assert links[0].linked_product_id == db_session.query(ProductEntity).filter_by(sku='REL2').one().entity_id

    def test_same_sku_twice_with_links(self, store, db_session):
        """Two payloads for one sku both carrying links store the links of the last one."""
        first = simple('ABC', 'Red Hat')
        first.set_related_product_skus(['REL1'])
        second = simple('ABC', 'Red Hat')
        second.set_related_product_skus(['REL1', 'REL2'])

        store([first, second])

        assert first.is_ok() and second.is_ok()
        links = db_session.query(ProductLink).filter(ProductLink.product_id == second.id).all()
        assert len(links) == 2

    def test_same_configurable_twice(self, store, db_session):
        variants = [simple('V1', 'Shirt S'), simple('V2', 'Shirt M')]
        payloads = []
        for variant_skus in (['V1', 'V2'], ['V1']):
            configurable = ConfigurableProduct('CONF')
            configurable.set_attribute_set_by_name('Default')
            configurable.global_store_view().set_name('Shirt')
            configurable.set_variant_skus(variant_skus)
            payloads.append(configurable)

        store(variants + payloads)

        assert all(p.is_ok() for p in payloads)
        children = [row.child_id for row in db_session.query(ProductRelation).filter_by(parent_id=payloads[1].id)]
        assert children == [variants[0].id]

    def test_placeholders_for_unknown_skus(self, store, catalog):
        """Referenced skus that do not exist become disabled placeholders."""
        product = simple('ABC', 'Red Hat')
        product.set_up_sell_product_skus(['LATER'])
        store([product])

        placeholder = catalog.product('LATER')
        assert placeholder.type_id == 'simple'
        assert catalog.value(placeholder.entity_id, 'name') == 'Product Placeholder'
        assert catalog.value(placeholder.entity_id, 'status') == 2

    def test_configurable_variants(self, store, db_session):
        """Variants are linked by super links and relations."""
        variants = [simple('V1', 'Shirt S'), simple('V2', 'Shirt M')]
        configurable = ConfigurableProduct('CONF')
        configurable.set_attribute_set_by_name('Default')
        configurable.global_store_view().set_name('Shirt')
        configurable.set_variant_skus(['V1', 'V2'])

        store(variants + [configurable])

        assert all(p.is_ok() for p in variants + [configurable])
        children = {row.product_id for row in db_session.query(ProductSuperLink).filter_by(parent_id=configurable.id)}
        assert children == {variants[0].id, variants[1].id}
        assert db_session.query(ProductRelation).filter_by(parent_id=configurable.id).count() == 2

    def test_grouped_members(self, store, db_session):
        """Grouped members are stored as links with their default quantity."""
        member = simple('M1', 'Member')
        grouped = GroupedProduct('GROUP')
        grouped.set_attribute_set_by_name('Default')
        grouped.global_store_view().set_name('Group')
        grouped.set_members([GroupedMember('M1', 2)])

        store([member, grouped])

        link = db_session.query(ProductLink).filter_by(product_id=grouped.id).one()
        assert link.linked_product_id == member.id
        assert float(link.qty) == 2

    def test_bundle_options(self, store, db_session):
        """Bundle options and selections are written."""
        part = simple('PART', 'Part')
        bundle = BundleProduct('BUNDLE')
        bundle.set_attribute_set_by_name('Default')
        bundle.global_store_view().set_name('Bundle')
        bundle.set_options([BundleOption('Parts', selections=[BundleSelection('PART', 2, True)])])

        store([part, bundle])

        option = db_session.query(BundleOptionRow).filter_by(parent_id=bundle.id).one()
        selection = db_session.query(BundleSelectionRow).filter_by(option_id=option.option_id).one()
        assert option.title == 'Parts'
        assert selection.product_id == part.id
        assert selection.is_default == 1

    def test_tier_prices(self, store, db_session):
        """Tier prices resolve their customer group and website."""
        product = simple('ABC', 'Red Hat')
        product.set_tier_prices([
            TierPrice(5, '9.00'),
            TierPrice(10, '8.00', customer_group_code='General', website_code='base'),
        ])
        store([product])

        rows = db_session.query(TierPriceRow).filter_by(entity_id=product.id).order_by(TierPriceRow.qty).all()
        assert [(row.all_groups, row.customer_group_id, row.website_id) for row in rows] == [(1, 0, 0), (0, 1, 1)]

    def test_unknown_customer_group(self, store):
        """An unknown customer group is a product error."""
        product = simple('ABC', 'Red Hat')
        product.set_tier_prices([TierPrice(5, '9.00', customer_group_code='Wholesale')])
        store([product])

        assert product.get_error_messages() == ['customer group code not found: Wholesale']
