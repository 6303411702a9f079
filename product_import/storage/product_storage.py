"""
Batch Persistence Engine

Stores one batch of products in a single transaction: resolve references,
split into new and existing products, generate url keys, validate, handle
type changes, then write main table rows, EAV values, category and website
links, child rows and url rewrites. Any exception rolls back the whole
batch and reaches the caller; product data problems only exclude the
product concerned.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..bulk import RowBatcher, insert_ignore_rows, insert_rows, upsert_rows
from ..config import ImportConfig
from ..context import ImportContext
from ..data import Product
from ..models import CategoryProduct, ProductEntity, ProductWebsite
from ..resolvers.reference_resolver import ReferenceResolver
from .relation_storage import RelationStorage
from .type_changer import ProductTypeChanger
from .url_key_generator import UrlKeyGenerator
from .url_rewrite_storage import UrlRewriteStorage
from .validator import Validator

logger = logging.getLogger(__name__)


class ProductStorage:

    def __init__(self, session: Session, context: ImportContext, config: ImportConfig):
        self.session = session
        self.context = context
        self.config = config
        self.batcher = RowBatcher(max_bytes=config.max_statement_bytes)

        self.reference_resolver = ReferenceResolver(session, context)
        self.url_key_generator = UrlKeyGenerator(session, context)
        self.validator = Validator(context)
        self.relation_storage = RelationStorage(session, self.batcher)
        self.type_changer = ProductTypeChanger(session, context, self.relation_storage)
        self.url_rewrite_storage = UrlRewriteStorage(session, context, self.batcher)

    def store_products(self, products: List[Product]) -> None:
        """Store one batch, then report every product to the result callbacks."""
        if not products:
            return
        config = self.config

        resolved = False
        try:
            self.reference_resolver.resolve_external_references(products, config)
            self.reference_resolver.resolve_product_references(products, config)
            # categories, options and placeholders created while resolving are kept
            # even when the batch itself fails
            self.session.commit()
            self.reference_resolver.mark_committed()
            resolved = True

            sku2id = self.get_existing_skus([product.sku for product in products])

            insert_products = []
            update_products = []
            for product in products:
                if product.sku in sku2id:
                    product.id, attribute_set_id = sku2id[product.sku]
                    if Product.ATTRIBUTE_SET_ID not in product.references:
                        product.set_attribute_set_id(attribute_set_id)
                    update_products.append(product)
                else:
                    insert_products.append(product)

            self.url_key_generator.start_batch()
            self.url_key_generator.create_url_keys_for_new_products(
                insert_products, config.url_key_scheme, config.duplicate_url_key_strategy
            )
            self.url_key_generator.create_url_keys_for_existing_products(
                update_products, config.url_key_scheme, config.duplicate_url_key_strategy
            )

            for product in products:
                self.validator.validate(product)

            self.type_changer.handle_type_changes([p for p in update_products if p.is_ok()], config)

            valid_products = [product for product in products if product.is_ok()]

            logger.info(
                f"Batch of {len(products)} products: {len(insert_products)} new, {len(update_products)} existing, "
                f"{len(products) - len(valid_products)} with errors"
            )

            if config.dry_run:
                self.session.rollback()
                logger.info("Dry run: no products written")
            else:
                self.save_products(valid_products)
                self.session.commit()

        except Exception as e:
            logger.error(f"Batch of {len(products)} products failed, rolling back: {e}")
            self.session.rollback()
            if not resolved:
                self.reference_resolver.forget_uncommitted()
            raise

        for callback in config.result_callbacks:
            for product in products:
                callback(product)

    def get_existing_skus(self, skus: List[str]) -> Dict[str, tuple]:
        """sku -> (entity id, attribute set id) for the skus that exist."""
        result = {}
        unique_skus = list(dict.fromkeys(skus))
        for start in range(0, len(unique_skus), 1000):
            rows = self.session.execute(
                select(ProductEntity.sku, ProductEntity.entity_id, ProductEntity.attribute_set_id).where(
                    ProductEntity.sku.in_(unique_skus[start:start + 1000])
                )
            )
            for sku, entity_id, attribute_set_id in rows:
                result[sku] = (entity_id, attribute_set_id)
        return result

    def save_products(self, valid_products: List[Product]) -> None:
        """All writes of a batch; the caller commits or rolls back."""
        insert_products = [product for product in valid_products if product.id is None]
        update_products = [product for product in valid_products if product.id is not None]

        existing_values = self.url_rewrite_storage.get_existing_product_values(update_products)

        self.insert_main_table(insert_products)
        self.update_main_table(update_products)
        self.insert_eav_values(valid_products)
        self.insert_category_ids(valid_products)
        self.insert_website_ids(valid_products)
        self.relation_storage.store_relations(valid_products)

        # url keys and categories must be written first
        self.url_rewrite_storage.update_rewrites(valid_products, existing_values)

    def _main_row(self, product: Product) -> dict:
        options = 1 if product.has_options() else 0
        return {
            'attribute_set_id': product.get_attribute_set_id(),
            'type_id': product.get_type(),
            'sku': product.sku,
            'has_options': options,
            'required_options': options,
        }

    def insert_main_table(self, products: List[Product]) -> None:
        if not products:
            return

        # one row per sku; a batch may hold the same new sku more than once
        rows = {}
        for product in products:
            rows.setdefault(product.sku, self._main_row(product))

        insert_rows(self.session, ProductEntity.__table__, list(rows.values()), self.batcher)

        sku2id = self.get_existing_skus(list(rows))
        for product in products:
            product.id = sku2id[product.sku][0]
        logger.info(f"Inserted {len(rows)} products")

    def update_main_table(self, products: List[Product]) -> None:
        if not products:
            return

        rows = {}
        for product in products:
            row = self._main_row(product)
            row['entity_id'] = product.id
            rows[product.id] = row

        upsert_rows(
            self.session, ProductEntity.__table__, list(rows.values()),
            index_elements=['entity_id'],
            update_columns=['attribute_set_id', 'type_id', 'has_options', 'required_options'],
            batcher=self.batcher
        )
        logger.info(f"Updated {len(rows)} products")

    def insert_eav_values(self, products: List[Product]) -> None:
        """One multi-row upsert per attribute."""
        rows_by_attribute = defaultdict(dict)
        for product in products:
            for store_view in product.get_store_views():
                store_id = store_view.get_store_view_id()
                for code, value in store_view.eav_values().items():
                    # later store views of the same product override earlier ones
                    rows_by_attribute[code][(product.id, store_id)] = value

        for code, values in rows_by_attribute.items():
            attribute = self.context.attribute(code)
            rows = [
                {'entity_id': entity_id, 'attribute_id': attribute.attribute_id, 'store_id': store_id, 'value': value}
                for (entity_id, store_id), value in values.items()
            ]
            upsert_rows(
                self.session, attribute.table, rows,
                index_elements=['entity_id', 'attribute_id', 'store_id'],
                update_columns=['value'],
                batcher=self.batcher
            )

    def insert_category_ids(self, products: List[Product]) -> None:
        rows = {}
        for product in products:
            for category_id in product.get_category_ids():
                # links to categories that do not exist are skipped
                if category_id in self.context.category_info:
                    rows[(category_id, product.id)] = {'category_id': category_id, 'product_id': product.id, 'position': 0}
        insert_ignore_rows(self.session, CategoryProduct.__table__, list(rows.values()), self.batcher)

    def insert_website_ids(self, products: List[Product]) -> None:
        rows = {}
        for product in products:
            for website_id in product.get_website_ids():
                rows[(product.id, website_id)] = {'product_id': product.id, 'website_id': website_id}
        insert_ignore_rows(self.session, ProductWebsite.__table__, list(rows.values()), self.batcher)
