"""
Product Importer

Front end of the package. Products are buffered and stored in batches of
config.batch_size:

    importer = Importer(session, ImportConfig(result_callbacks=[report]))
    for product in products:
        importer.import_product(product)
    importer.flush()
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from .config import ImportConfig
from .context import ImportContext
from .data import Product
from .logging_config import BatchLogHandler, attach_batch_handler, detach_batch_handler
from .storage.product_storage import ProductStorage

logger = logging.getLogger(__name__)


class Importer:

    def __init__(self, session: Session, config: Optional[ImportConfig] = None):
        self.config = config or ImportConfig()
        self.config.validate()
        self.session = session
        self.context = ImportContext.load(session, self.config)
        self.storage = ProductStorage(session, self.context, self.config)
        self.products: List[Product] = []
        self.batch_count = 0
        # log records of the most recent batch
        self.last_batch_log: Optional[BatchLogHandler] = None

    def import_product(self, product: Product) -> None:
        """Buffer a product; stores the buffer when it reaches the batch size."""
        self.products.append(product)
        if len(self.products) >= self.config.batch_size:
            self.flush()

    def flush(self) -> None:
        """Store all buffered products."""
        if not self.products:
            return

        products = self.products
        self.products = []
        self.batch_count += 1

        handler = attach_batch_handler(uuid.uuid4().hex)
        try:
            logger.info(f"Storing batch {self.batch_count} ({len(products)} products)")
            self.storage.store_products(products)
        finally:
            detach_batch_handler(handler)
            self.last_batch_log = handler
