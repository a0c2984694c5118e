from typing import Optional

import structlog
from pymongo import MongoClient

from catalog import CatalogStore
from config import Settings
from customers import CustomerDirectory
from database import connect, ensure_indexes
from identity import IdentityStore
from orders import OrderLedger, OrderWorkflow
from reports import ReportService

logger = structlog.get_logger(__name__)


class AppContext:
    """Everything a request needs, built once at startup and handed to the API layer."""

    def __init__(self, settings: Settings, client: Optional[MongoClient] = None):
        self.settings = settings
        self.client = client if client is not None else connect(settings)
        self.db = self.client[settings.database_name]

        self.identity = IdentityStore(self.db, settings)
        self.catalog = CatalogStore(self.db)
        self.customers = CustomerDirectory(self.db)
        self.ledger = OrderLedger(self.db)
        self.orders = OrderWorkflow(self.catalog, self.customers, self.ledger)
        self.reports = ReportService(self.db)

    def init(self) -> None:
        ensure_indexes(self.db)
        logger.info("Application context initialized", database=self.settings.database_name)

    def close(self) -> None:
        self.client.close()
        logger.info("Database connection closed")
