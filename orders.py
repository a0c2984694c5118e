"""
Orders

`OrderLedger` persists orders; `OrderWorkflow` is the only component that
writes to the catalog and the ledger in the same operation. Every stock
change goes through CatalogStore.reserve/release, and a failed create or
update gives back whatever it had already reserved.
"""
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from catalog import CatalogStore
from customers import CustomerDirectory
from database import create_document, ensure_object_id, serialize, utcnow
from errors import Conflict, InvalidInput, NotFound
from ownership import ensure_owner
from schemas import OrderInput, OrderState, OrderUpdate

logger = structlog.get_logger(__name__)

Line = Tuple[ObjectId, int]

UPDATE_ATTEMPTS = 3


def tally(lines: Iterable[Line]) -> Dict[ObjectId, int]:
    """Sum quantities per product, keeping first-seen order."""
    totals: Dict[ObjectId, int] = {}
    for product_id, quantity in lines:
        totals[product_id] = totals.get(product_id, 0) + quantity
    return totals


def stored_lines(order: dict) -> List[Line]:
    return [(line["product"], line["quantity"]) for line in order.get("products", [])]


class OrderLedger:
    collection_name = "order"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def insert(self, data: dict) -> ObjectId:
        return create_document(self.db, self.collection_name, data)

    def find(self, order_id) -> Optional[dict]:
        return self.collection.find_one({"_id": ensure_object_id(order_id)})

    def update(self, order_id: ObjectId, seller_id: ObjectId, expected_products: list, data: dict) -> Optional[dict]:
        """Write `data` only if the stored line items still equal `expected_products`; None otherwise."""
        return self.collection.find_one_and_update(
            {"_id": order_id, "seller": seller_id, "products": expected_products},
            {"$set": {**data, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    def delete(self, order_id: ObjectId, seller_id: ObjectId) -> Optional[dict]:
        return self.collection.find_one_and_delete({"_id": order_id, "seller": seller_id})

    def list(self, query: dict, populate: bool = False) -> List[dict]:
        return [self.output(doc, populate) for doc in self.collection.find(query)]

    def populate(self, doc: dict) -> dict:
        """Join products, customer and seller into a stored order document."""
        doc = dict(doc)
        product_ids = [line["product"] for line in doc.get("products", [])]
        products = {p["_id"]: p for p in self.db["product"].find({"_id": {"$in": product_ids}})}
        doc["products"] = [
            {"product": products.get(line["product"]), "quantity": line["quantity"]}
            for line in doc.get("products", [])
        ]
        doc["customer"] = self.db["customer"].find_one({"_id": doc["customer"]})
        doc["seller"] = self.db["user"].find_one({"_id": doc["seller"]}, {"password_hash": 0})
        return doc

    def output(self, doc: dict, populate: bool = False) -> dict:
        return serialize(self.populate(doc) if populate else doc)


class OrderWorkflow:
    def __init__(self, catalog: CatalogStore, customers: CustomerDirectory, ledger: OrderLedger):
        self.catalog = catalog
        self.customers = customers
        self.ledger = ledger

    def _reserve_all(self, lines: List[Line]) -> List[Line]:
        """Reserve each line in order; on failure give back what was taken and re-raise."""
        reserved: List[Line] = []
        try:
            for product_id, quantity in lines:
                self.catalog.reserve(product_id, quantity)
                reserved.append((product_id, quantity))
        except Exception:
            if reserved:
                logger.warning("Rolling back reservations", lines=len(reserved))
                self._release_all(reserved)
            raise
        return reserved

    def _release_all(self, lines: Iterable[Line]) -> None:
        for product_id, quantity in lines:
            self.catalog.release(product_id, quantity)

    def _load_owned(self, order_id, seller_id: str, missing: str) -> dict:
        order = self.ledger.find(order_id)
        if not order:
            raise NotFound(missing)
        return ensure_owner(order, seller_id, "Access denied!")

    def get_order(self, order_id, seller_id: str, populate: bool = False) -> dict:
        order = self._load_owned(order_id, seller_id, "Order does not exists.")
        return self.ledger.output(order, populate)

    def list_all(self, populate: bool = False) -> List[dict]:
        return self.ledger.list({}, populate)

    def list_by_seller(self, seller_id: str, state: Optional[OrderState] = None, populate: bool = False) -> List[dict]:
        query = {"seller": ensure_object_id(seller_id)}
        if state is not None:
            query["state"] = OrderState(state).value
        return self.ledger.list(query, populate)

    def create_order(self, order: OrderInput, seller_id: str, populate: bool = False) -> dict:
        if not order.products:
            raise InvalidInput("An order needs at least one product.")
        customer = self.customers.resolve(order.customer, seller_id)
        lines = [(ensure_object_id(line.product), line.quantity) for line in order.products]

        reserved = self._reserve_all(lines)
        data = {
            "products": [{"product": product_id, "quantity": quantity} for product_id, quantity in lines],
            "total": order.total,
            "customer": customer["_id"],
            "seller": ensure_object_id(seller_id),
            "state": OrderState.PENDING.value,
        }
        try:
            order_id = self.ledger.insert(data)
        except PyMongoError:
            logger.exception("Order insert failed, releasing stock", seller_id=seller_id)
            self._release_all(reserved)
            raise

        logger.info("Order created", order_id=str(order_id), seller_id=seller_id, lines=len(lines))
        return self.ledger.output(self.ledger.find(order_id), populate)

    def _apply_update(self, current: dict, changes: OrderUpdate, seller_id: str) -> Tuple[Optional[dict], List[Line]]:
        """Reserve the increase over `current` and write the order if it is unchanged since it was read.

        Returns the written document (None if another write got there first, in
        which case this attempt's reservations have been given back) and the
        lines still to release.
        """
        data = {}
        if changes.customer is not None:
            data["customer"] = self.customers.resolve(changes.customer, seller_id)["_id"]
        if changes.total is not None:
            data["total"] = changes.total
        if changes.state is not None:
            data["state"] = changes.state.value

        lines = [(ensure_object_id(line.product), line.quantity) for line in changes.products]
        old = tally(stored_lines(current))
        new = tally(lines)
        increases = [(pid, qty - old.get(pid, 0)) for pid, qty in new.items() if qty > old.get(pid, 0)]
        decreases = [(pid, qty - new.get(pid, 0)) for pid, qty in old.items() if qty > new.get(pid, 0)]

        growing = {pid for pid, _ in increases}
        for product_id in new:
            if product_id not in growing:
                self.catalog.get(product_id)

        reserved = self._reserve_all(increases)
        data["products"] = [{"product": product_id, "quantity": quantity} for product_id, quantity in lines]
        try:
            doc = self.ledger.update(current["_id"], current["seller"], current.get("products", []), data)
        except PyMongoError:
            logger.exception("Order update failed, releasing stock", order_id=str(current["_id"]))
            self._release_all(reserved)
            raise
        if doc is None:
            self._release_all(reserved)
        return doc, decreases

    def update_order(self, order_id, changes: OrderUpdate, seller_id: str, populate: bool = False) -> dict:
        for attempt in range(1, UPDATE_ATTEMPTS + 1):
            current = self._load_owned(order_id, seller_id, "Order does not exists!")
            if not changes.products:
                raise InvalidInput("Error updating products in order.")
            doc, decreases = self._apply_update(current, changes, seller_id)
            if doc is not None:
                break
            logger.warning("Order changed during update", order_id=str(current["_id"]), attempt=attempt)
        else:
            raise Conflict("Order was modified concurrently, try again.")

        self._release_all(decreases)
        logger.info(
            "Order updated",
            order_id=str(doc["_id"]),
            released=len(decreases),
            state=doc.get("state"),
        )
        return self.ledger.output(doc, populate)

    def delete_order(self, order_id, seller_id: str) -> None:
        current = self._load_owned(order_id, seller_id, "Order not found")
        doc = self.ledger.delete(current["_id"], current["seller"])
        if doc is None:
            raise NotFound("Order not found")
        self._release_all(tally(stored_lines(doc)).items())
        logger.info("Order deleted", order_id=str(doc["_id"]), seller_id=seller_id)
