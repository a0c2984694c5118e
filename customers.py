from typing import List, Optional

import structlog
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, ensure_object_id, serialize, utcnow
from errors import AlreadyExists, NotFound
from ownership import ensure_owner
from schemas import CustomerInput, CustomerUpdate

logger = structlog.get_logger(__name__)


class CustomerDirectory:
    """Customers, each owned by exactly one seller."""

    collection_name = "customer"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]
        self.users = db["user"]

    def populate(self, doc: dict) -> dict:
        """Join the seller record into a stored customer document."""
        doc = dict(doc)
        doc["seller"] = self.users.find_one({"_id": doc["seller"]}, {"password_hash": 0})
        return doc

    def find(self, customer_id) -> Optional[dict]:
        return self.collection.find_one({"_id": ensure_object_id(customer_id)})

    def resolve(self, customer_id, seller_id: str) -> dict:
        """Return the stored document, checking existence then ownership."""
        doc = self.find(customer_id)
        if not doc:
            raise NotFound("Customer not found.")
        return ensure_owner(doc, seller_id)

    def create(self, customer: CustomerInput, seller_id: str) -> dict:
        if self.collection.find_one({"email": customer.email}):
            raise AlreadyExists("Customer already exists!")
        data = {**customer.model_dump(), "seller": ensure_object_id(seller_id)}
        try:
            customer_id = create_document(self.db, self.collection_name, data)
        except DuplicateKeyError:
            raise AlreadyExists("Customer already exists!")
        logger.info("Customer created", customer_id=str(customer_id), seller_id=seller_id)
        return self.get(customer_id, seller_id)

    def get(self, customer_id, seller_id: str, populate: bool = False) -> dict:
        doc = self.resolve(customer_id, seller_id)
        return serialize(self.populate(doc) if populate else doc)

    def list_all(self, populate: bool = False) -> List[dict]:
        docs = self.collection.find({})
        return [serialize(self.populate(d) if populate else d) for d in docs]

    def list_by_seller(self, seller_id: str, populate: bool = False) -> List[dict]:
        docs = self.collection.find({"seller": ensure_object_id(seller_id)})
        return [serialize(self.populate(d) if populate else d) for d in docs]

    def update(self, customer_id, changes: CustomerUpdate, seller_id: str, populate: bool = False) -> dict:
        current = self.resolve(customer_id, seller_id)
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in data and data["email"] != current["email"]:
            if self.collection.find_one({"email": data["email"], "_id": {"$ne": current["_id"]}}):
                raise AlreadyExists("Customer already exists!")
        data["updated_at"] = utcnow()
        try:
            doc = self.collection.find_one_and_update(
                {"_id": current["_id"], "seller": current["seller"]},
                {"$set": data},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise AlreadyExists("Customer already exists!")
        if not doc:
            raise NotFound("Customer not found.")
        return serialize(self.populate(doc) if populate else doc)

    def delete(self, customer_id, seller_id: str) -> None:
        current = self.resolve(customer_id, seller_id)
        result = self.collection.delete_one({"_id": current["_id"], "seller": current["seller"]})
        if result.deleted_count == 0:
            raise NotFound("Customer not found")
        logger.info("Customer deleted", customer_id=str(current["_id"]), seller_id=seller_id)
