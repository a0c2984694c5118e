from typing import List, Optional

import structlog
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, ensure_object_id, serialize, utcnow
from errors import InsufficientStock, InvalidInput, NotFound
from schemas import ProductInput, ProductUpdate

logger = structlog.get_logger(__name__)

SEARCH_LIMIT = 10


class CatalogStore:
    """Products and their quantity on hand.

    Quantity is only ever decremented through `reserve`, a single conditional
    update evaluated by the database, so concurrent orders cannot over-draw.
    """

    collection_name = "product"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def create(self, product: ProductInput) -> dict:
        product_id = create_document(self.db, self.collection_name, product.model_dump())
        logger.info("Product created", product_id=str(product_id))
        return self.get(product_id)

    def find(self, product_id) -> Optional[dict]:
        return self.collection.find_one({"_id": ensure_object_id(product_id)})

    def get(self, product_id) -> dict:
        doc = self.find(product_id)
        if not doc:
            raise NotFound("Product not found.")
        return serialize(doc)

    def list(self) -> List[dict]:
        return [serialize(doc) for doc in self.collection.find({})]

    def search(self, text: str, limit: int = SEARCH_LIMIT) -> List[dict]:
        # relies on the text index over `name`
        cursor = (
            self.collection.find({"$text": {"$search": text}}, {"score": {"$meta": "textScore"}})
            .sort([("score", {"$meta": "textScore"})])
            .limit(limit)
        )
        results = []
        for doc in cursor:
            doc.pop("score", None)
            results.append(serialize(doc))
        return results

    def update(self, product_id, changes: ProductUpdate) -> dict:
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        data["updated_at"] = utcnow()
        doc = self.collection.find_one_and_update(
            {"_id": ensure_object_id(product_id)},
            {"$set": data},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            raise NotFound("Product not found.")
        return serialize(doc)

    def delete(self, product_id) -> None:
        doc = self.collection.find_one_and_delete({"_id": ensure_object_id(product_id)})
        if not doc:
            raise NotFound("Product not found")
        logger.info("Product deleted", product_id=str(doc["_id"]))

    def reserve(self, product_id, quantity: int) -> dict:
        if quantity <= 0:
            raise InvalidInput("Quantity must be a positive integer")
        _id = ensure_object_id(product_id)
        doc = self.collection.find_one_and_update(
            {"_id": _id, "quantity": {"$gte": quantity}},
            {"$inc": {"quantity": -quantity}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            logger.debug("Stock reserved", product_id=str(_id), quantity=quantity, remaining=doc["quantity"])
            return serialize(doc)

        current = self.collection.find_one({"_id": _id})
        if not current:
            raise NotFound("Product not found.")
        logger.warning(
            "Insufficient stock",
            product_id=str(_id),
            requested=quantity,
            available=current.get("quantity", 0),
        )
        raise InsufficientStock(current.get("name", str(_id)))

    def release(self, product_id, quantity: int) -> Optional[dict]:
        if quantity <= 0:
            raise InvalidInput("Quantity must be a positive integer")
        _id = ensure_object_id(product_id)
        doc = self.collection.find_one_and_update(
            {"_id": _id},
            {"$inc": {"quantity": quantity}, "$set": {"updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            logger.warning("Released stock for missing product", product_id=str(_id), quantity=quantity)
            return None
        logger.debug("Stock released", product_id=str(_id), quantity=quantity, remaining=doc["quantity"])
        return serialize(doc)
