from typing import List

from pymongo.database import Database

from database import serialize
from schemas import OrderState

BEST_CUSTOMERS_LIMIT = 10
BEST_SELLERS_LIMIT = 3


class ReportService:
    """Read-only rankings over COMPLETED orders."""

    def __init__(self, db: Database):
        self.db = db

    def _ranking(self, group_field: str, join_collection: str, limit: int) -> List[dict]:
        pipeline = [
            {"$match": {"state": OrderState.COMPLETED.value}},
            {"$group": {"_id": f"${group_field}", "total": {"$sum": "$total"}}},
            {"$sort": {"total": -1}},
            {"$limit": limit},
            {
                "$lookup": {
                    "from": join_collection,
                    "localField": "_id",
                    "foreignField": "_id",
                    "as": group_field,
                }
            },
        ]
        rows = []
        for row in self.db["order"].aggregate(pipeline):
            joined = row.get(group_field) or []
            rows.append({"total": row["total"], group_field: serialize(joined[0]) if joined else None})
        return rows

    def best_customers(self, limit: int = BEST_CUSTOMERS_LIMIT) -> List[dict]:
        return self._ranking("customer", "customer", limit)

    def best_sellers(self, limit: int = BEST_SELLERS_LIMIT) -> List[dict]:
        return self._ranking("seller", "user", limit)
