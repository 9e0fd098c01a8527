import logging
from typing import List, Dict, Any

from pymongo import DESCENDING
from pymongo.database import Database

from database import now, object_id
from errors import NotFoundError, ValidationError
from orders import present_order
from schemas import ORDER_STATUSES

logger = logging.getLogger(__name__)


def load_stats(db: Database) -> Dict[str, Any]:
    """Dashboard counters, computed by the database rather than by reading whole collections."""
    revenue = list(db["orders"].aggregate([
        {"$group": {"_id": None, "total": {"$sum": "$total_amount"}}},
    ]))
    return {
        "order_count": db["orders"].count_documents({}),
        "revenue_sum": round(float(revenue[0]["total"]), 2) if revenue else 0.0,
        "product_count": db["products"].count_documents({}),
        "customer_count": db["user_profiles"].count_documents({}),
    }


def recent_orders(db: Database, limit: int = 10) -> List[Dict[str, Any]]:
    cursor = db["orders"].find({}).sort("created_at", DESCENDING).limit(limit)
    return [present_order(o) for o in cursor]


def update_status(db: Database, order_id: str, status: str) -> Dict[str, Any]:
    # any status may follow any other; only the value itself is checked
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    _id = object_id(order_id, "Order")
    result = db["orders"].update_one({"_id": _id}, {"$set": {"status": status, "updated_at": now()}})
    if result.matched_count == 0:
        raise NotFoundError("Order not found")
    logger.info("Order %s moved to %s", order_id, status)
    return present_order(db["orders"].find_one({"_id": _id}))
