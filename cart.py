import logging
from typing import Optional, List, Dict, Any

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, now, object_id
from errors import NotFoundError, ValidationError
from schemas import CartItem

logger = logging.getLogger(__name__)


class CartStore:
    """Cart of one signed-in user.

    The store keeps the last snapshot read from ``cart_items`` joined with ``products``. Every
    mutation writes to the database and then reloads the whole snapshot; nothing is updated
    optimistically. Stock levels are exposed on each line but not enforced here.
    """

    def __init__(self, db: Database, user_id: str):
        self.db = db
        self.user_id = user_id
        self.items: List[Dict[str, Any]] = []
        self.missing: List[str] = []

    @property
    def total_items(self) -> int:
        return sum(item["quantity"] for item in self.items)

    @property
    def total_amount(self) -> float:
        return round(sum(item["product"]["price"] * item["quantity"] for item in self.items), 2)

    def view(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "total_items": self.total_items,
            "total_amount": self.total_amount,
            # product ids of lines whose product is gone; removing them unblocks checkout
            "unavailable": self.missing,
        }

    def load(self) -> Dict[str, Any]:
        rows = list(self.db["cart_items"].find({"user_id": self.user_id}).sort("created_at", ASCENDING))
        ids = [ObjectId(r["product_id"]) for r in rows if ObjectId.is_valid(r["product_id"])]
        products = {str(p["_id"]): p for p in self.db["products"].find({"_id": {"$in": ids}})}

        items, missing = [], []
        for row in rows:
            product = products.get(row["product_id"])
            if product is None:
                logger.warning("Cart line %s points at missing product %s", row["_id"], row["product_id"])
                missing.append(row["product_id"])
                continue
            items.append({
                "id": str(row["_id"]),
                "product_id": row["product_id"],
                "quantity": row["quantity"],
                "product": {
                    "id": row["product_id"],
                    "name": product.get("name"),
                    "name_am": product.get("name_am"),
                    "price": float(product.get("price", 0)),
                    "images": product.get("images", []),
                    "stock_quantity": product.get("stock_quantity", 0),
                    "is_active": product.get("is_active", True),
                },
            })
        self.items = items
        self.missing = missing
        return self.view()

    def line(self, product_id: str) -> Optional[Dict[str, Any]]:
        for item in self.items:
            if item["product_id"] == product_id:
                return item
        return None

    def add_item(self, product_id: str, quantity: int = 1) -> Dict[str, Any]:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        product = self.db["products"].find_one({"_id": object_id(product_id, "Product"), "is_active": True})
        if not product:
            raise NotFoundError("Product not found")
        product_id = str(product["_id"])

        self.load()
        existing = self.line(product_id)
        if existing:
            return self.set_quantity(product_id, existing["quantity"] + quantity)

        try:
            create_document(self.db, "cart_items", CartItem(user_id=self.user_id, product_id=product_id, quantity=quantity))
        except DuplicateKeyError:
            # a concurrent request created the line after our snapshot
            self.db["cart_items"].update_one(
                {"user_id": self.user_id, "product_id": product_id},
                {"$inc": {"quantity": quantity}, "$set": {"updated_at": now()}},
            )
        return self.load()

    def set_quantity(self, product_id: str, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            return self.remove_item(product_id)
        result = self.db["cart_items"].update_one(
            {"user_id": self.user_id, "product_id": product_id},
            {"$set": {"quantity": quantity, "updated_at": now()}},
        )
        if result.matched_count == 0:
            raise NotFoundError("Item is not in the cart")
        return self.load()

    def remove_item(self, product_id: str) -> Dict[str, Any]:
        self.db["cart_items"].delete_one({"user_id": self.user_id, "product_id": product_id})
        return self.load()

    def clear(self) -> Dict[str, Any]:
        self.db["cart_items"].delete_many({"user_id": self.user_id})
        return self.load()

    def remove_lines(self, line_ids: List[str]) -> Dict[str, Any]:
        """Delete only the given lines. Lines added after the snapshot stay in the cart."""
        ids = [ObjectId(i) for i in line_ids]
        self.db["cart_items"].delete_many({"user_id": self.user_id, "_id": {"$in": ids}})
        return self.load()
