"""
Checkout and order history.

Placing an order is a short saga over three collections: the order row, its denormalized items,
and the cart. If the items cannot be written the order row is deleted again, so a failed checkout
never leaves an order without items behind. Totals are always recomputed here from the live
product prices in the cart snapshot.
"""
import uuid
import logging
from typing import Optional, List, Dict, Any

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from cart import CartStore
from database import create_document, now, object_id, to_str_id
from errors import AuthorizationError, NotFoundError, ServiceError, ValidationError
from identity import Identity
from schemas import CheckoutDTO, Order, OrderItem, ShippingAddress, STATUS_LABELS

logger = logging.getLogger(__name__)

PLACE_ORDER_FAILED = "Failed to place order. Please try again."


def generate_order_number() -> str:
    return "ORD-" + uuid.uuid4().hex[:20].upper()


def status_label(status: str) -> Dict[str, str]:
    return STATUS_LABELS.get(status, {"en": status, "am": status})


def present_order(doc: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    o = to_str_id(doc)
    o.pop("idempotency_key", None)
    o["status_label"] = status_label(o.get("status"))
    if items is not None:
        o["items"] = [to_str_id(i) for i in items]
    return o


def receipt(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_id": str(doc["_id"]),
        "order_number": doc["order_number"],
        "total_amount": doc["total_amount"],
        "status": doc["status"],
    }


def order_lines(cart: CartStore) -> List[Dict[str, Any]]:
    if cart.missing:
        raise ValidationError("Some items in your cart are no longer available, remove them to continue")
    lines = []
    for item in cart.items:
        product = item["product"]
        if not product.get("is_active", True):
            raise ValidationError(f"{product['name']} is no longer available")
        price = float(product["price"])
        lines.append({
            "product_id": item["product_id"],
            "product_name": product["name"],
            "product_price": price,
            "quantity": item["quantity"],
            "subtotal": round(price * item["quantity"], 2),
        })
    return lines


def replay(db: Database, user_id: str, idempotency_key: str) -> Optional[Dict[str, Any]]:
    previous = db["orders"].find_one({"user_id": user_id, "idempotency_key": idempotency_key})
    if previous:
        logger.info("Replaying order %s for idempotency key %s", previous["order_number"], idempotency_key)
        return receipt(previous)
    return None


def place_order(db: Database, identity: Identity, form: CheckoutDTO,
                idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    if idempotency_key:
        previous = replay(db, identity.user_id, idempotency_key)
        if previous:
            return previous

    cart = CartStore(db, identity.user_id)
    cart.load()
    if not cart.items and not cart.missing:
        raise ValidationError("Your cart is empty")
    lines = order_lines(cart)

    profile = db["user_profiles"].find_one({"_id": object_id(identity.user_id, "User")}) or {}
    customer_name = form.full_name or profile.get("full_name")
    customer_phone = form.phone or profile.get("phone")
    if not customer_name or not customer_phone:
        raise ValidationError("Full name and phone number are required")

    total = round(sum(line["subtotal"] for line in lines), 2)
    order = Order(
        user_id=identity.user_id,
        order_number=generate_order_number(),
        total_amount=total,
        customer_name=customer_name,
        customer_email=form.email or identity.email,
        customer_phone=customer_phone,
        shipping_address=ShippingAddress(address=form.address, city=form.city, region=form.region),
        payment_method=form.payment_method,
        notes=form.notes,
        idempotency_key=idempotency_key,
    )

    try:
        order_id = create_document(db, "orders", order)
    except DuplicateKeyError as exc:
        # a concurrent request with the same key inserted its order first
        previous = replay(db, identity.user_id, idempotency_key) if idempotency_key else None
        if previous:
            return previous
        logger.exception("Order insert failed for user %s", identity.user_id)
        raise ServiceError(PLACE_ORDER_FAILED) from exc
    except PyMongoError as exc:
        logger.exception("Order insert failed for user %s", identity.user_id)
        raise ServiceError(PLACE_ORDER_FAILED) from exc

    stamp = now()
    items = [OrderItem(order_id=order_id, **line).model_dump() | {"created_at": stamp} for line in lines]
    try:
        db["order_items"].insert_many(items)
    except PyMongoError as exc:
        logger.warning("Items for order %s failed, removing the order", order.order_number)
        try:
            db["order_items"].delete_many({"order_id": order_id})
            db["orders"].delete_one({"_id": object_id(order_id)})
        except PyMongoError:
            logger.exception("Could not remove orphaned order %s", order.order_number)
        raise ServiceError(PLACE_ORDER_FAILED) from exc

    try:
        cart.remove_lines([item["id"] for item in cart.items])
    except PyMongoError:
        logger.exception("Could not clear cart of user %s after order %s", identity.user_id, order.order_number)

    logger.info("Placed order %s for user %s, total %.2f", order.order_number, identity.user_id, total)
    return {"order_id": order_id, "order_number": order.order_number, "total_amount": total, "status": order.status}


def list_orders(db: Database, identity: Identity) -> List[Dict[str, Any]]:
    cursor = db["orders"].find({"user_id": identity.user_id}).sort("created_at", DESCENDING)
    return [present_order(o) for o in cursor]


def get_order(db: Database, identity: Identity, order_id: str) -> Dict[str, Any]:
    doc = db["orders"].find_one({"_id": object_id(order_id, "Order")})
    if not doc:
        raise NotFoundError("Order not found")
    if doc.get("user_id") != identity.user_id and not identity.is_admin:
        raise AuthorizationError("You do not have permission to view this order")
    items = list(db["order_items"].find({"order_id": str(doc["_id"])}))
    return present_order(doc, items)
