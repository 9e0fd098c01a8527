import os
import logging
from contextlib import asynccontextmanager
from typing import Optional, Literal

from fastapi import FastAPI, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import admin
import catalog
import database
import identity
import orders
from cart import CartStore
from database import get_db
from errors import StoreError, ServiceError, NotFoundError
from identity import Identity, require_user, require_admin
from schemas import (
    SignUpDTO, SignInDTO, ProfileUpdateDTO, AddToCartDTO, SetQuantityDTO, CheckoutDTO, OrderStatusDTO,
    Language, ORDER_STATUSES, PAYMENT_METHODS, LANGUAGES, STATUS_LABELS,
)
from seed import seed

# Logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("ethioshop")

# Configuration
STORE_NAME = os.getenv("STORE_NAME", "EthioShop")
PRIMARY_CURRENCY = os.getenv("PRIMARY_CURRENCY", "ETB")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = database.connect()
    database.ensure_indexes(db)
    yield
    database.close()


app = FastAPI(title="EthioShop API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED_ORIGINS] if ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handlers
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=ServiceError.status_code,
                        content={"error": ServiceError.kind, "detail": "Service temporarily unavailable"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error: %s", exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Health and config
@app.get("/")
def root():
    return {"name": STORE_NAME, "status": "ok"}


@app.get("/config")
def get_config():
    return {
        "storeName": STORE_NAME,
        "currency": PRIMARY_CURRENCY,
        "languages": list(LANGUAGES),
        "paymentMethods": list(PAYMENT_METHODS),
        "orderStatuses": [{"value": s, "label": STATUS_LABELS[s]} for s in ORDER_STATUSES],
    }


# Auth
@app.post("/auth/signup")
def signup(data: SignUpDTO, db: Database = Depends(get_db)):
    user = identity.sign_up(db, data.email, data.password, data.full_name, data.confirm_password)
    return {"user": user}


@app.post("/auth/signin")
def signin(data: SignInDTO, db: Database = Depends(get_db)):
    return identity.sign_in(db, data.email, data.password)


@app.post("/auth/signout")
def signout(user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    identity.sign_out(db, user)
    return {"ok": True}


@app.get("/auth/session")
def session(user: Identity = Depends(require_user)):
    return {"user": user.model_dump(exclude={"session_id"})}


@app.get("/auth/profile")
def read_profile(user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return identity.get_profile(db, user)


@app.put("/auth/profile")
def write_profile(data: ProfileUpdateDTO, user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return identity.update_profile(db, user, data)


# Catalog
@app.get("/categories")
def list_categories(lang: Language = "en", db: Database = Depends(get_db)):
    return catalog.list_categories(db, lang)


@app.get("/products")
def list_products(category: Optional[str] = None, q: Optional[str] = None,
                  min_price: Optional[float] = Query(None, ge=0), max_price: Optional[float] = Query(None, ge=0),
                  sort: Optional[Literal["newest", "price_asc", "price_desc", "name"]] = None,
                  lang: Language = "en", db: Database = Depends(get_db)):
    items = catalog.list_products(db, category=category, q=q, min_price=min_price, max_price=max_price,
                                  sort=sort, lang=lang)
    return {"items": items, "total": len(items)}


@app.get("/products/featured")
def featured_products(limit: int = Query(8, ge=1, le=50), lang: Language = "en", db: Database = Depends(get_db)):
    return catalog.featured_products(db, limit=limit, lang=lang)


@app.get("/products/{slug}")
def get_product(slug: str, lang: Language = "en", db: Database = Depends(get_db)):
    return catalog.get_product(db, slug, lang)


# Cart
@app.get("/cart")
def cart_get(user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return CartStore(db, user.user_id).load()


@app.post("/cart/items")
def cart_add(data: AddToCartDTO, user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return CartStore(db, user.user_id).add_item(data.product_id, data.quantity)


@app.put("/cart/items/{product_id}")
def cart_set_quantity(product_id: str, data: SetQuantityDTO, user: Identity = Depends(require_user),
                      db: Database = Depends(get_db)):
    return CartStore(db, user.user_id).set_quantity(product_id, data.quantity)


@app.delete("/cart/items/{product_id}")
def cart_remove(product_id: str, user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return CartStore(db, user.user_id).remove_item(product_id)


@app.delete("/cart")
def cart_clear(user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return CartStore(db, user.user_id).clear()


# Checkout
@app.post("/checkout")
def checkout(data: CheckoutDTO, idempotency_key: Optional[str] = Header(default=None),
             user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return orders.place_order(db, user, data, idempotency_key=idempotency_key)


# Orders
@app.get("/orders")
def list_orders(user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return orders.list_orders(db, user)


@app.get("/orders/{order_id}")
def get_order(order_id: str, user: Identity = Depends(require_user), db: Database = Depends(get_db)):
    return orders.get_order(db, user, order_id)


# Admin
@app.get("/admin/stats")
def admin_stats(user: Identity = Depends(require_admin), db: Database = Depends(get_db)):
    return admin.load_stats(db) | {"recent_orders": admin.recent_orders(db)}


@app.get("/admin/orders")
def admin_orders(limit: int = Query(10, ge=1, le=100), user: Identity = Depends(require_admin),
                 db: Database = Depends(get_db)):
    return admin.recent_orders(db, limit=limit)


@app.post("/admin/orders/{order_id}/status")
def update_order_status(order_id: str, data: OrderStatusDTO, user: Identity = Depends(require_admin),
                        db: Database = Depends(get_db)):
    return admin.update_status(db, order_id, data.status)


# Sample seed endpoint (dev only)
@app.post("/dev/seed")
def dev_seed(db: Database = Depends(get_db)):
    if not os.getenv("ENABLE_DEV_SEED"):
        raise NotFoundError("Not found")
    return {"ok": True, "created": seed(db)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
