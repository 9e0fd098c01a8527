import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db, object_id
from identity import sign_up, sign_in, current_identity
from main import app
from schemas import Category, Product

PASSWORD = "secret123"


@pytest.fixture
def db():
    database = mongomock.MongoClient()["ethioshop_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def catalog_ids(db):
    """Two categories and five products; returns slug -> id for both."""
    ids = {}
    coffee = create_document(db, "categories", Category(name="Coffee", name_am="ቡና", slug="coffee", display_order=2))
    spices = create_document(db, "categories", Category(name="Spices", name_am="ቅመም", slug="spices", display_order=1))
    ids["coffee"], ids["spices"] = coffee, spices

    products = [
        Product(category_id=coffee, name="Yirgacheffe Beans", name_am="የይርጋጨፌ ቡና", slug="beans",
                price=100.0, stock_quantity=10, is_featured=True),
        Product(category_id=spices, name="Berbere", name_am="በርበሬ", slug="berbere", price=50.0, stock_quantity=20),
        Product(category_id=coffee, name="Jebena", slug="jebena", price=150.0, compare_at_price=200.0,
                stock_quantity=5, is_featured=True),
        Product(category_id=spices, name="Mitmita", slug="mitmita", price=80.0, compare_at_price=80.0),
        Product(category_id=coffee, name="Old Roast", slug="old-roast", price=30.0, is_active=False),
    ]
    for product in products:
        ids[product.slug] = create_document(db, "products", product)
    return ids


def make_user(db, email, full_name="Abebe Kebede", is_admin=False):
    user = sign_up(db, email, PASSWORD, full_name)
    if is_admin:
        db["user_profiles"].update_one({"_id": object_id(user["id"])}, {"$set": {"is_admin": True}})
    session = sign_in(db, email, PASSWORD)
    return current_identity(db, session["access_token"]), session["access_token"]


@pytest.fixture
def customer(db):
    return make_user(db, "abebe@example.com")


@pytest.fixture
def other_customer(db):
    return make_user(db, "sara@example.com", full_name="Sara Tesfaye")


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin@example.com", full_name="Admin", is_admin=True)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(token):
    return {"Authorization": f"Bearer {token}"}
