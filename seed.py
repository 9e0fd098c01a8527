"""Demo catalog and admin account for local development."""
import os
import logging
from typing import Dict, Any

from pymongo.database import Database

from database import create_document, object_id
from identity import hash_password
from schemas import Category, Product, User, UserProfile

logger = logging.getLogger(__name__)

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@ethioshop.store")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")

CATEGORIES = [
    Category(name="Coffee", name_am="ቡና", slug="coffee", display_order=1),
    Category(name="Spices", name_am="ቅመማ ቅመም", slug="spices", display_order=2),
    Category(name="Traditional Clothing", name_am="ባህላዊ ልብስ", slug="clothing", display_order=3),
]

PRODUCTS = {
    "coffee": [
        Product(name="Yirgacheffe Coffee Beans", name_am="የይርጋጨፌ ቡና", slug="yirgacheffe-coffee",
                description="Washed Yirgacheffe, 500g, medium roast.", price=450.0, compare_at_price=600.0,
                stock_quantity=40, is_featured=True),
        Product(name="Jebena Coffee Pot", name_am="ጀበና", slug="jebena", description="Handmade clay jebena.",
                price=350.0, stock_quantity=15),
    ],
    "spices": [
        Product(name="Berbere", name_am="በርበሬ", slug="berbere", description="Hot spice blend, 250g.",
                price=180.0, stock_quantity=100, is_featured=True),
        Product(name="Mitmita", name_am="ሚጥሚጣ", slug="mitmita", description="Bird's eye chili blend, 100g.",
                price=120.0, compare_at_price=120.0, stock_quantity=60),
    ],
    "clothing": [
        Product(name="Habesha Kemis", name_am="የሀበሻ ቀሚስ", slug="habesha-kemis",
                description="Cotton dress with tibeb border.", price=3500.0, compare_at_price=4200.0,
                stock_quantity=8, is_featured=True),
    ],
}


def seed(db: Database) -> Dict[str, Any]:
    created = {"admin": False, "categories": 0, "products": 0}

    if not db["users"].find_one({"email": ADMIN_EMAIL}):
        user_id = create_document(db, "users", User(email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASSWORD)))
        profile = UserProfile(full_name="Admin", is_admin=True).model_dump()
        profile["_id"] = object_id(user_id)
        create_document(db, "user_profiles", profile)
        created["admin"] = True

    if db["categories"].count_documents({}) == 0:
        for category in CATEGORIES:
            category_id = create_document(db, "categories", category)
            created["categories"] += 1
            for product in PRODUCTS.get(category.slug, []):
                create_document(db, "products", product.model_copy(update={"category_id": category_id}))
                created["products"] += 1

    logger.info("Seeded %s", created)
    return created
