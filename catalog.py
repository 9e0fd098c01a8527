from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from database import get_documents, to_str_id
from errors import NotFoundError


def discount_percent(price: float, compare_at_price: Optional[float]) -> int:
    """Whole-number discount shown next to a struck-through compare-at price.

    Zero unless the compare-at price is strictly above the selling price.
    """
    if not compare_at_price or compare_at_price <= price:
        return 0
    ratio = (Decimal(str(compare_at_price)) - Decimal(str(price))) / Decimal(str(compare_at_price)) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def localized(doc: Dict[str, Any], field: str, lang: str) -> Optional[str]:
    if lang == "am" and doc.get(f"{field}_am"):
        return doc[f"{field}_am"]
    return doc.get(field)


def present_category(doc: Dict[str, Any], lang: str = "en") -> Dict[str, Any]:
    c = to_str_id(doc)
    c["display_name"] = localized(doc, "name", lang)
    return c


def present_product(doc: Dict[str, Any], lang: str = "en") -> Dict[str, Any]:
    p = to_str_id(doc)
    p["display_name"] = localized(doc, "name", lang)
    p["display_description"] = localized(doc, "description", lang)
    p["discount_percent"] = discount_percent(doc.get("price", 0), doc.get("compare_at_price"))
    return p


def list_categories(db: Database, lang: str = "en") -> List[Dict[str, Any]]:
    rows = get_documents(db, "categories", sort=[("display_order", ASCENDING)])
    return [present_category(c, lang) for c in rows]


def list_products(db: Database, category: Optional[str] = None, q: Optional[str] = None,
                  min_price: Optional[float] = None, max_price: Optional[float] = None,
                  sort: Optional[str] = None, lang: str = "en") -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"is_active": True}
    if category:
        cat = db["categories"].find_one({"slug": category})
        if not cat:
            return []
        query["category_id"] = str(cat["_id"])

    products = [present_product(p, lang) for p in db["products"].find(query).sort("created_at", DESCENDING)]

    # search and price range apply to the localized, fetched rows
    if q:
        needle = q.strip().lower()
        products = [p for p in products if needle in (p["display_name"] or "").lower()]
    if min_price is not None:
        products = [p for p in products if p["price"] >= min_price]
    if max_price is not None:
        products = [p for p in products if p["price"] <= max_price]

    if sort == "price_asc":
        products.sort(key=lambda p: p["price"])
    elif sort == "price_desc":
        products.sort(key=lambda p: p["price"], reverse=True)
    elif sort == "name":
        products.sort(key=lambda p: (p["display_name"] or "").lower())
    return products


def featured_products(db: Database, limit: int = 8, lang: str = "en") -> List[Dict[str, Any]]:
    cursor = db["products"].find({"is_active": True, "is_featured": True}).sort("created_at", DESCENDING).limit(limit)
    return [present_product(p, lang) for p in cursor]


def get_product(db: Database, slug: str, lang: str = "en") -> Dict[str, Any]:
    doc = db["products"].find_one({"slug": slug, "is_active": True})
    if not doc:
        raise NotFoundError("Product not found")
    return present_product(doc, lang)
