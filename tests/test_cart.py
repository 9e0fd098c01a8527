import pytest

from cart import CartStore
from database import create_document, object_id
from errors import NotFoundError, ValidationError


@pytest.fixture
def store(db, customer):
    user, _ = customer
    return CartStore(db, user.user_id)


def quantities(view):
    return {item["product_id"]: item["quantity"] for item in view["items"]}


def test_add_new_item(store, catalog_ids):
    view = store.add_item(catalog_ids["beans"], 2)
    assert quantities(view) == {catalog_ids["beans"]: 2}
    assert view["total_items"] == 2
    assert view["total_amount"] == 200.0
    assert view["items"][0]["product"]["stock_quantity"] == 10


def test_add_existing_item_equals_set_quantity(db, catalog_ids, customer, other_customer):
    first = CartStore(db, customer[0].user_id)
    second = CartStore(db, other_customer[0].user_id)
    beans = catalog_ids["beans"]

    first.add_item(beans, 1)
    second.add_item(beans, 1)

    added = first.add_item(beans, 3)
    updated = second.set_quantity(beans, 1 + 3)
    assert quantities(added) == quantities(updated) == {beans: 4}
    assert db["cart_items"].count_documents({"user_id": customer[0].user_id}) == 1


def test_set_quantity_zero_equals_remove(db, catalog_ids, customer, other_customer):
    first = CartStore(db, customer[0].user_id)
    second = CartStore(db, other_customer[0].user_id)
    for store in (first, second):
        store.add_item(catalog_ids["beans"], 2)
        store.add_item(catalog_ids["berbere"], 1)

    zeroed = first.set_quantity(catalog_ids["beans"], 0)
    removed = second.remove_item(catalog_ids["beans"])
    assert quantities(zeroed) == quantities(removed) == {catalog_ids["berbere"]: 1}
    assert zeroed["total_amount"] == removed["total_amount"] == 50.0


def test_total_matches_lines_after_mutations(store, catalog_ids):
    store.add_item(catalog_ids["beans"], 1)
    store.add_item(catalog_ids["berbere"], 3)
    store.add_item(catalog_ids["jebena"], 1)
    store.set_quantity(catalog_ids["beans"], 5)
    store.add_item(catalog_ids["berbere"], 1)
    view = store.remove_item(catalog_ids["jebena"])

    expected = sum(item["product"]["price"] * item["quantity"] for item in view["items"])
    assert view["total_amount"] == expected == 700.0
    assert view["total_items"] == 9
    assert store.total_amount == view["total_amount"]


def test_negative_quantity_removes(store, catalog_ids):
    store.add_item(catalog_ids["beans"], 2)
    assert store.set_quantity(catalog_ids["beans"], -1)["items"] == []


def test_add_rejects_bad_quantity(store, catalog_ids):
    with pytest.raises(ValidationError):
        store.add_item(catalog_ids["beans"], 0)


def test_add_unknown_or_inactive_product(store, catalog_ids):
    with pytest.raises(NotFoundError):
        store.add_item(catalog_ids["old-roast"])
    with pytest.raises(NotFoundError):
        store.add_item("not-an-id")
    with pytest.raises(NotFoundError):
        store.add_item("0123456789abcdef01234567")


def test_set_quantity_on_missing_line(store, catalog_ids):
    with pytest.raises(NotFoundError):
        store.set_quantity(catalog_ids["beans"], 3)


def test_remove_missing_line_is_harmless(store, catalog_ids):
    store.add_item(catalog_ids["beans"], 1)
    view = store.remove_item(catalog_ids["berbere"])
    assert quantities(view) == {catalog_ids["beans"]: 1}


def test_clear(db, store, catalog_ids):
    store.add_item(catalog_ids["beans"], 1)
    store.add_item(catalog_ids["berbere"], 1)
    view = store.clear()
    assert view == {"items": [], "total_items": 0, "total_amount": 0, "unavailable": []}
    assert db["cart_items"].count_documents({"user_id": store.user_id}) == 0


def test_carts_are_per_user(db, catalog_ids, customer, other_customer):
    CartStore(db, customer[0].user_id).add_item(catalog_ids["beans"], 1)
    assert CartStore(db, other_customer[0].user_id).load()["items"] == []


def test_missing_product_is_left_out(db, store, catalog_ids):
    store.add_item(catalog_ids["beans"], 1)
    store.add_item(catalog_ids["berbere"], 2)
    db["products"].delete_one({"_id": object_id(catalog_ids["berbere"])})

    view = store.load()
    assert quantities(view) == {catalog_ids["beans"]: 1}
    assert store.missing == [catalog_ids["berbere"]]
    assert view["unavailable"] == [catalog_ids["berbere"]]
    assert view["total_amount"] == 100.0


def test_concurrent_insert_falls_back_to_increment(db, store, catalog_ids, monkeypatch):
    beans = catalog_ids["beans"]
    create_document(db, "cart_items", {"user_id": store.user_id, "product_id": beans, "quantity": 2})
    # pretend the line was not there when the snapshot was read
    monkeypatch.setattr(store, "line", lambda product_id: None)

    view = store.add_item(beans, 3)
    assert quantities(view) == {beans: 5}
    assert db["cart_items"].count_documents({"user_id": store.user_id}) == 1


def test_remove_lines_keeps_other_lines(db, store, catalog_ids):
    store.add_item(catalog_ids["beans"], 1)
    snapshot = [item["id"] for item in store.items]
    create_document(db, "cart_items", {"user_id": store.user_id, "product_id": catalog_ids["berbere"], "quantity": 1})

    view = store.remove_lines(snapshot)
    assert quantities(view) == {catalog_ids["berbere"]: 1}
