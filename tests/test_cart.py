import pytest
from bson import ObjectId

import accounts
import catalog
import reconciliation
from errors import NotFound, ValidationFailed

EMAIL = "ana@example.com"


def test_same_product_twice_sums_quantity(db, make_user, make_product):
    make_user()
    product = make_product(name="P", price=40, rating=4)
    accounts.add_to_cart(db, EMAIL, str(product["_id"]), 2)
    accounts.add_to_cart(db, EMAIL, str(product["_id"]), 3)

    cart = reconciliation.get_cart(db, EMAIL)
    assert cart == [{"_id": product["_id"], "name": "P", "price": 40, "rating": 4, "quantity": 5}]
    assert len(db["user"].find_one({"email": EMAIL})["cart"]) == 1


def test_quantity_defaults_to_one(db, make_user, make_product):
    make_user()
    product = make_product()
    accounts.add_to_cart(db, EMAIL, str(product["_id"]))
    accounts.add_to_cart(db, EMAIL, str(product["_id"]), None)
    assert reconciliation.get_cart(db, EMAIL)[0]["quantity"] == 2


def test_distinct_products_keep_insertion_order(db, make_user, make_product):
    make_user()
    a = make_product(name="A")
    b = make_product(name="B")
    accounts.add_to_cart(db, EMAIL, str(b["_id"]))
    accounts.add_to_cart(db, EMAIL, str(a["_id"]))
    assert [item["name"] for item in reconciliation.get_cart(db, EMAIL)] == ["B", "A"]


def test_cart_shows_current_product_data(db, make_user, make_product):
    make_user()
    product = make_product(name="Old", price=10)
    accounts.add_to_cart(db, EMAIL, str(product["_id"]))
    catalog.update_product(db, str(product["_id"]), {"name": "New", "price": 12})
    item = reconciliation.get_cart(db, EMAIL)[0]
    assert (item["name"], item["price"]) == ("New", 12)


def test_add_does_not_check_product_exists(db, make_user):
    make_user()
    accounts.add_to_cart(db, EMAIL, str(ObjectId()), 1)
    assert len(db["user"].find_one({"email": EMAIL})["cart"]) == 1
    assert reconciliation.get_cart(db, EMAIL) == []


def test_add_for_unknown_user(db):
    with pytest.raises(NotFound):
        accounts.add_to_cart(db, "ghost@example.com", str(ObjectId()), 1)


def test_add_rejects_bad_input(db, make_user):
    make_user()
    with pytest.raises(ValidationFailed):
        accounts.add_to_cart(db, EMAIL, "nope", 1)
    with pytest.raises(ValidationFailed):
        accounts.add_to_cart(db, EMAIL, str(ObjectId()), -2)


def test_deleted_product_is_omitted_without_error(db, make_user, make_product):
    make_user()
    kept = make_product(name="Kept")
    gone = make_product(name="Gone")
    accounts.add_to_cart(db, EMAIL, str(kept["_id"]), 1)
    accounts.add_to_cart(db, EMAIL, str(gone["_id"]), 4)
    catalog.delete_product(db, str(gone["_id"]))

    assert [item["name"] for item in reconciliation.get_cart(db, EMAIL)] == ["Kept"]
    assert len(db["user"].find_one({"email": EMAIL})["cart"]) == 2


def test_legacy_string_reference_is_ignored(db, make_user, make_product):
    make_user()
    product = make_product()
    db["user"].update_one({"email": EMAIL}, {"$set": {"cart": [
        {"productId": "not-an-object-id", "quantity": 1},
        {"productId": product["_id"], "quantity": 2},
    ]}})
    assert [item["quantity"] for item in reconciliation.get_cart(db, EMAIL)] == [2]


def test_unknown_user_reads_empty(db):
    assert reconciliation.get_cart(db, "ghost@example.com") == []


def test_unreachable_store_reads_empty(unreachable_db):
    assert reconciliation.get_cart(unreachable_db, EMAIL) == []
    assert reconciliation.get_wishlist(unreachable_db, EMAIL) == []


def test_remove_returns_remaining_cart(db, make_user, make_product):
    make_user()
    a = make_product(name="A")
    b = make_product(name="B")
    accounts.add_to_cart(db, EMAIL, str(a["_id"]), 1)
    accounts.add_to_cart(db, EMAIL, str(b["_id"]), 2)
    cart = accounts.remove_from_cart(db, EMAIL, str(a["_id"]))
    assert [(item["name"], item["quantity"]) for item in cart] == [("B", 2)]


def test_remove_non_member_is_a_noop(db, make_user, make_product):
    make_user()
    product = make_product()
    accounts.add_to_cart(db, EMAIL, str(product["_id"]), 1)
    cart = accounts.remove_from_cart(db, EMAIL, str(ObjectId()))
    assert [item["_id"] for item in cart] == [product["_id"]]
    assert accounts.remove_from_cart(db, EMAIL, "garbage") == cart


def test_remove_for_unknown_user_returns_empty(db):
    assert accounts.remove_from_cart(db, "ghost@example.com", str(ObjectId())) == []


def test_remove_prunes_dangling_entries(db, make_user, make_product):
    make_user()
    kept = make_product(name="Kept")
    gone = make_product(name="Gone")
    accounts.add_to_cart(db, EMAIL, str(kept["_id"]), 1)
    accounts.add_to_cart(db, EMAIL, str(gone["_id"]), 1)
    catalog.delete_product(db, str(gone["_id"]))

    accounts.remove_from_cart(db, EMAIL, str(ObjectId()))
    stored = db["user"].find_one({"email": EMAIL})["cart"]
    assert [entry["productId"] for entry in stored] == [kept["_id"]]
