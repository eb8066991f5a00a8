import accounts
import analytics
import orders


def test_empty_store(db):
    assert analytics.summary(db) == {
        "totalUsers": 0,
        "totalAdmins": 0,
        "totalProducts": 0,
        "totalOrders": 0,
        "totalRevenue": 0,
    }


def test_counts_and_revenue(db, make_user, make_product):
    make_user()
    make_user(email="boss@example.com", role="admin")
    product = make_product(price=25)
    make_product(name="Other")
    line = [{"productId": str(product["_id"]), "quantity": 1}]
    orders.create_order(db, "ana@example.com", line, 25)
    orders.create_order(db, "ana@example.com", line, 50.5)

    assert analytics.summary(db) == {
        "totalUsers": 2,
        "totalAdmins": 1,
        "totalProducts": 2,
        "totalOrders": 2,
        "totalRevenue": 75.5,
    }
