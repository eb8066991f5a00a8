from typing import Any, Dict

from pymongo.database import Database


def summary(db: Database) -> Dict[str, Any]:
    revenue_rows = list(db["order"].aggregate([
        {"$group": {"_id": None, "revenue": {"$sum": "$totalAmount"}}},
    ]))
    return {
        "totalUsers": db["user"].count_documents({}),
        "totalAdmins": db["user"].count_documents({"role": "admin"}),
        "totalProducts": db["product"].count_documents({}),
        "totalOrders": db["order"].count_documents({}),
        "totalRevenue": revenue_rows[0].get("revenue", 0) if revenue_rows else 0,
    }
