from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from database import Base, get_db
from main import app


def _client() -> TestClient:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_transaction_flow_and_stats():
    client = _client()
    assert client.post("/api/categories/seed").json() == {"created": 10}
    categories = client.get("/api/categories").json()
    food = next(c for c in categories if c["name"] == "Food & Dining")
    salary = next(c for c in categories if c["name"] == "Salary")

    resp = client.post(
        "/api/transactions",
        json={
            "type": "income",
            "amount": "1000.00",
            "transaction_date": "2024-06-01",
            "category_id": salary["id"],
        },
    )
    assert resp.status_code == 201
    client.post(
        "/api/transactions",
        json={
            "type": "expense",
            "amount": "300.00",
            "transaction_date": "2024-06-15",
            "category_id": food["id"],
            "merchant": "Java House",
        },
    )

    stats = client.get("/api/stats", params={"month": "2024-06"}).json()
    assert float(stats["income"]) == 1000.0
    assert float(stats["balance"]) == 700.0
    assert stats["transaction_count"] == 2
    assert stats["expense_change"] == 100.0

    spending = client.get("/api/category-spending", params={"month": "2024-06"}).json()
    assert spending[0]["category"]["name"] == "Food & Dining"
    assert spending[0]["percentage"] == 100.0

    assert client.get("/api/merchants").json() == ["Java House"]

    export = client.get(
        "/api/transactions/export.csv",
        params={"start": "2024-06-01", "end": "2024-06-30"},
    )
    assert export.status_code == 200
    assert "fintrack_transactions_2024-06-01_to_2024-06-30.csv" in export.headers[
        "content-disposition"
    ]
    app.dependency_overrides.clear()


def test_errors_map_to_status_codes():
    client = _client()
    assert client.delete("/api/transactions/42").status_code == 404

    resp = client.post(
        "/api/transactions",
        json={
            "type": "expense",
            "amount": "100.00",
            "transaction_date": "2024-06-01",
            "is_split": True,
            "splits": [{"amount": "60.00"}, {"amount": "30.00"}],
        },
    )
    assert resp.status_code == 422

    category = client.post(
        "/api/categories", json={"name": "Bonus", "type": "income"}
    ).json()
    resp = client.post(
        "/api/transactions",
        json={
            "type": "expense",
            "amount": "5.00",
            "transaction_date": "2024-06-01",
            "category_id": category["id"],
        },
    )
    assert resp.status_code == 400

    resp = client.get(
        "/api/reports", params={"period": "custom", "start": "2024-06-30", "end": "2024-06-01"}
    )
    assert resp.status_code == 400
    app.dependency_overrides.clear()


def test_report_and_goal_endpoints():
    client = _client()
    client.post(
        "/api/transactions",
        json={"type": "income", "amount": "2000.00", "transaction_date": "2024-03-01"},
    )
    report = client.get("/api/reports", params={"period": "yearly", "year": 2024}).json()
    assert report["period"] == "Yearly Report"
    assert len(report["monthly_trend"]) == 12
    assert report["savings_rate"] == 100.0

    goal = client.post(
        "/api/goals", json={"name": "Holiday", "target_amount": "400.00"}
    ).json()
    goal = client.post(f"/api/goals/{goal['id']}/contribute", json={"amount": "100.00"}).json()
    assert goal["progress"] == 25.0
    assert goal["is_completed"] is False
    app.dependency_overrides.clear()


def test_budget_templates_popular_filter():
    client = _client()
    assert len(client.get("/api/budget-templates").json()) == 5
    popular = client.get("/api/budget-templates", params={"popular": "true"}).json()
    assert {t["id"] for t in popular} == {"50-30-20", "zero-based", "pay-yourself-first"}
    app.dependency_overrides.clear()
