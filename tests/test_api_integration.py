"""
Integration tests for the Credit Module API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from credit_module.api import create_app
from credit_module.api.dependencies import CreditSystem, get_credit_system
from credit_module.config import CreditModuleConfig
from credit_module.storage import InMemoryStorage


@pytest.fixture
def system():
    """In-memory credit system for one test"""
    return CreditSystem(storage=InMemoryStorage(), config=CreditModuleConfig(_env_file=None))


@pytest.fixture
def client(system):
    """Create a test client with the credit system dependency overridden"""
    app = create_app()
    app.dependency_overrides[get_credit_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_customer(client, credit_limit="20000.00", used_credit_limit="0"):
    r = client.post("/customers", json={
        "name": "Grace",
        "surname": "Hopper",
        "credit_limit": credit_limit,
        "used_credit_limit": used_credit_limit
    })
    assert r.status_code == 201
    return r.json()


def create_loan(client, customer_id, amount="10000", interest_rate="0.2", number_of_installment=12):
    return client.post(f"/customers/{customer_id}/loans", json={
        "amount": amount,
        "interest_rate": interest_rate,
        "number_of_installment": number_of_installment
    })


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Credit Module API"
        assert "endpoints" in data


class TestCustomerFlow:
    """End-to-end customer management tests"""

    def test_create_customer(self, client):
        data = create_customer(client)

        assert data["id"]
        assert data["name"] == "Grace"
        assert data["credit_limit"] == "20000.00"
        assert data["used_credit_limit"] == "0.00"
        assert data["available_credit"] == "20000.00"

    def test_get_customer(self, client):
        created = create_customer(client)

        r = client.get(f"/customers/{created['id']}")
        assert r.status_code == 200
        assert r.json()["id"] == created["id"]

    def test_get_missing_customer(self, client):
        r = client.get("/customers/missing")
        assert r.status_code == 404

    def test_list_customers(self, client):
        create_customer(client)
        create_customer(client)

        r = client.get("/customers")
        assert r.status_code == 200
        assert r.json()["count"] == 2

    def test_invalid_customer(self, client):
        r = client.post("/customers", json={"name": "", "surname": "Hopper", "credit_limit": "10"})
        assert r.status_code == 422

        r = client.post("/customers", json={
            "name": "Grace", "surname": "Hopper", "credit_limit": "10", "used_credit_limit": "20"
        })
        assert r.status_code == 400


class TestLoanFlow:
    """End-to-end loan origination and payment tests"""

    def test_create_loan(self, client):
        customer = create_customer(client)

        r = create_loan(client, customer["id"])
        assert r.status_code == 201
        loan = r.json()
        assert loan["loan_amount"] == "12000.00"
        assert loan["number_of_installment"] == 12
        assert not loan["is_paid"]
        assert len(loan["installments"]) == 12
        assert all(i["amount"] == "1000.00" for i in loan["installments"])

        r = client.get(f"/customers/{customer['id']}")
        assert r.json()["used_credit_limit"] == "12000.00"

    def test_create_loan_outside_policy(self, client):
        customer = create_customer(client)

        assert create_loan(client, customer["id"], number_of_installment=7).status_code == 400
        assert create_loan(client, customer["id"], interest_rate="0.6").status_code == 400
        assert create_loan(client, customer["id"], interest_rate="0.05").status_code == 400

        r = client.get(f"/customers/{customer['id']}")
        assert r.json()["used_credit_limit"] == "0.00"

    def test_create_loan_validation(self, client):
        customer = create_customer(client)

        assert create_loan(client, customer["id"], amount="0").status_code == 422
        assert create_loan(client, customer["id"], number_of_installment="six").status_code == 422

    def test_create_loan_follows_configured_policy(self):
        config = CreditModuleConfig(
            _env_file=None,
            installment_options=[3, 6],
            min_interest_rate=Decimal("0.05"),
            max_interest_rate=Decimal("0.3")
        )
        system = CreditSystem(storage=InMemoryStorage(), config=config)
        app = create_app()
        app.dependency_overrides[get_credit_system] = lambda: system
        client = TestClient(app)

        customer = create_customer(client)

        r = create_loan(client, customer["id"], amount="1000", interest_rate="0.05", number_of_installment=3)
        assert r.status_code == 201
        assert r.json()["loan_amount"] == "1050.00"
        assert len(r.json()["installments"]) == 3

        assert create_loan(client, customer["id"], number_of_installment=12).status_code == 400
        assert create_loan(client, customer["id"], interest_rate="0.4").status_code == 400

    def test_create_loan_insufficient_credit(self, client):
        customer = create_customer(client, credit_limit="1000.00")

        r = create_loan(client, customer["id"])
        assert r.status_code == 400
        assert "Insufficient credit" in r.json()["detail"]

    def test_create_loan_unknown_customer(self, client):
        r = create_loan(client, "missing")
        assert r.status_code == 404

    def test_list_loans_with_filters(self, client):
        customer = create_customer(client)
        create_loan(client, customer["id"], amount="1000", number_of_installment=6)
        create_loan(client, customer["id"], amount="1000", number_of_installment=12)

        r = client.get(f"/customers/{customer['id']}/loans")
        assert r.status_code == 200
        assert r.json()["count"] == 2

        r = client.get(f"/customers/{customer['id']}/loans", params={"number_of_installment": 6})
        assert r.json()["count"] == 1
        assert r.json()["loans"][0]["number_of_installment"] == 6

        r = client.get(f"/customers/{customer['id']}/loans", params={"is_paid": "true"})
        assert r.json()["count"] == 0

        r = client.get(f"/customers/{customer['id']}/loans", params={"is_overdue": "false"})
        assert r.json()["count"] == 2

    def test_list_loans_unknown_customer(self, client):
        r = client.get("/customers/missing/loans")
        assert r.status_code == 404

    def test_get_installments(self, client):
        customer = create_customer(client)
        loan = create_loan(client, customer["id"], number_of_installment=6).json()

        r = client.get(f"/customers/{customer['id']}/loans/{loan['id']}/installments")
        assert r.status_code == 200
        installments = r.json()["installments"]
        assert len(installments) == 6
        due_dates = [i["due_date"] for i in installments]
        assert due_dates == sorted(due_dates)

    def test_get_installments_of_other_customer(self, client):
        owner = create_customer(client)
        other = create_customer(client)
        loan = create_loan(client, owner["id"]).json()

        r = client.get(f"/customers/{other['id']}/loans/{loan['id']}/installments")
        assert r.status_code == 404

    def test_pay_loan(self, client):
        customer = create_customer(client)
        loan = create_loan(client, customer["id"]).json()

        # The first installment is due next month, so paying now earns a discount
        r = client.post(
            f"/customers/{customer['id']}/loans/{loan['id']}/pay",
            json={"payment_amount": "1000.00"}
        )
        assert r.status_code == 200
        result = r.json()
        assert result["number_of_installments_paid"] == 1
        assert not result["is_loan_fully_paid"]
        assert Decimal(result["total_discount"]) > Decimal("0")
        assert Decimal(result["total_penalty"]) == Decimal("0")
        assert Decimal(result["total_amount_paid"]) < Decimal("1000.00")

        r = client.get(f"/customers/{customer['id']}/loans/{loan['id']}/installments")
        installments = r.json()["installments"]
        assert installments[0]["is_paid"]
        assert installments[0]["payment_date"] is not None
        assert not installments[1]["is_paid"]

    def test_pay_loan_insufficient_amount(self, client):
        customer = create_customer(client)
        loan = create_loan(client, customer["id"]).json()

        r = client.post(
            f"/customers/{customer['id']}/loans/{loan['id']}/pay",
            json={"payment_amount": "10.00"}
        )
        assert r.status_code == 400

    def test_pay_loan_validation(self, client):
        customer = create_customer(client)
        loan = create_loan(client, customer["id"]).json()

        r = client.post(
            f"/customers/{customer['id']}/loans/{loan['id']}/pay",
            json={"payment_amount": "0"}
        )
        assert r.status_code == 422

    def test_pay_unknown_loan(self, client):
        customer = create_customer(client)

        r = client.post(
            f"/customers/{customer['id']}/loans/missing/pay",
            json={"payment_amount": "100.00"}
        )
        assert r.status_code == 404
