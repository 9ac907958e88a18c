# backend/tests/routers/test_transactions_api.py
"""
Integration tests for Transaction API endpoints.

Covers:
- POST   /portfolios/{id}/transactions (buy, sell, audit-only types)
- GET    /portfolios/{id}/transactions (pagination, filters)
- GET    /portfolios/{id}/transactions/summary
- GET    /portfolios/{id}/transactions/{tid}
- DELETE /portfolios/{id}/transactions/{tid} (audit flag only)
"""

from decimal import Decimal

import pytest

from tests.conftest import auth_headers, create_holding


def record(client, portfolio_id, headers, **payload):
    return client.post(f"/portfolios/{portfolio_id}/transactions", json=payload, headers=headers)


@pytest.fixture
def headers(sample_user):
    return auth_headers(sample_user)


# =============================================================================
# RECORD
# =============================================================================

class TestRecordTransaction:
    def test_buy_creates_holding(self, client, headers, sample_portfolio):
        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="buy", symbol="TCS", quantity="5", price="3000", fees="20",
            date="2024-01-02T09:30:00Z",
        )

        assert response.status_code == 201
        data = response.json()
        txn = data["transaction"]
        assert txn["transaction_type"] == "buy"
        assert txn["symbol"] == "TCS"
        assert Decimal(txn["total_amount"]) == Decimal("15000")
        assert Decimal(txn["net_amount"]) == Decimal("15020")
        assert Decimal(data["holding_quantity"]) == Decimal("5")
        assert Decimal(data["portfolio_total_value"]) == Decimal("15000")

    def test_sell_by_symbol(self, client, db, headers, sample_portfolio):
        create_holding(db, sample_portfolio, "TCS", "10", "100", "100")

        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="sell", symbol="TCS", quantity="4", price="120",
        )

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["holding_quantity"]) == Decimal("6")
        assert Decimal(data["transaction"]["realized_gain_loss"]) == Decimal("80")
        assert Decimal(data["unfilled_quantity"]) == Decimal("0")

    def test_oversell_records_filled_quantity(self, client, db, headers, sample_portfolio):
        create_holding(db, sample_portfolio, "TCS", "3", "100", "100")

        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="sell", symbol="TCS", quantity="5", price="100",
        )

        data = response.json()
        assert Decimal(data["transaction"]["quantity"]) == Decimal("3")
        assert Decimal(data["unfilled_quantity"]) == Decimal("2")

    def test_dividend_is_audit_only(self, client, db, headers, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "TCS", "10", "100", "100")

        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="dividend", holding_id=holding.id, quantity="10", price="5",
        )

        assert response.status_code == 201
        assert Decimal(response.json()["holding_quantity"]) == Decimal("10")
        db.refresh(holding)
        assert holding.average_price == Decimal("100")

    def test_split_needs_existing_holding(self, client, headers, sample_portfolio):
        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="split", symbol="NEWCO", quantity="2", price="0",
        )

        assert response.status_code == 404
        assert response.json()["error"] == "HoldingNotFoundError"

    def test_negative_quantity_rejected_by_schema(self, client, headers, sample_portfolio):
        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="buy", symbol="TCS", quantity="-1", price="10",
        )

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"
        assert any("quantity" in d["field"] for d in response.json()["details"])

    def test_unknown_type_rejected(self, client, headers, sample_portfolio):
        response = record(
            client, sample_portfolio.id, headers,
            transaction_type="gift", symbol="TCS", quantity="1", price="10",
        )

        assert response.status_code == 422

    def test_other_users_portfolio_forbidden(self, client, other_user, sample_portfolio):
        response = record(
            client, sample_portfolio.id, auth_headers(other_user),
            transaction_type="buy", symbol="TCS", quantity="1", price="10",
        )

        assert response.status_code == 403


# =============================================================================
# LIST / SUMMARY / GET / DEACTIVATE
# =============================================================================

class TestListTransactions:
    @pytest.fixture
    def recorded(self, client, headers, sample_portfolio):
        for day, (kind, qty) in enumerate([("buy", "10"), ("buy", "5"), ("sell", "3")], start=1):
            record(
                client, sample_portfolio.id, headers,
                transaction_type=kind, symbol="INFY", quantity=qty, price="100",
                date=f"2024-01-0{day}T10:00:00Z",
            )

    def test_newest_first_with_pagination(self, client, headers, sample_portfolio, recorded):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/transactions",
            params={"page": 1, "limit": 2},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert [t["transaction_type"] for t in data["items"]] == ["sell", "buy"]
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["pages"] == 2
        assert data["pagination"]["has_next"] is True
        assert data["pagination"]["has_previous"] is False

    def test_filter_by_type(self, client, headers, sample_portfolio, recorded):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/transactions",
            params={"type": "buy"},
            headers=headers,
        )

        assert response.json()["pagination"]["total"] == 2

    def test_limit_over_maximum_rejected(self, client, headers, sample_portfolio):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/transactions",
            params={"limit": 10_000},
            headers=headers,
        )

        assert response.status_code == 422

    def test_summary(self, client, headers, sample_portfolio, recorded):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/transactions/summary", headers=headers
        )

        assert response.status_code == 200
        items = {i["transaction_type"]: i for i in response.json()["items"]}
        assert items["buy"]["count"] == 2
        assert Decimal(items["buy"]["total_quantity"]) == Decimal("15")
        assert items["sell"]["count"] == 1

    def test_deactivate_keeps_holding(self, client, headers, sample_portfolio, recorded):
        base = f"/portfolios/{sample_portfolio.id}"
        listed = client.get(f"{base}/transactions", headers=headers).json()["items"]
        sell_id = listed[0]["id"]

        response = client.delete(f"{base}/transactions/{sell_id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        holdings = client.get(f"{base}/holdings", headers=headers).json()
        assert Decimal(holdings[0]["quantity"]) == Decimal("12")

        active = client.get(f"{base}/transactions", headers=headers).json()
        everything = client.get(
            f"{base}/transactions", params={"include_inactive": True}, headers=headers
        ).json()
        assert active["pagination"]["total"] == 2
        assert everything["pagination"]["total"] == 3

    def test_get_transaction(self, client, headers, sample_portfolio, recorded):
        base = f"/portfolios/{sample_portfolio.id}/transactions"
        txn_id = client.get(base, headers=headers).json()["items"][-1]["id"]

        response = client.get(f"{base}/{txn_id}", headers=headers)

        assert response.status_code == 200
        assert response.json()["id"] == txn_id

    def test_get_missing_transaction(self, client, headers, sample_portfolio):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/transactions/4242", headers=headers
        )

        assert response.status_code == 404
        assert response.json()["error"] == "TransactionNotFoundError"
