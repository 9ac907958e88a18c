# backend/tests/routers/test_portfolios_api.py
"""
Integration tests for Portfolio API endpoints.

These tests verify full HTTP request/response cycles for:
- Portfolio CRUD (/portfolios/)
- Cross-portfolio summary (/portfolios/summary/all)
- Holdings: list, get, buy (POST) and sell (DELETE)
- Performance, refresh and history

Tests validate:
- Correct status codes
- Response structure matches schemas
- Holding metrics and portfolio totals after trades
- Ownership errors (403) and missing resources (404)
"""

from decimal import Decimal

from tests.conftest import auth_headers, create_holding, create_portfolio


# =============================================================================
# CREATE / LIST / GET
# =============================================================================

class TestCreatePortfolio:
    def test_create_success(self, client, sample_user):
        response = client.post(
            "/portfolios/",
            json={"name": "  Long Term  ", "currency": "usd"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Long Term"
        assert data["currency"] == "USD"
        assert data["user_id"] == sample_user.id
        assert Decimal(data["total_value"]) == Decimal("0")

    def test_create_requires_auth(self, client):
        response = client.post("/portfolios/", json={"name": "Nope"})

        assert response.status_code == 401
        assert response.json()["error"] == "UnauthorizedError"

    def test_blank_name_rejected(self, client, sample_user):
        response = client.post(
            "/portfolios/", json={"name": "   "}, headers=auth_headers(sample_user)
        )

        assert response.status_code == 422

    def test_invalid_currency_rejected(self, client, sample_user):
        response = client.post(
            "/portfolios/",
            json={"name": "Bad", "currency": "12X"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422


class TestListAndGetPortfolio:
    def test_list_only_own(self, client, db, sample_user, other_user):
        create_portfolio(db, sample_user, name="Mine")
        create_portfolio(db, other_user, name="Theirs")

        response = client.get("/portfolios/", headers=auth_headers(sample_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["name"] == "Mine"

    def test_get_with_active_holdings(self, client, db, sample_user, sample_portfolio):
        create_holding(db, sample_portfolio, "INFY", "10", "100", "120")
        sold = create_holding(db, sample_portfolio, "TCS", "0", "100", "100")
        sold.is_active = False
        db.commit()

        response = client.get(
            f"/portfolios/{sample_portfolio.id}", headers=auth_headers(sample_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert [h["symbol"] for h in data["holdings"]] == ["INFY"]
        assert data["diversity_score"] == 20
        assert Decimal(data["total_value"]) == Decimal("1200")
        assert Decimal(data["holdings"][0]["gain_loss"]) == Decimal("200")

    def test_get_not_found(self, client, sample_user):
        response = client.get("/portfolios/99999", headers=auth_headers(sample_user))

        assert response.status_code == 404
        assert response.json()["error"] == "PortfolioNotFoundError"

    def test_get_other_users_portfolio_forbidden(self, client, db, other_user, sample_portfolio):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}", headers=auth_headers(other_user)
        )

        assert response.status_code == 403
        assert response.json()["error"] == "PermissionDeniedError"


# =============================================================================
# SUMMARY
# =============================================================================

class TestPortfolioSummary:
    def test_no_portfolios(self, client, sample_user):
        response = client.get("/portfolios/summary/all", headers=auth_headers(sample_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total_portfolios"] == 0
        assert data["portfolios"] == []
        assert Decimal(data["total_value"]) == Decimal("0")
        assert Decimal(data["total_gain_loss_percentage"]) == Decimal("0")

    def test_sums_gains_and_losses(self, client, db, sample_user, other_user):
        winner = create_portfolio(db, sample_user, name="Winner")
        loser = create_portfolio(db, sample_user, name="Loser")
        create_holding(db, winner, "INFY", "10", "100", "120")
        create_holding(db, loser, "TCS", "5", "200", "150")
        create_holding(db, create_portfolio(db, other_user, name="Theirs"), "WIPRO", "1", "10", "99")

        response = client.get("/portfolios/summary/all", headers=auth_headers(sample_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total_portfolios"] == 2
        assert data["total_holdings"] == 2
        assert Decimal(data["total_value"]) == Decimal("1950")
        assert Decimal(data["total_cost"]) == Decimal("2000")
        assert Decimal(data["total_gain_loss"]) == Decimal("-50")
        assert Decimal(data["total_gain_loss_percentage"]) == Decimal("-2.5")
        assert {p["name"] for p in data["portfolios"]} == {"Winner", "Loser"}

    def test_requires_auth(self, client):
        response = client.get("/portfolios/summary/all")

        assert response.status_code == 401


# =============================================================================
# UPDATE / DELETE
# =============================================================================

class TestUpdateAndDeletePortfolio:
    def test_partial_update(self, client, sample_user, sample_portfolio):
        response = client.patch(
            f"/portfolios/{sample_portfolio.id}",
            json={"description": "Retirement"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["description"] == "Retirement"
        assert data["name"] == sample_portfolio.name

    def test_update_other_users_portfolio_forbidden(self, client, other_user, sample_portfolio):
        response = client.patch(
            f"/portfolios/{sample_portfolio.id}",
            json={"name": "Hijacked"},
            headers=auth_headers(other_user),
        )

        assert response.status_code == 403

    def test_delete(self, client, db, sample_user, sample_portfolio):
        create_holding(db, sample_portfolio, "INFY")
        headers = auth_headers(sample_user)

        response = client.delete(f"/portfolios/{sample_portfolio.id}", headers=headers)

        assert response.status_code == 204
        assert client.get(f"/portfolios/{sample_portfolio.id}", headers=headers).status_code == 404


# =============================================================================
# HOLDINGS
# =============================================================================

class TestHoldings:
    def test_buy_new_symbol(self, client, sample_user, sample_portfolio):
        response = client.post(
            f"/portfolios/{sample_portfolio.id}/holdings",
            json={"symbol": "infy", "quantity": "10", "price": "100", "exchange": "nse"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["holding"]["symbol"] == "INFY"
        assert data["holding"]["exchange"] == "NSE"
        assert Decimal(data["holding"]["quantity"]) == Decimal("10")
        assert Decimal(data["holding"]["current_price"]) == Decimal("100")
        assert Decimal(data["portfolio"]["total_value"]) == Decimal("1000")
        assert Decimal(data["unfilled_quantity"]) == Decimal("0")
        assert data["transaction_id"] > 0

    def test_second_buy_updates_average(self, client, sample_user, sample_portfolio):
        headers = auth_headers(sample_user)
        url = f"/portfolios/{sample_portfolio.id}/holdings"
        client.post(url, json={"symbol": "INFY", "quantity": "10", "price": "100"}, headers=headers)

        response = client.post(
            url, json={"symbol": "INFY", "quantity": "10", "price": "200"}, headers=headers
        )

        holding = response.json()["holding"]
        assert Decimal(holding["quantity"]) == Decimal("20")
        assert Decimal(holding["average_price"]) == Decimal("150")

    def test_buy_requires_symbol_or_holding_id(self, client, sample_user, sample_portfolio):
        response = client.post(
            f"/portfolios/{sample_portfolio.id}/holdings",
            json={"quantity": "10", "price": "100"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422

    def test_buy_with_zero_price_rejected(self, client, sample_user, sample_portfolio):
        response = client.post(
            f"/portfolios/{sample_portfolio.id}/holdings",
            json={"symbol": "INFY", "quantity": "10", "price": "0"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "price"}

    def test_buy_in_future_rejected(self, client, sample_user, sample_portfolio):
        response = client.post(
            f"/portfolios/{sample_portfolio.id}/holdings",
            json={"symbol": "INFY", "quantity": "1", "price": "10", "date": "2999-01-01T00:00:00Z"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_sell_partial(self, client, db, sample_user, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "INFY", "10", "100", "150")

        response = client.delete(
            f"/portfolios/{sample_portfolio.id}/holdings/{holding.id}",
            params={"quantity": "4", "price": "150"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["holding"]["quantity"]) == Decimal("6")
        assert Decimal(data["realized_gain_loss"]) == Decimal("200")
        assert Decimal(data["portfolio"]["total_realized_gain_loss"]) == Decimal("200")

    def test_oversell_is_clamped(self, client, db, sample_user, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "INFY", "10", "100", "100")

        response = client.delete(
            f"/portfolios/{sample_portfolio.id}/holdings/{holding.id}",
            params={"quantity": "15"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["filled_quantity"]) == Decimal("10")
        assert Decimal(data["unfilled_quantity"]) == Decimal("5")
        assert Decimal(data["holding"]["quantity"]) == Decimal("0")
        assert data["holding"]["is_active"] is False

    def test_sell_unknown_holding(self, client, sample_user, sample_portfolio):
        response = client.delete(
            f"/portfolios/{sample_portfolio.id}/holdings/9999",
            params={"quantity": "1"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 404
        assert response.json()["error"] == "HoldingNotFoundError"

    def test_list_holdings_include_inactive(self, client, db, sample_user, sample_portfolio):
        create_holding(db, sample_portfolio, "INFY")
        sold = create_holding(db, sample_portfolio, "TCS", "0")
        sold.is_active = False
        db.commit()
        headers = auth_headers(sample_user)
        url = f"/portfolios/{sample_portfolio.id}/holdings"

        active = client.get(url, headers=headers).json()
        everything = client.get(url, params={"include_inactive": True}, headers=headers).json()

        assert [h["symbol"] for h in active] == ["INFY"]
        assert sorted(h["symbol"] for h in everything) == ["INFY", "TCS"]

    def test_get_holding_includes_daily_change(self, client, db, sample_user, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "INFY", "10", "100", "100")

        response = client.get(
            f"/portfolios/{sample_portfolio.id}/holdings/{holding.id}",
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        daily = response.json()["daily_change"]
        assert Decimal(daily["value"]) == Decimal("0")
        assert Decimal(daily["percentage"]) == Decimal("0")


# =============================================================================
# PERFORMANCE / REFRESH / HISTORY
# =============================================================================

class TestPerformanceAndHistory:
    def test_performance_all_periods(self, client, db, sample_user, sample_portfolio):
        create_holding(db, sample_portfolio, "INFY", "10", "100", "110")

        response = client.get(
            f"/portfolios/{sample_portfolio.id}/performance", headers=auth_headers(sample_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data["performance"]) == {"daily", "weekly", "monthly", "yearly"}
        assert Decimal(data["total_gain_loss_percentage"]) == Decimal("10")
        assert data["holding_count"] == 1

    def test_performance_single_period(self, client, sample_user, sample_portfolio):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/performance",
            params={"period": "weekly"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 200
        assert list(response.json()["performance"]) == ["weekly"]

    def test_performance_invalid_period(self, client, sample_user, sample_portfolio):
        response = client.get(
            f"/portfolios/{sample_portfolio.id}/performance",
            params={"period": "hourly"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "InvalidPeriodError"
        assert "daily" in data["details"]["valid_options"]

    def test_refresh_appends_history(self, client, db, sample_user, sample_portfolio):
        create_holding(db, sample_portfolio, "INFY", "10", "100", "100")
        headers = auth_headers(sample_user)

        refreshed = client.post(f"/portfolios/{sample_portfolio.id}/refresh", headers=headers)
        history = client.get(f"/portfolios/{sample_portfolio.id}/history", headers=headers)

        assert refreshed.status_code == 200
        assert refreshed.json()["history_entries"] == 1
        assert Decimal(refreshed.json()["latest_entry"]["total_value"]) == Decimal("1000")
        assert history.status_code == 200
        assert len(history.json()["entries"]) == 1

    def test_refresh_twice_without_change_keeps_one_entry(
            self, client, db, sample_user, sample_portfolio
    ):
        create_holding(db, sample_portfolio, "INFY", "10", "100", "100")
        headers = auth_headers(sample_user)

        client.post(f"/portfolios/{sample_portfolio.id}/refresh", headers=headers)
        response = client.post(f"/portfolios/{sample_portfolio.id}/refresh", headers=headers)

        assert response.json()["history_entries"] == 1
