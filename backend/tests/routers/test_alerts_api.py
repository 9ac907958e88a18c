# backend/tests/routers/test_alerts_api.py
"""
Integration tests for holding alert endpoints.
"""

from decimal import Decimal

import pytest

from tests.conftest import auth_headers, create_holding


@pytest.fixture
def holding(db, sample_portfolio):
    return create_holding(db, sample_portfolio, "INFY", "10", "100", "100")


@pytest.fixture
def alerts_url(sample_portfolio, holding):
    return f"/portfolios/{sample_portfolio.id}/holdings/{holding.id}/alerts"


class TestAlertsApi:
    def test_create_and_list(self, client, sample_user, alerts_url):
        headers = auth_headers(sample_user)

        created = client.post(
            alerts_url, json={"alert_type": "price_above", "value": "110"}, headers=headers
        )
        listed = client.get(alerts_url, headers=headers)

        assert created.status_code == 201
        assert created.json()["is_active"] is True
        assert created.json()["last_triggered"] is None
        assert [a["id"] for a in listed.json()] == [created.json()["id"]]

    def test_negative_value_rejected(self, client, sample_user, alerts_url):
        response = client.post(
            alerts_url,
            json={"alert_type": "price_below", "value": "-5"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422

    def test_unknown_type_rejected(self, client, sample_user, alerts_url):
        response = client.post(
            alerts_url,
            json={"alert_type": "volume_spike", "value": "5"},
            headers=auth_headers(sample_user),
        )

        assert response.status_code == 422

    def test_update_threshold_and_flag(self, client, sample_user, alerts_url):
        headers = auth_headers(sample_user)
        alert_id = client.post(
            alerts_url, json={"alert_type": "percentage_change", "value": "10"}, headers=headers
        ).json()["id"]

        response = client.patch(
            f"{alerts_url}/{alert_id}", json={"value": "15", "is_active": False}, headers=headers
        )

        assert response.status_code == 200
        assert Decimal(response.json()["value"]) == Decimal("15")
        assert response.json()["is_active"] is False

    def test_delete(self, client, sample_user, alerts_url):
        headers = auth_headers(sample_user)
        alert_id = client.post(
            alerts_url, json={"alert_type": "price_above", "value": "110"}, headers=headers
        ).json()["id"]

        response = client.delete(f"{alerts_url}/{alert_id}", headers=headers)

        assert response.status_code == 204
        assert client.get(alerts_url, headers=headers).json() == []

    def test_missing_alert(self, client, sample_user, alerts_url):
        response = client.patch(
            f"{alerts_url}/777", json={"is_active": False}, headers=auth_headers(sample_user)
        )

        assert response.status_code == 404
        assert response.json()["error"] == "AlertNotFoundError"

    def test_other_user_forbidden(self, client, other_user, alerts_url):
        response = client.get(alerts_url, headers=auth_headers(other_user))

        assert response.status_code == 403

    def test_alert_fires_on_price_update(self, client, sample_user, alerts_url):
        headers = auth_headers(sample_user)
        alert_id = client.post(
            alerts_url, json={"alert_type": "price_above", "value": "110"}, headers=headers
        ).json()["id"]

        response = client.post("/assets/INFY/price", json={"price": "112"}, headers=headers)

        triggered = response.json()["triggered_alerts"]
        assert [t["alert_id"] for t in triggered] == [alert_id]
        alert = client.get(alerts_url, headers=headers).json()[0]
        assert alert["last_triggered"] is not None
        assert alert["is_active"] is True
