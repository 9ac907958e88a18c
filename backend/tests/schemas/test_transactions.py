# backend/tests/schemas/test_transactions.py
"""
Tests for transaction and holding request schemas.

Business rules (future dates, non-positive trade prices) belong to the
service and are not checked here; these tests cover field constraints
and normalization only.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from portfolio_tracker.models import AssetType, TransactionSource, TransactionType
from portfolio_tracker.schemas.portfolios import HoldingAdd
from portfolio_tracker.schemas.transactions import TransactionCreate


def valid_transaction(**overrides) -> dict:
    data = {
        "transaction_type": "buy",
        "symbol": "infy",
        "quantity": "10",
        "price": "1450.50",
    }
    data.update(overrides)
    return data


# =============================================================================
# TRANSACTION CREATE
# =============================================================================

class TestTransactionCreate:
    def test_valid_transaction_create(self):
        txn = TransactionCreate(**valid_transaction())

        assert txn.transaction_type == TransactionType.BUY
        assert txn.symbol == "INFY"
        assert txn.quantity == Decimal("10")
        assert txn.fees == Decimal("0")
        assert txn.source == TransactionSource.MANUAL
        assert txn.date is None

    def test_required_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            TransactionCreate()

        missing = {e["loc"][0] for e in exc_info.value.errors()}
        assert {"transaction_type", "quantity", "price"} <= missing

    def test_target_required(self):
        with pytest.raises(ValidationError, match="holding_id or symbol"):
            TransactionCreate(**valid_transaction(symbol=None))

    def test_holding_id_alone_is_enough(self):
        txn = TransactionCreate(**valid_transaction(symbol=None, holding_id=3))

        assert txn.holding_id == 3

    @pytest.mark.parametrize("symbol", ["", "   ", "TOO-LONG-SYMBOL", "BAD$"])
    def test_invalid_symbols_rejected(self, symbol):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_transaction(symbol=symbol))

    @pytest.mark.parametrize("symbol,expected", [
        (" m&m ", "M&M"),
        ("bajaj-auto", "BAJAJ-AUTO"),
        ("brk.b", "BRK.B"),
    ])
    def test_symbol_normalization(self, symbol, expected):
        assert TransactionCreate(**valid_transaction(symbol=symbol)).symbol == expected

    @pytest.mark.parametrize("field", ["quantity", "price", "fees"])
    def test_negative_amounts_rejected(self, field):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_transaction(**{field: "-1"}))

    def test_zero_amounts_accepted_by_schema(self):
        txn = TransactionCreate(**valid_transaction(quantity="0", price="0"))

        assert txn.price == Decimal("0")

    def test_future_date_left_to_service(self):
        future = datetime.now(timezone.utc) + timedelta(days=3)

        txn = TransactionCreate(**valid_transaction(date=future.isoformat()))

        assert txn.date is not None

    def test_decimal_precision_preserved(self):
        txn = TransactionCreate(**valid_transaction(quantity="0.12345678"))

        assert txn.quantity == Decimal("0.12345678")

    def test_too_many_decimal_places_rejected(self):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_transaction(quantity="0.123456789"))

    @pytest.mark.parametrize("kind", ["dividend", "split", "merger", "sell"])
    def test_all_types_accepted(self, kind):
        assert TransactionCreate(**valid_transaction(transaction_type=kind)).transaction_type.value == kind

    def test_invalid_type_rejected(self):
        with pytest.raises(ValidationError):
            TransactionCreate(**valid_transaction(transaction_type="gift"))


# =============================================================================
# HOLDING ADD
# =============================================================================

class TestHoldingAdd:
    def test_new_holding_details(self):
        payload = HoldingAdd(
            symbol="reliance", quantity="2", price="2500", exchange=" bse ", asset_type="etf"
        )

        assert payload.symbol == "RELIANCE"
        assert payload.exchange == "BSE"
        assert payload.asset_type == AssetType.ETF

    def test_target_required(self):
        with pytest.raises(ValidationError):
            HoldingAdd(quantity="1", price="1")

    def test_holding_id_must_be_positive(self):
        with pytest.raises(ValidationError):
            HoldingAdd(holding_id=0, quantity="1", price="1")

    def test_invalid_exchange(self):
        with pytest.raises(ValidationError):
            HoldingAdd(symbol="INFY", quantity="1", price="1", exchange="N-S-E")
