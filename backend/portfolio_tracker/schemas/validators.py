# backend/portfolio_tracker/schemas/validators.py
"""
Normalizers for the identifiers that appear in tracker requests.

Symbols, exchanges and currencies arrive in any case and with stray
whitespace; they are stored upper-cased. Each validator raises ValueError,
which pydantic turns into a 422 field error.

The Annotated aliases at the bottom are for path and query parameters:

    def get_quote(symbol: SymbolPath, exchange: ExchangeQuery = None): ...
"""

import re
from typing import Annotated

from fastapi import Path
from pydantic import AfterValidator

# NSE/BSE style tickers: M&M, BAJAJ-AUTO, plus US class shares like BRK.B
SYMBOL_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.&-]{0,9}$")
EXCHANGE_PATTERN = re.compile(r"^[A-Z0-9]{1,20}$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def _normalize(value: str | None, pattern: re.Pattern, label: str, rule: str) -> str:
    normalized = (value or "").strip().upper()
    if not normalized:
        raise ValueError(f"{label} cannot be empty")
    if not pattern.match(normalized):
        raise ValueError(f"Invalid {label.lower()} '{normalized}': {rule}")
    return normalized


def validate_symbol(value: str) -> str:
    """
    Upper-case and check a ticker symbol.

    Examples:
        " infy " -> "INFY"; "m&m" -> "M&M"; "" and "TOO-LONG-SYMBOL" raise
    """
    return _normalize(
        value, SYMBOL_PATTERN, "Symbol",
        "1-10 characters, letters and digits with optional '.', '-' or '&'",
    )


def validate_exchange(value: str) -> str:
    return _normalize(value, EXCHANGE_PATTERN, "Exchange", "1-20 letters or digits")


def validate_currency(value: str) -> str:
    return _normalize(value, CURRENCY_PATTERN, "Currency", "expected a 3-letter ISO code such as INR")


def validate_exchange_query(value: str | None) -> str | None:
    """Optional exchange filter: blank means "provider default"."""
    if not value or not value.strip():
        return None
    return validate_exchange(value)


SymbolPath = Annotated[str, Path(description="Trading symbol, e.g. INFY"), AfterValidator(validate_symbol)]
ExchangeQuery = Annotated[str | None, AfterValidator(validate_exchange_query)]
