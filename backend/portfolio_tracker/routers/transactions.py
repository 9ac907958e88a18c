# backend/portfolio_tracker/routers/transactions.py
"""
Transaction endpoints, nested under a portfolio.

Key concepts:
- Buys and sells move the holding (same path as the holdings endpoints)
- Dividend, split and merger records are audit-only
- Transactions are never edited; DELETE only flips the audit flag
  (holdings are NOT replayed)

Endpoints:
- POST   /portfolios/{id}/transactions                    Record
- GET    /portfolios/{id}/transactions                    List (paged, newest first)
- GET    /portfolios/{id}/transactions/summary            Totals per type
- GET    /portfolios/{id}/transactions/{transaction_id}   One transaction
- DELETE /portfolios/{id}/transactions/{transaction_id}   Deactivate
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import get_authenticated_user, get_portfolio_service
from portfolio_tracker.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_WRITE,
)
from portfolio_tracker.models import Transaction, TransactionType, User
from portfolio_tracker.schemas.pagination import PaginationMeta
from portfolio_tracker.schemas.transactions import (
    TransactionCreate,
    TransactionListResponse,
    TransactionRecordResponse,
    TransactionResponse,
    TransactionSummaryItem,
    TransactionSummaryResponse,
)
from portfolio_tracker.services.constants import MAX_LIST_LIMIT
from portfolio_tracker.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/portfolios/{portfolio_id}/transactions",
    tags=["Transactions"],
)

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_authenticated_user)]
Portfolios = Annotated[PortfolioService, Depends(get_portfolio_service)]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "",
    response_model=TransactionRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
)
@limiter.limit(RATE_LIMIT_WRITE)
def record_transaction(
        request: Request,  # Required for rate limiting
        portfolio_id: int,
        payload: TransactionCreate,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> TransactionRecordResponse:
    """
    Record a transaction.

    - **buy**: creates the holding if the symbol is new
    - **sell**: clamps to the held quantity; the rest is **unfilled_quantity**
    - **dividend / split / merger**: audit record on an existing holding
    """
    result = service.record_transaction(
        db,
        portfolio_id,
        current_user.id,
        transaction_type=payload.transaction_type,
        quantity=payload.quantity,
        price=payload.price,
        fees=payload.fees,
        symbol=payload.symbol,
        holding_id=payload.holding_id,
        date=payload.date,
        notes=payload.notes,
        source=payload.source,
    )
    return TransactionRecordResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        holding_id=result.holding.id,
        holding_quantity=result.holding.quantity,
        portfolio_total_value=result.portfolio.total_value,
        unfilled_quantity=result.unfilled_quantity,
    )


@router.get(
    "",
    response_model=TransactionListResponse,
    summary="List transactions",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_transactions(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        transaction_type: TransactionType | None = Query(
            default=None,
            alias="type",
            description="Filter by type (buy, sell, dividend, split, merger)",
        ),
        holding_id: int | None = Query(default=None, gt=0, description="Filter by holding"),
        include_inactive: bool = Query(default=False, description="Include deactivated records"),
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=MAX_LIST_LIMIT),
) -> TransactionListResponse:
    result = service.list_transactions(
        db,
        portfolio_id,
        current_user.id,
        page=page,
        limit=limit,
        transaction_type=transaction_type,
        holding_id=holding_id,
        include_inactive=include_inactive,
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in result.items],
        pagination=PaginationMeta.create(total=result.total, page=result.page, limit=result.limit),
    )


@router.get(
    "/summary",
    response_model=TransactionSummaryResponse,
    summary="Totals of active transactions per type",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def transaction_summary(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> TransactionSummaryResponse:
    rows = service.transaction_summary(db, portfolio_id, current_user.id)
    return TransactionSummaryResponse(
        portfolio_id=portfolio_id,
        items=[TransactionSummaryItem.model_validate(row) for row in rows],
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_transaction(
        request: Request,
        portfolio_id: int,
        transaction_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Transaction:
    return service.get_transaction(db, portfolio_id, current_user.id, transaction_id)


@router.delete(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Deactivate a transaction",
)
@limiter.limit(RATE_LIMIT_WRITE)
def deactivate_transaction(
        request: Request,
        portfolio_id: int,
        transaction_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Transaction:
    """
    Mark a transaction inactive.

    This is an audit flag: the holding it touched keeps its quantity and
    average price.
    """
    transaction = service.deactivate_transaction(db, portfolio_id, current_user.id, transaction_id)
    logger.info(f"Transaction {transaction_id} deactivated in portfolio {portfolio_id}")
    return transaction
