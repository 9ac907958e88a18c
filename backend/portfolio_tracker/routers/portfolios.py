# backend/portfolio_tracker/routers/portfolios.py
"""
Portfolio, holding, performance and history endpoints.

Every endpoint is scoped to the authenticated user: a portfolio owned by
someone else yields 403, a missing one 404 (via the global handlers in
main.py). Mutations go through PortfolioService, which holds the
per-portfolio lock for the whole read-modify-write.

Endpoints:
- POST   /portfolios/                                  Create
- GET    /portfolios/                                  List own portfolios
- GET    /portfolios/summary/all                       Totals across own portfolios
- GET    /portfolios/{id}                              Detail with active holdings
- PATCH  /portfolios/{id}                              Update
- DELETE /portfolios/{id}                              Delete
- GET    /portfolios/{id}/holdings                     List holdings
- GET    /portfolios/{id}/holdings/{holding_id}        One holding
- POST   /portfolios/{id}/holdings                     Buy (add_holding)
- DELETE /portfolios/{id}/holdings/{holding_id}        Sell (remove_holding)
- GET    /portfolios/{id}/performance                  Totals + performance windows
- POST   /portfolios/{id}/refresh                      Recompute, snapshot, performance
- GET    /portfolios/{id}/history                      History log
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import (
    get_authenticated_user,
    get_portfolio_service,
    get_valuation_service,
)
from portfolio_tracker.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_WRITE,
)
from portfolio_tracker.models import Holding, Portfolio, User
from portfolio_tracker.schemas.portfolios import (
    DailyChangeResponse,
    HistoryEntryResponse,
    HoldingAdd,
    HoldingChangeResponse,
    HoldingResponse,
    PerformanceResponse,
    PerformanceWindowResponse,
    PortfolioCreate,
    PortfolioDetailResponse,
    PortfolioHistoryResponse,
    PortfolioListResponse,
    PortfolioRefreshResponse,
    PortfolioResponse,
    PortfolioSummaryItemResponse,
    PortfolioSummaryResponse,
    PortfolioUpdate,
)
from portfolio_tracker.services.portfolio_service import (
    HoldingChangeResult,
    PortfolioService,
    PortfolioSummary,
)
from portfolio_tracker.services.valuation import ValuationService

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/portfolios",
    tags=["Portfolios"],
)

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_authenticated_user)]
Portfolios = Annotated[PortfolioService, Depends(get_portfolio_service)]
Valuation = Annotated[ValuationService, Depends(get_valuation_service)]


# =============================================================================
# MAPPER FUNCTIONS (ORM / service types -> Pydantic schemas)
# =============================================================================

def map_holding(holding: Holding, valuation: ValuationService) -> HoldingResponse:
    """Map a Holding row to its schema, including the daily change."""
    response = HoldingResponse.model_validate(holding)
    daily = valuation.daily_change(holding)
    response.daily_change = DailyChangeResponse(value=daily.value, percentage=daily.percentage)
    return response


def map_change(result: HoldingChangeResult, valuation: ValuationService) -> HoldingChangeResponse:
    return HoldingChangeResponse(
        portfolio=PortfolioResponse.model_validate(result.portfolio),
        holding=map_holding(result.holding, valuation),
        transaction_id=result.transaction.id,
        filled_quantity=result.trade.filled_quantity,
        unfilled_quantity=result.unfilled_quantity,
        realized_gain_loss=result.trade.realized_gain_loss,
    )


def _map_windows(windows) -> dict[str, PerformanceWindowResponse]:
    return {
        period: PerformanceWindowResponse(value=window.value, percentage=window.percentage)
        for period, window in windows.items()
    }


def map_summary(summary: PortfolioSummary) -> PortfolioSummaryResponse:
    totals = summary.totals
    return PortfolioSummaryResponse(
        total_portfolios=summary.portfolio_count,
        total_holdings=totals.holding_count,
        total_value=totals.total_value,
        total_cost=totals.total_cost,
        total_gain_loss=totals.total_gain_loss,
        total_gain_loss_percentage=totals.total_gain_loss_percentage,
        total_realized_gain_loss=totals.total_realized_gain_loss,
        portfolios=[
            PortfolioSummaryItemResponse(
                portfolio_id=item.portfolio_id,
                name=item.name,
                currency=item.currency,
                total_value=item.totals.total_value,
                total_cost=item.totals.total_cost,
                total_gain_loss=item.totals.total_gain_loss,
                total_gain_loss_percentage=item.totals.total_gain_loss_percentage,
                holding_count=item.totals.holding_count,
            )
            for item in summary.portfolios
        ],
    )


def _map_detail(portfolio: Portfolio, valuation: ValuationService) -> PortfolioDetailResponse:
    base = PortfolioResponse.model_validate(portfolio)
    return PortfolioDetailResponse(
        **base.model_dump(),
        holdings=[map_holding(h, valuation) for h in portfolio.holdings if h.is_active],
        diversity_score=valuation.diversity_score(portfolio),
    )


# =============================================================================
# PORTFOLIO CRUD
# =============================================================================

@router.post(
    "/",
    response_model=PortfolioResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new portfolio",
)
@limiter.limit(RATE_LIMIT_WRITE)
def create_portfolio(
        request: Request,  # Required for rate limiting
        payload: PortfolioCreate,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Portfolio:
    """Create a portfolio owned by the authenticated user."""
    return service.create_portfolio(
        db,
        user_id=current_user.id,
        name=payload.name,
        description=payload.description,
        currency=payload.currency,
        is_default=payload.is_default,
    )


@router.get(
    "/",
    response_model=PortfolioListResponse,
    summary="List your portfolios",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_portfolios(
        request: Request,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> PortfolioListResponse:
    portfolios = service.list_portfolios(db, current_user.id)
    return PortfolioListResponse(
        items=[PortfolioResponse.model_validate(p) for p in portfolios],
        total=len(portfolios),
    )


@router.get(
    "/summary/all",
    response_model=PortfolioSummaryResponse,
    summary="Totals across all your portfolios",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def summarize_portfolios(
        request: Request,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> PortfolioSummaryResponse:
    """Value, cost and gain/loss summed over every portfolio you own, with a per-portfolio breakdown."""
    return map_summary(service.summarize(db, current_user.id))


@router.get(
    "/{portfolio_id}",
    response_model=PortfolioDetailResponse,
    summary="Get a portfolio with its active holdings",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_portfolio(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        valuation: Valuation,
) -> PortfolioDetailResponse:
    portfolio = service.get_portfolio(db, portfolio_id, current_user.id)
    return _map_detail(portfolio, valuation)


@router.patch(
    "/{portfolio_id}",
    response_model=PortfolioResponse,
    summary="Update a portfolio",
)
@limiter.limit(RATE_LIMIT_WRITE)
def update_portfolio(
        request: Request,
        portfolio_id: int,
        payload: PortfolioUpdate,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Portfolio:
    """Only the fields sent are changed."""
    return service.update_portfolio(
        db,
        portfolio_id,
        current_user.id,
        **payload.model_dump(exclude_unset=True),
    )


@router.delete(
    "/{portfolio_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a portfolio",
)
@limiter.limit(RATE_LIMIT_WRITE)
def delete_portfolio(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Response:
    """Deletes the portfolio with its holdings, transactions and history."""
    service.delete_portfolio(db, portfolio_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# HOLDINGS
# =============================================================================

@router.get(
    "/{portfolio_id}/holdings",
    response_model=list[HoldingResponse],
    summary="List holdings",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_holdings(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        valuation: Valuation,
        include_inactive: bool = Query(default=False, description="Include fully sold holdings"),
) -> list[HoldingResponse]:
    holdings = service.list_holdings(db, portfolio_id, current_user.id, include_inactive)
    return [map_holding(h, valuation) for h in holdings]


@router.get(
    "/{portfolio_id}/holdings/{holding_id}",
    response_model=HoldingResponse,
    summary="Get one holding",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_holding(
        request: Request,
        portfolio_id: int,
        holding_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        valuation: Valuation,
) -> HoldingResponse:
    holding = service.get_holding(db, portfolio_id, current_user.id, holding_id)
    return map_holding(holding, valuation)


@router.post(
    "/{portfolio_id}/holdings",
    response_model=HoldingChangeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy into a holding",
)
@limiter.limit(RATE_LIMIT_WRITE)
def add_holding(
        request: Request,
        portfolio_id: int,
        payload: HoldingAdd,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        valuation: Valuation,
) -> HoldingChangeResponse:
    """
    Record a buy and update the holding's average price.

    A new **symbol** creates the holding. Its current price is seeded
    with the trade price until a market price arrives.
    """
    result = service.add_holding(
        db,
        portfolio_id,
        current_user.id,
        quantity=payload.quantity,
        price=payload.price,
        fees=payload.fees,
        symbol=payload.symbol,
        holding_id=payload.holding_id,
        name=payload.name,
        asset_type=payload.asset_type,
        exchange=payload.exchange,
        date=payload.date,
        notes=payload.notes,
        source=payload.source,
    )
    return map_change(result, valuation)


@router.delete(
    "/{portfolio_id}/holdings/{holding_id}",
    response_model=HoldingChangeResponse,
    summary="Sell from a holding",
)
@limiter.limit(RATE_LIMIT_WRITE)
def remove_holding(
        request: Request,
        portfolio_id: int,
        holding_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        valuation: Valuation,
        quantity: Decimal = Query(..., description="Units to sell"),
        price: Decimal | None = Query(
            default=None,
            description="Sell price (default: current price, else average price)",
        ),
        fees: Decimal = Query(default=Decimal("0"), description="Commission and charges"),
) -> HoldingChangeResponse:
    """
    Record a sell.

    Selling more than is held sells everything; the remainder is reported
    as **unfilled_quantity**. A holding sold down to zero is deactivated.
    """
    result = service.remove_holding(
        db,
        portfolio_id,
        current_user.id,
        holding_id=holding_id,
        quantity=quantity,
        price=price,
        fees=fees,
    )
    return map_change(result, valuation)


# =============================================================================
# PERFORMANCE & HISTORY
# =============================================================================

@router.get(
    "/{portfolio_id}/performance",
    response_model=PerformanceResponse,
    summary="Portfolio totals and performance",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_performance(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
        period: str | None = Query(
            default=None,
            description="daily, weekly, monthly or yearly (default: all)",
        ),
) -> PerformanceResponse:
    report = service.get_performance(db, portfolio_id, current_user.id, period)
    return PerformanceResponse(
        portfolio_id=report.portfolio_id,
        period=report.period,
        total_value=report.total_value,
        total_cost=report.total_cost,
        total_gain_loss=report.total_gain_loss,
        total_gain_loss_percentage=report.total_gain_loss_percentage,
        total_realized_gain_loss=report.total_realized_gain_loss,
        holding_count=report.holding_count,
        diversity_score=report.diversity_score,
        performance=_map_windows(report.performance),
    )


@router.post(
    "/{portfolio_id}/refresh",
    response_model=PortfolioRefreshResponse,
    summary="Recompute totals, history and performance",
)
@limiter.limit(RATE_LIMIT_WRITE)
def refresh_portfolio(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> PortfolioRefreshResponse:
    """
    Append a history snapshot (when the value changed or the snapshot
    interval elapsed) and recompute the performance windows.
    """
    snapshot = service.refresh_portfolio(db, portfolio_id, current_user.id)
    totals = snapshot.totals
    latest = snapshot.history[-1] if snapshot.history else None
    return PortfolioRefreshResponse(
        portfolio_id=portfolio_id,
        total_value=totals.total_value,
        total_cost=totals.total_cost,
        total_gain_loss=totals.total_gain_loss,
        total_gain_loss_percentage=totals.total_gain_loss_percentage,
        total_realized_gain_loss=totals.total_realized_gain_loss,
        history_entries=len(snapshot.history),
        latest_entry=HistoryEntryResponse.model_validate(latest) if latest else None,
        performance=_map_windows(snapshot.performance.as_dict()),
    )


@router.get(
    "/{portfolio_id}/history",
    response_model=PortfolioHistoryResponse,
    summary="Portfolio history log",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_history(
        request: Request,
        portfolio_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> PortfolioHistoryResponse:
    entries = service.get_history(db, portfolio_id, current_user.id)
    return PortfolioHistoryResponse(
        portfolio_id=portfolio_id,
        entries=[HistoryEntryResponse.model_validate(e) for e in entries],
    )
