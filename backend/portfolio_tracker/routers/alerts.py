# backend/portfolio_tracker/routers/alerts.py
"""
Alert endpoints, nested under a holding.

Alerts are evaluated on every price tick for their holding. A fired alert
remains active and is debounced (ALERT_DEBOUNCE_HOURS) rather than
disabled.

Endpoints:
- POST   /portfolios/{id}/holdings/{holding_id}/alerts
- GET    /portfolios/{id}/holdings/{holding_id}/alerts
- PATCH  /portfolios/{id}/holdings/{holding_id}/alerts/{alert_id}
- DELETE /portfolios/{id}/holdings/{holding_id}/alerts/{alert_id}
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import get_authenticated_user, get_portfolio_service
from portfolio_tracker.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_WRITE,
)
from portfolio_tracker.models import Alert, User
from portfolio_tracker.schemas.alerts import AlertCreate, AlertResponse, AlertUpdate
from portfolio_tracker.services.portfolio_service import PortfolioService

router = APIRouter(
    prefix="/portfolios/{portfolio_id}/holdings/{holding_id}/alerts",
    tags=["Alerts"],
)

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_authenticated_user)]
Portfolios = Annotated[PortfolioService, Depends(get_portfolio_service)]


@router.post(
    "",
    response_model=AlertResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an alert",
)
@limiter.limit(RATE_LIMIT_WRITE)
def create_alert(
        request: Request,  # Required for rate limiting
        portfolio_id: int,
        holding_id: int,
        payload: AlertCreate,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Alert:
    return service.create_alert(
        db, portfolio_id, current_user.id, holding_id, payload.alert_type, payload.value
    )


@router.get(
    "",
    response_model=list[AlertResponse],
    summary="List a holding's alerts",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def list_alerts(
        request: Request,
        portfolio_id: int,
        holding_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> list[Alert]:
    return service.list_alerts(db, portfolio_id, current_user.id, holding_id)


@router.patch(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Update an alert's threshold or active flag",
)
@limiter.limit(RATE_LIMIT_WRITE)
def update_alert(
        request: Request,
        portfolio_id: int,
        holding_id: int,
        alert_id: int,
        payload: AlertUpdate,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Alert:
    return service.update_alert(
        db,
        portfolio_id,
        current_user.id,
        holding_id,
        alert_id,
        value=payload.value,
        is_active=payload.is_active,
    )


@router.delete(
    "/{alert_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an alert",
)
@limiter.limit(RATE_LIMIT_WRITE)
def delete_alert(
        request: Request,
        portfolio_id: int,
        holding_id: int,
        alert_id: int,
        db: DbSession,
        current_user: CurrentUser,
        service: Portfolios,
) -> Response:
    service.delete_alert(db, portfolio_id, current_user.id, holding_id, alert_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
