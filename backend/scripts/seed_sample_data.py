#!/usr/bin/env python3
# backend/scripts/seed_sample_data.py
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

# Setup path to import portfolio_tracker modules
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from portfolio_tracker.database import SessionLocal
from portfolio_tracker.dependencies import get_portfolio_service, get_pricing_service
from portfolio_tracker.models import AlertType, AssetType, Portfolio, PriceSource, User
from portfolio_tracker.services.auth.jwt_handler import JWTHandler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_BUYS = [
    {"symbol": "INFY", "name": "Infosys", "quantity": "25", "price": "1420.50",
     "date": datetime(2024, 1, 15, 4, 30, tzinfo=timezone.utc)},
    {"symbol": "TCS", "name": "Tata Consultancy Services", "quantity": "8", "price": "3710.00",
     "date": datetime(2024, 2, 5, 5, 0, tzinfo=timezone.utc)},
    {"symbol": "NIFTYBEES", "name": "Nippon India Nifty 50 BeES", "quantity": "120", "price": "232.15",
     "date": datetime(2024, 3, 1, 6, 15, tzinfo=timezone.utc), "asset_type": AssetType.ETF},
]

SAMPLE_PRICES = {"INFY": "1512.35", "TCS": "3895.10", "NIFTYBEES": "248.60"}


def seed():
    db = SessionLocal()
    portfolios = get_portfolio_service()
    pricing = get_pricing_service()
    try:
        logger.info("Starting database seeding...")

        # 1. Demo user
        user = db.query(User).filter(User.email == "demo@example.com").first()
        if not user:
            user = User(email="demo@example.com", full_name="Demo Investor")
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Created user: {user.email}")
        else:
            logger.info(f"User exists: {user.email}")

        # 2. Portfolio with a few buys
        portfolio = db.query(Portfolio).filter(Portfolio.user_id == user.id).first()
        if not portfolio:
            portfolio = portfolios.create_portfolio(
                db, user.id, name="Long Term", currency="INR", is_default=True
            )
            for buy in SAMPLE_BUYS:
                portfolios.add_holding(
                    db,
                    portfolio.id,
                    user.id,
                    quantity=Decimal(buy["quantity"]),
                    price=Decimal(buy["price"]),
                    symbol=buy["symbol"],
                    name=buy["name"],
                    asset_type=buy.get("asset_type", AssetType.STOCK),
                    exchange="NSE",
                    date=buy["date"],
                )
            logger.info(f"Created portfolio: {portfolio.name} with {len(SAMPLE_BUYS)} holdings")
        else:
            logger.info(f"Portfolio exists: {portfolio.name}")

        # 3. Static prices so the portfolio has gains to show
        for symbol, price in SAMPLE_PRICES.items():
            pricing.update_price(db, symbol, Decimal(price), PriceSource.MANUAL)
        portfolios.refresh_portfolio(db, portfolio.id, user.id)

        # 4. One alert on the first holding
        holding = portfolios.list_holdings(db, portfolio.id, user.id)[0]
        if not holding.alerts:
            portfolios.create_alert(
                db, portfolio.id, user.id, holding.id, AlertType.PRICE_ABOVE, Decimal("1600")
            )

        logger.info("Seeding complete!")
        token = JWTHandler.create_access_token(user_id=user.id, email=user.email)
        print(f"Bearer token for {user.email}:\n{token}")

    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
