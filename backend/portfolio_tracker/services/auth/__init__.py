# backend/portfolio_tracker/services/auth/__init__.py
"""
Bearer token handling for the Portfolio Tracker API.

Usage:
    from portfolio_tracker.services.auth import JWTHandler

    token = JWTHandler.create_access_token(user_id=1, email="user@example.com")
    user_id = JWTHandler.get_user_id(token)
"""

from portfolio_tracker.services.auth.jwt_handler import JWTHandler

__all__ = [
    "JWTHandler",
]
