# backend/portfolio_tracker/services/auth/jwt_handler.py
"""
JWT access token creation and validation.

The API is stateless: every request carries a bearer token whose ``sub``
claim is the user ID. Tokens are issued by the identity service in front
of this API (and by the test suite); this module only needs to agree on
the secret and algorithm from settings.

Security notes:
- Tokens are NOT stored in the database
- Uses HS256 by default (symmetric)
- Only tokens with ``type == "access"`` are accepted
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from portfolio_tracker.config import settings
from portfolio_tracker.services.exceptions import TokenExpiredError, InvalidCredentialsError


class JWTHandler:
    """
    Handles JWT token creation and validation.

    Access tokens contain:
    - sub: User ID (string)
    - email: User's email (optional)
    - exp: Expiration timestamp
    - iat: Issued at timestamp
    - type: "access"
    """

    @staticmethod
    def create_access_token(
        user_id: int,
        email: str | None = None,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create a new access token.

        Args:
            user_id: The user's database ID
            email: The user's email address
            expires_delta: Optional custom expiration time

        Returns:
            Encoded JWT string
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "exp": now + expires_delta,
            "iat": now,
            "type": "access",
        }
        if email:
            payload["email"] = email

        return jwt.encode(
            payload,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )

    @staticmethod
    def validate_access_token(token: str) -> dict[str, Any]:
        """
        Validate an access token and return its payload.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidCredentialsError: If the token is invalid, malformed,
                not an access token, or has no usable subject
        """
        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Access token has expired")
        except JWTError as e:
            raise InvalidCredentialsError(f"Invalid token: {str(e)}")

        if payload.get("type") != "access":
            raise InvalidCredentialsError("Invalid token type")

        subject = payload.get("sub")
        if subject is None or not str(subject).isdigit():
            raise InvalidCredentialsError("Token subject is not a user ID")

        return payload

    @staticmethod
    def get_user_id(token: str) -> int:
        """Validate a token and return the user ID from its subject."""
        return int(JWTHandler.validate_access_token(token)["sub"])
