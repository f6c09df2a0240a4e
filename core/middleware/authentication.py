"""
Authentication middleware for attaching the caller identity.

The upstream authentication service issues signed bearer tokens carrying the
caller id (``sub``) and role set (``roles``). This middleware:
1. Extracts the token from the Authorization header
2. Verifies signature and expiry
3. Places a Caller in the request scope for the authorization gate
"""

import logging
from typing import Callable, Optional

import jwt
from fastapi import Request, status
from fastapi.responses import JSONResponse

from core.security import caller_from_payload, verify_jwt_token

logger = logging.getLogger(__name__)

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = [
    "/",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
]


class AuthenticationError(Exception):
    """Base exception for authentication errors."""
    pass


class TokenExpiredError(AuthenticationError):
    """Raised when JWT token has expired."""
    pass


class TokenInvalidError(AuthenticationError):
    """Raised when JWT token is invalid."""
    pass


class AuthenticationMiddleware:
    """
    Authentication middleware that validates the caller token.

    Identity is trusted as issued; no user lookup happens here.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
    ):
        """
        Initialize authentication middleware.

        Args:
            app: ASGI application
            jwt_secret: Secret key for JWT verification
            jwt_algorithm: JWT signing algorithm
        """
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)

        if self._is_public_endpoint(request.url.path):
            await self.app(scope, receive, send)
            return

        try:
            token = self._extract_token(request)
            if not token:
                raise TokenInvalidError("No authentication token provided")

            try:
                payload = verify_jwt_token(token, self.jwt_secret, self.jwt_algorithm)
                caller = caller_from_payload(payload)
            except jwt.ExpiredSignatureError:
                raise TokenExpiredError("Token has expired")
            except jwt.InvalidTokenError as e:
                raise TokenInvalidError(f"Invalid token: {str(e)}")

        except TokenExpiredError:
            await self._send_error_response(
                scope,
                receive,
                send,
                code="token_expired",
                message="Authentication token has expired.",
            )
            return
        except TokenInvalidError as e:
            logger.warning(f"Invalid token: {str(e)}")
            await self._send_error_response(
                scope,
                receive,
                send,
                code="token_invalid",
                message="Invalid authentication token.",
            )
            return

        scope["caller"] = caller
        await self.app(scope, receive, send)

    def _is_public_endpoint(self, path: str) -> bool:
        """Check if endpoint is public (no auth required)."""
        if path in PUBLIC_ENDPOINTS:
            return True

        public_prefixes = ["/health", "/ready", "/docs", "/redoc", "/openapi"]
        return any(path.startswith(prefix) for prefix in public_prefixes)

    def _extract_token(self, request: Request) -> Optional[str]:
        """Extract JWT token from Authorization header."""
        auth_header = request.headers.get("Authorization")

        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]

        return None

    async def _send_error_response(
        self,
        scope: dict,
        receive: Callable,
        send: Callable,
        code: str,
        message: str,
    ) -> None:
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": message, "errorKind": code},
            headers={"WWW-Authenticate": "Bearer"},
        )
        await response(scope, receive, send)

