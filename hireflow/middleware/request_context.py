"""
RequestContext Middleware - Adds request tracking to all requests.

Adds to request.state:
- request_id: Unique ID for request tracing
- ip_address: Client IP address
- user_agent: Client user agent string

The analytics and feedback handlers store ip_address and user_agent with
each row.
"""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from hireflow.config import settings
from hireflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def extract_client_ip(request: Request) -> str | None:
    """
    Client IP as the serverless platform reports it.

    First entry of X-Forwarded-For, else CF-Connecting-IP, else the socket
    peer. Forwarding headers are ignored when TRUST_X_FORWARDED_FOR is off,
    and, when TRUSTED_PROXY_IPS is set, unless the peer is one of them.
    """
    peer = request.client.host if request.client else None

    if not settings.TRUST_X_FORWARDED_FOR:
        return peer
    if settings.TRUSTED_PROXY_IPS and peer not in settings.TRUSTED_PROXY_IPS:
        return peer

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # "client, proxy1, proxy2"
        return forwarded_for.split(",")[0].strip()

    connecting_ip = request.headers.get("cf-connecting-ip")
    if connecting_ip:
        return connecting_ip.strip()

    return peer


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Adds request_id, ip_address and user_agent to request.state and X-Request-ID to responses."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.ip_address = extract_client_ip(request)
        request.state.user_agent = request.headers.get("user-agent")

        logger.debug(
            "Request started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            ip_address=request.state.ip_address,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
