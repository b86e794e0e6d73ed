"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

The dashboard and the serverless-style handlers are called from the
browser, so every response carries CORS headers for allowed origins and
OPTIONS preflights are answered here.

"*" in allowed_origins allows any origin (the handlers' historical
behaviour). Credentials are never advertised together with "*".

Usage:
    app.add_middleware(
        CORSMiddleware,
        allowed_origins=["http://localhost:5173"],
    )
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from hireflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CORSMiddleware(BaseHTTPMiddleware):
    """Handles preflight OPTIONS requests and adds CORS headers to responses."""

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_credentials: bool = True,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_any = "*" in self.allowed_origins
        self.allow_credentials = allow_credentials and not self.allow_any
        self.allow_methods = allow_methods or ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
        self.allow_headers = allow_headers or [
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Request-ID",
            "X-Requested-With",
        ]
        self.max_age = max_age

        logger.info(
            "CORS middleware initialized",
            allowed_origins=self.allowed_origins,
            allow_credentials=self.allow_credentials,
        )

    def _allowed_origin_header(self, origin: str | None) -> str | None:
        if self.allow_any:
            return "*"
        if origin and origin in self.allowed_origins:
            return origin
        return None

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        allow_origin = self._allowed_origin_header(origin)

        if request.method == "OPTIONS":
            if allow_origin:
                return self._preflight_response(allow_origin)
            logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if allow_origin:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            if self.allow_credentials:
                response.headers["Access-Control-Allow-Credentials"] = "true"
        elif origin:
            logger.warning("CORS request from disallowed origin", origin=origin, path=request.url.path)

        return response

    def _preflight_response(self, allow_origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
        }
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"

        return Response(status_code=200, headers=headers)
