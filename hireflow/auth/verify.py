"""
verify.py
---------
Purpose:
    Google ID token verification using Google's JWKS (RS256).

Notes:
    - The verifier is built once in the app lifespan and kept on app.state;
      PyJWKClient caches the signing keys it fetches.
    - Provides `auth_dependency` for protected routes, returning the
      authenticated user's identity claims.
"""

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from hireflow.config import Settings

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

_security = HTTPBearer()


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    id: str
    email: str
    name: str
    picture: str | None = None
    email_verified: bool = False


class GoogleTokenVerifier:
    def __init__(self, settings: Settings):
        self.audience = settings.GOOGLE_CLIENT_ID
        self.require_audience = settings.environment != "development"
        self._jwk_client = PyJWKClient(settings.GOOGLE_JWKS_URL)

    def verify(self, token: str) -> AuthenticatedUser:
        if self.audience is None and self.require_audience:
            raise jwt.InvalidAudienceError("GOOGLE_CLIENT_ID is not configured")
        signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=self.audience,
            issuer=GOOGLE_ISSUERS,
            options={"verify_exp": True, "verify_aud": self.audience is not None},
        )
        return AuthenticatedUser(
            id=claims["sub"],
            email=claims.get("email", ""),
            name=claims.get("name") or claims.get("email", ""),
            picture=claims.get("picture"),
            email_verified=bool(claims.get("email_verified", False)),
        )


def auth_dependency(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(_security),
) -> AuthenticatedUser:
    verifier: GoogleTokenVerifier = request.app.state.token_verifier
    try:
        return verifier.verify(credentials.credentials)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
