"""
TaskDesk Auth Gate — Pluggable bearer-token verification in front of every task route.

Implements:
- AuthGate: interface, authenticate(authorization_header) -> Principal
- AnonymousGate: no authentication, unscoped tasks
- JWKSBearerGate: RS256 JWT verification against an identity provider's
  published key set (Azure AD / Firebase / any JWKS issuer)
- RateLimitedJWKClient: PyJWKClient with key caching and a ceiling on
  key-set fetches per minute
- Provider presets + create_auth_gate(config) factory

Every rejection raises UnauthorizedError carrying a machine-readable reason.
A key-set fetch failure is a 401 for the request, never a 5xx, and is never
retried.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import jwt
from jwt import PyJWKClient, PyJWKClientError

from taskdesk.engine.config import AuthConfig
from taskdesk.engine.context import ANONYMOUS, Principal
from taskdesk.engine.errors import ConfigError, UnauthorizedError
from taskdesk.engine.rate_limit import RateLimiter

logger = logging.getLogger("taskdesk.engine.security")

ALLOWED_ALGORITHM = "RS256"
REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]

AZURE_JWKS_URI = "https://login.microsoftonline.com/{tenant_id}/discovery/v2.0/keys"
FIREBASE_JWKS_URI = (
    "https://www.googleapis.com/service_accounts/v1/jwk/"
    "securetoken@system.gserviceaccount.com"
)


# ---------------------------------------------------------------------------
# Header parsing
# ---------------------------------------------------------------------------

def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the token out of an `Authorization: Bearer <token>` header value.

    Raises:
        UnauthorizedError: reason missing_authorization / malformed_authorization.
    """
    if not authorization or not authorization.strip():
        raise UnauthorizedError("No authorization header", reason="missing_authorization")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise UnauthorizedError("Unauthorized", reason="malformed_authorization")
    return parts[1]


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------

class AuthGate:
    """Base gate. Subclasses verify the Authorization header and return a Principal."""

    provider: str = "none"

    def authenticate(self, authorization: Optional[str]) -> Principal:
        raise NotImplementedError

    @property
    def requires_token(self) -> bool:
        return True


class AnonymousGate(AuthGate):
    """Lets every request through as the anonymous principal."""

    provider = "none"

    def authenticate(self, authorization: Optional[str]) -> Principal:
        return ANONYMOUS

    @property
    def requires_token(self) -> bool:
        return False


class RateLimitedJWKClient(PyJWKClient):
    """
    PyJWKClient whose network fetches are capped per minute.

    Keys are cached (cache_keys + JWK-set lifespan); a fetch only happens on
    a cold cache, an expired set, or an unknown key id. Fetches beyond the
    ceiling raise PyJWKClientError without touching the network.
    """

    def __init__(
        self,
        uri: str,
        requests_per_minute: int = 5,
        lifespan: int = 600,
        timeout: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(uri, cache_keys=True, cache_jwk_set=True, lifespan=lifespan, timeout=timeout)
        self._fetch_limiter = RateLimiter(
            max_requests=requests_per_minute,
            window_seconds=60,
            clock=clock,
            name="jwks",
        )
        self._fetch_lock = threading.Lock()
        self.fetch_count = 0

    def fetch_data(self) -> Any:
        with self._fetch_lock:
            if not self._fetch_limiter.check(self.uri):
                logger.warning(f"JWKS fetch ceiling reached for {self.uri}")
                raise PyJWKClientError("JWKS fetch rate limit exceeded")
            self.fetch_count += 1
            logger.info(f"Fetching JWKS from {self.uri}")
            return super().fetch_data()


@dataclass(frozen=True)
class JWKSSettings:
    """Where to find the keys and what a valid token must claim."""
    provider: str
    jwks_uri: str
    audience: str
    issuers: Tuple[str, ...]
    algorithm: str = ALLOWED_ALGORITHM
    leeway_seconds: int = 0


def azure_ad_settings(tenant_id: str, client_id: str, leeway_seconds: int = 0) -> JWKSSettings:
    """Azure AD publishes both v1 (sts.windows.net) and v2 issuer forms for one tenant."""
    return JWKSSettings(
        provider="azure_ad",
        jwks_uri=AZURE_JWKS_URI.format(tenant_id=tenant_id),
        audience=f"api://{client_id}",
        issuers=(
            f"https://sts.windows.net/{tenant_id}/",
            f"https://login.microsoftonline.com/{tenant_id}/v2.0",
        ),
        leeway_seconds=leeway_seconds,
    )


def firebase_settings(project_id: str, leeway_seconds: int = 0) -> JWKSSettings:
    """Firebase ID tokens: audience is the project id."""
    return JWKSSettings(
        provider="firebase",
        jwks_uri=FIREBASE_JWKS_URI,
        audience=project_id,
        issuers=(f"https://securetoken.google.com/{project_id}",),
        leeway_seconds=leeway_seconds,
    )


class JWKSBearerGate(AuthGate):
    """
    Verifies RS256 bearer tokens against a JWKS endpoint.

    Steps: bearer extraction → algorithm check → signing key by kid →
    signature / exp / audience → issuer in the accepted set → subject.
    """

    def __init__(
        self,
        settings: JWKSSettings,
        jwk_client: Optional[PyJWKClient] = None,
        requests_per_minute: int = 5,
        cache_lifespan: int = 600,
    ):
        if settings.algorithm != ALLOWED_ALGORITHM:
            raise ConfigError(f"Unsupported signing algorithm: {settings.algorithm}")
        self.settings = settings
        self.provider = settings.provider
        self._jwk_client = jwk_client or RateLimitedJWKClient(
            settings.jwks_uri,
            requests_per_minute=requests_per_minute,
            lifespan=cache_lifespan,
        )

    @property
    def jwk_client(self) -> PyJWKClient:
        return self._jwk_client

    def authenticate(self, authorization: Optional[str]) -> Principal:
        token = extract_bearer_token(authorization)

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise UnauthorizedError(reason="invalid_token", detail=str(e)) from e

        if header.get("alg") != self.settings.algorithm:
            raise UnauthorizedError(reason="unsupported_algorithm", alg=header.get("alg"))

        try:
            signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        except PyJWKClientError as e:
            raise UnauthorizedError(reason="signing_key_unavailable", detail=str(e)) from e
        except jwt.PyJWTError as e:
            raise UnauthorizedError(reason="invalid_token", detail=str(e)) from e

        claims = self._decode(token, signing_key.key)

        if claims.get("iss") not in self.settings.issuers:
            raise UnauthorizedError(reason="invalid_issuer", issuer=claims.get("iss"))

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise UnauthorizedError(reason="invalid_token", detail="sub claim must be a non-empty string")

        return Principal(subject=subject, provider=self.provider, claims=claims)

    def _decode(self, token: str, key: Any) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                key,
                algorithms=[self.settings.algorithm],
                audience=self.settings.audience,
                leeway=self.settings.leeway_seconds,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise UnauthorizedError(reason="token_expired") from e
        except jwt.InvalidAudienceError as e:
            raise UnauthorizedError(reason="invalid_audience") from e
        except jwt.InvalidSignatureError as e:
            raise UnauthorizedError(reason="invalid_signature") from e
        except jwt.PyJWTError as e:
            raise UnauthorizedError(reason="invalid_token", detail=str(e)) from e


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def settings_from_config(config: AuthConfig) -> Optional[JWKSSettings]:
    """Resolve provider presets. Returns None for provider 'none'."""
    if config.provider == "none":
        return None
    if config.provider == "azure_ad":
        return azure_ad_settings(config.tenant_id, config.client_id, config.leeway_seconds)
    if config.provider == "firebase":
        return firebase_settings(config.project_id, config.leeway_seconds)
    if config.provider == "jwks":
        return JWKSSettings(
            provider="jwks",
            jwks_uri=config.jwks_uri,
            audience=config.audience,
            issuers=tuple(config.issuers),
            algorithm=config.algorithm,
            leeway_seconds=config.leeway_seconds,
        )
    raise ConfigError(f"Unknown auth provider: {config.provider}")


def create_auth_gate(config: AuthConfig, jwk_client: Optional[PyJWKClient] = None) -> AuthGate:
    """Build the gate selected by config.auth.provider (once, at start-up)."""
    settings = settings_from_config(config)
    if settings is None:
        logger.warning("Auth provider 'none' — task routes are unauthenticated")
        return AnonymousGate()
    logger.info(f"Auth gate: {settings.provider} (issuers: {', '.join(settings.issuers)})")
    return JWKSBearerGate(
        settings,
        jwk_client=jwk_client,
        requests_per_minute=config.jwks_requests_per_minute,
        cache_lifespan=config.jwks_cache_lifespan,
    )
