"""OAuth2 token lifecycle against the HSDP identity provider.

The TokenManager owns the current access/refresh token pair. It logs in with
one of three grants, refreshes transparently before expiry, and serializes
refreshes so that concurrent callers never trigger more than one token
request for the same expiring token.
"""
from __future__ import annotations
import enum
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

import jwt
import requests

from .exceptions import AuthError, HSDPError, TransportError

EXPIRY_MARGIN = timedelta(seconds=60)
# Assumed lifetime when the token response has no expires_in; must exceed EXPIRY_MARGIN
DEFAULT_EXPIRES_IN = 5 * 60
TOKEN_API_VERSION = "2"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
SERVICE_ASSERTION_LIFETIME = 60 * 60

GrantFactory = Callable[[], Dict[str, str]]


class TokenState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class Credentials:
    """OAuth2 client credentials plus optional API signing keys."""
    client_id: str
    client_secret: str = field(default="", repr=False)
    shared_key: str = ""
    secret_key: str = field(default="", repr=False)


@dataclass(frozen=True)
class Token:
    access_token: str = field(repr=False)
    refresh_token: str = field(default="", repr=False)
    expires_at: datetime = field(default_factory=datetime.now)
    scopes: Tuple[str, ...] = ()
    token_type: str = "Bearer"

    def expires_within(self, margin: timedelta, now: Optional[datetime] = None) -> bool:
        """True when the token is expired or expires inside ``margin``."""
        now = now or datetime.now()
        return now >= self.expires_at - margin

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], now: datetime) -> "Token":
        """Build a token from an OAuth2 token endpoint response body."""
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthError("token response has no access_token")
        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError) as e:
            raise AuthError(f"invalid expires_in in token response: {payload.get('expires_in')!r}") from e
        scope = payload.get("scope") or ""
        scopes = tuple(scope.split()) if isinstance(scope, str) else tuple(scope)
        return cls(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or "",
            expires_at=now + timedelta(seconds=expires_in),
            scopes=scopes,
            token_type=payload.get("token_type") or "Bearer",
        )


class TokenManager:
    """Thread-safe holder of the current bearer token.

    Usage:
        manager = TokenManager(
            "https://iam.example.com/authorize/oauth2/token",
            Credentials("my-client", "my-secret"),
        )
        manager.login("alice", "password")
        headers = {"Authorization": f"Bearer {manager.current_token()}"}
    """

    def __init__(
        self,
        token_url: str,
        credentials: Credentials,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.token_url = token_url
        self.credentials = credentials
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[Token] = None
        self._grant: Optional[GrantFactory] = None
        self._state = TokenState.UNAUTHENTICATED

    # ─────────────────────────────────────────────────────────────────────
    # Login
    # ─────────────────────────────────────────────────────────────────────
    def login(self, username: str, password: str) -> Token:
        """Log in a user with the resource owner password grant."""
        def grant() -> Dict[str, str]:
            return {"grant_type": "password", "username": username, "password": password}
        return self._authenticate(grant)

    def login_client_credentials(self) -> Token:
        """Log in as the OAuth2 client itself (client credentials grant)."""
        def grant() -> Dict[str, str]:
            return {"grant_type": "client_credentials"}
        return self._authenticate(grant)

    def login_service(self, service_id: str, private_key: str, audience: str) -> Token:
        """Log in a service identity with a signed JWT assertion.

        Args:
            service_id: Service identity id (used as issuer and subject)
            private_key: PEM encoded RSA private key of the service
            audience: Token audience expected by the identity provider

        Returns:
            The new token
        """
        def grant() -> Dict[str, str]:
            now = int(time.time())
            claims = {
                "iss": service_id,
                "sub": service_id,
                "aud": audience,
                "iat": now,
                "exp": now + SERVICE_ASSERTION_LIFETIME,
            }
            assertion = jwt.encode(claims, private_key, algorithm="RS256")
            return {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        return self._authenticate(grant)

    def _authenticate(self, grant: GrantFactory) -> Token:
        with self._lock:
            self._state = TokenState.AUTHENTICATING
            try:
                token = self._request_token(grant())
            except (HSDPError, jwt.PyJWTError, TypeError, ValueError) as e:
                self._reset()
                if isinstance(e, HSDPError):
                    raise
                raise AuthError(f"could not build login request: {e}") from e
            self._token = token
            self._grant = grant
            self._state = TokenState.AUTHENTICATED
            return token

    # ─────────────────────────────────────────────────────────────────────
    # Token access and refresh
    # ─────────────────────────────────────────────────────────────────────
    def current_token(self) -> str:
        """Return the access token, refreshing it first when it is about to expire.

        Raises:
            AuthError: Not logged in, or the refresh failed
        """
        with self._lock:
            if self._token is None:
                raise AuthError("Not authenticated - call login first")
            if self._token.expires_within(EXPIRY_MARGIN, self._clock()):
                self._refresh_locked()
            return self._token.access_token

    def refresh(self) -> Token:
        """Unconditionally obtain a new token pair."""
        with self._lock:
            return self._refresh_locked()

    def refresh_after_unauthorized(self, stale_access_token: str) -> str:
        """Refresh after the API rejected ``stale_access_token`` with a 401.

        When another caller already replaced that token, the current one is
        returned without a second refresh.
        """
        with self._lock:
            if self._token is None:
                raise AuthError("Not authenticated - call login first")
            if self._token.access_token != stale_access_token:
                return self._token.access_token
            return self._refresh_locked().access_token

    def _refresh_locked(self) -> Token:
        if self._token is None:
            raise AuthError("Not authenticated - call login first")
        previous = self._token
        self._state = TokenState.REFRESHING
        try:
            if previous.refresh_token:
                data = {"grant_type": "refresh_token", "refresh_token": previous.refresh_token}
            elif self._grant is not None:
                # Grants without refresh tokens are replayed
                data = self._grant()
            else:
                raise AuthError("no refresh token and no replayable grant")
            token = self._request_token(data)
        except AuthError:
            self._reset()
            raise
        except (HSDPError, jwt.PyJWTError, TypeError, ValueError) as e:
            self._reset()
            raise AuthError(f"token refresh failed: {e}") from e

        if not token.refresh_token and previous.refresh_token:
            token = replace(token, refresh_token=previous.refresh_token)
        self._token = token
        self._state = TokenState.AUTHENTICATED
        return token

    def _request_token(self, data: Dict[str, str]) -> Token:
        auth = None
        if self.credentials.client_id:
            auth = (self.credentials.client_id, self.credentials.client_secret)
        headers = {"Api-Version": TOKEN_API_VERSION, "Accept": "application/json"}
        try:
            resp = self._session.post(
                self.token_url,
                data=data,
                auth=auth,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError("POST", self.token_url, str(e)) from e

        if resp.status_code != 200:
            raise AuthError(resp.text, resp.status_code)
        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthError("token endpoint returned invalid JSON", resp.status_code) from e
        if not isinstance(payload, dict):
            raise AuthError("token endpoint returned unexpected payload", resp.status_code)
        return Token.from_payload(payload, self._clock())

    def _reset(self) -> None:
        self._token = None
        self._grant = None
        self._state = TokenState.UNAUTHENTICATED

    # ─────────────────────────────────────────────────────────────────────
    # Read-only views
    # ─────────────────────────────────────────────────────────────────────
    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def token(self) -> Optional[Token]:
        return self._token

    @property
    def access_token(self) -> str:
        return self._token.access_token if self._token else ""

    @property
    def refresh_token(self) -> str:
        return self._token.refresh_token if self._token else ""

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._token.expires_at if self._token else None

    @property
    def scopes(self) -> Tuple[str, ...]:
        return self._token.scopes if self._token else ()

    def is_valid(self) -> bool:
        """True when logged in and the token is outside the expiry margin."""
        token = self._token
        return token is not None and not token.expires_within(EXPIRY_MARGIN, self._clock())
