"""HSDP IAM client: login, token refresh, introspection and IDM services."""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import requests

from ..config.settings import IAMConfig
from ..core.client import ServiceClient
from ..core.exceptions import AuthError, TransportError
from ..core.response import Response, check_response
from ..core.token import Credentials, Token, TokenManager, TokenState
from .clients import IDM, ClientsService

IAM = "iam"
TOKEN_PATH = "authorize/oauth2/token"
INTROSPECT_PATH = "authorize/oauth2/introspect"
INTROSPECT_API_VERSION = "4"

logger = logging.getLogger(__name__)


class IAMClient:
    """Entry point for HSDP identity and access management.

    Owns the TokenManager that every other service client borrows its
    bearer token from.

    Usage:
        iam = IAMClient(IAMConfig(
            iam_url="https://iam.example.com",
            idm_url="https://idm.example.com",
            oauth2_client_id="my-client",
            oauth2_secret="my-secret",
        ))
        iam.login("alice", "password")
        clients = iam.clients.get_clients(GetClientsOptions(application_id=app_id))
    """

    def __init__(self, config: IAMConfig, session: Optional[requests.Session] = None):
        """Initialize IAM client.

        Args:
            config: IAM configuration
            session: Optional requests session (shared with token requests)
        """
        config.validate()
        self.config = config
        self.credentials = Credentials(
            client_id=config.oauth2_client_id,
            client_secret=config.oauth2_secret,
            shared_key=config.shared_key,
            secret_key=config.secret_key,
        )
        self.session = session or requests.Session()
        self.token_manager = TokenManager(
            f"{config.iam_url.rstrip('/')}/{TOKEN_PATH}",
            self.credentials,
            session=self.session,
            timeout=config.timeout,
        )
        self.http = ServiceClient(
            {IAM: config.iam_url, IDM: config.idm_url},
            self.token_manager,
            session=self.session,
            timeout=config.timeout,
            debug_log=config.debug_log,
        )
        self.clients = ClientsService(self.http)

    # ─────────────────────────────────────────────────────────────────────
    # Authentication
    # ─────────────────────────────────────────────────────────────────────
    def login(self, username: str, password: str) -> Token:
        """Log in with user credentials."""
        token = self.token_manager.login(username, password)
        logger.info("Logged in as '%s'", username)
        return token

    def login_client_credentials(self) -> Token:
        """Log in as the configured OAuth2 client."""
        token = self.token_manager.login_client_credentials()
        logger.info("Logged in with client credentials of '%s'", self.credentials.client_id)
        return token

    def service_login(self, service_id: str, private_key: str) -> Token:
        """Log in a service identity using its private key."""
        audience = f"{self.config.iam_url.rstrip('/')}/oauth2/access_token"
        token = self.token_manager.login_service(service_id, private_key, audience)
        logger.info("Logged in as service '%s'", service_id)
        return token

    def refresh(self) -> Token:
        return self.token_manager.refresh()

    def current_token(self) -> str:
        """Bearer token, refreshed first when about to expire."""
        return self.token_manager.current_token()

    @property
    def token(self) -> str:
        return self.token_manager.access_token

    @property
    def refresh_token(self) -> str:
        return self.token_manager.refresh_token

    @property
    def state(self) -> TokenState:
        return self.token_manager.state

    def has_valid_token(self) -> bool:
        return self.token_manager.is_valid()

    def introspect(self) -> Dict[str, Any]:
        """Ask IAM for the claims of the current access token.

        Returns:
            Introspection response (``active``, ``scope``, ``organizations``, ...)
        """
        access_token = self.current_token()
        url = f"{self.config.iam_url.rstrip('/')}/{INTROSPECT_PATH}"
        try:
            raw = self.session.post(
                url,
                data={"token": access_token},
                auth=(self.credentials.client_id, self.credentials.client_secret),
                headers={"api-version": INTROSPECT_API_VERSION, "Accept": "application/json"},
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise TransportError("POST", url, str(e)) from e
        resp = check_response(Response(raw))
        data = resp.json()
        if not isinstance(data, dict):
            raise AuthError("introspection returned unexpected payload", resp.status_code)
        return data

    def close(self) -> None:
        self.http.close()
