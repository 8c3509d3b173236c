"""Low-level HTTP client shared by all HSDP service clients.

Handles request execution, the single refresh-and-retry on 401, error
translation and the optional debug log.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Mapping, Optional

import requests

from .exceptions import TransportError
from .request import JSON_CONTENT_TYPE, RequestBuilder
from .response import Response, check_response
from .token import TokenManager

REQUEST_TIMEOUT = 30

logger = logging.getLogger(__name__)


class ServiceClient:
    """HTTP client for one or more HSDP services sharing a token.

    Features:
    - Bearer token from the TokenManager on every request
    - One refresh-and-retry when a request is rejected with 401
    - Centralized error handling (TransportError / APIStatusError)
    - Optional debug log file with one line per exchange. Clients sharing a
      session log their own API calls; token endpoint calls go only to the
      debug log of the first client that opened one on that session.

    Usage:
        client = ServiceClient({"idm": "https://idm.example.com"}, token_manager)
        resp = client.get("idm", "authorize/identity/Client", api_version="1")
    """

    def __init__(
        self,
        base_urls: Mapping[str, str],
        token_manager: Optional[TokenManager],
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        debug_log: Optional[str] = None,
    ):
        self.builder = RequestBuilder(base_urls, token_manager)
        self.token_manager = token_manager
        self.session = session or requests.Session()
        self.timeout = timeout
        self._debug_logger: Optional[logging.Logger] = None
        self._debug_handler: Optional[logging.Handler] = None
        if debug_log:
            self._open_debug_log(debug_log)

    # ─────────────────────────────────────────────────────────────────────
    # Request execution
    # ─────────────────────────────────────────────────────────────────────
    def new_request(
        self,
        service: str,
        method: str,
        path: str,
        body: Any = None,
        options: Any = None,
        api_version: Optional[str] = None,
        content_type: str = JSON_CONTENT_TYPE,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.PreparedRequest:
        return self.builder.build(
            service,
            method,
            path,
            body=body,
            options=options,
            api_version=api_version,
            content_type=content_type,
            headers=headers,
        )

    def do(self, request: requests.PreparedRequest) -> Response:
        """Send a built request and check its status.

        A 401 triggers one token refresh and one retry with the new token.

        Raises:
            TransportError: Network failure or timeout
            APIStatusError: Non-success status
            AuthError: Refresh after 401 failed
        """
        resp = self._send(request)
        if resp.status_code == 401 and self.token_manager is not None:
            stale = _bearer(request)
            if stale:
                fresh = self.token_manager.refresh_after_unauthorized(stale)
                retry = request.copy()
                retry.headers["Authorization"] = f"Bearer {fresh}"
                resp = self._send(retry)
        return check_response(resp)

    def _send(self, request: requests.PreparedRequest) -> Response:
        try:
            raw = self.session.send(request, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportError(request.method, request.url, f"timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(request.method, request.url, str(e)) from e
        self._log_exchange(raw)
        resp = Response(raw)
        logger.debug("%s %s -> %s", resp.method, resp.url, resp.status_code)
        return resp

    # ─────────────────────────────────────────────────────────────────────
    # Convenience verbs
    # ─────────────────────────────────────────────────────────────────────
    def get(self, service: str, path: str, options: Any = None, api_version: Optional[str] = None, **kwargs) -> Response:
        return self.do(self.new_request(service, "GET", path, options=options, api_version=api_version, **kwargs))

    def post(self, service: str, path: str, body: Any = None, api_version: Optional[str] = None, **kwargs) -> Response:
        return self.do(self.new_request(service, "POST", path, body=body, api_version=api_version, **kwargs))

    def put(self, service: str, path: str, body: Any = None, api_version: Optional[str] = None, **kwargs) -> Response:
        return self.do(self.new_request(service, "PUT", path, body=body, api_version=api_version, **kwargs))

    def delete(self, service: str, path: str, api_version: Optional[str] = None, **kwargs) -> Response:
        return self.do(self.new_request(service, "DELETE", path, api_version=api_version, **kwargs))

    # ─────────────────────────────────────────────────────────────────────
    # Debug log
    # ─────────────────────────────────────────────────────────────────────
    def _open_debug_log(self, path: str) -> None:
        handler = logging.FileHandler(path)
        handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
        debug_logger = logging.getLogger(f"{__name__}.debug.{id(self)}")
        debug_logger.setLevel(logging.DEBUG)
        debug_logger.propagate = False
        debug_logger.addHandler(handler)
        self._debug_logger = debug_logger
        self._debug_handler = handler
        # Token requests go through session.post and only reach a log via this hook;
        # one hook per session, so they are written to the first debug log opened on it
        hooks = self.session.hooks["response"]
        if not any(getattr(h, "__func__", None) is ServiceClient._log_exchange for h in hooks):
            hooks.append(self._log_exchange)

    def _log_exchange(self, raw: requests.Response, *args, **kwargs) -> None:
        if self._debug_logger is None:
            return
        request = raw.request
        self._debug_logger.debug(
            "%s %s -> %s (%d bytes)",
            request.method if request is not None else "",
            request.url if request is not None else raw.url,
            raw.status_code,
            len(raw.content or b""),
        )

    def close(self) -> None:
        """Detach and close the debug log, if any."""
        if self._debug_handler is None:
            return
        hooks = self.session.hooks["response"]
        if self._log_exchange in hooks:
            hooks.remove(self._log_exchange)
        self._debug_logger.removeHandler(self._debug_handler)
        self._debug_handler.close()
        self._debug_handler = None
        self._debug_logger = None


def _bearer(request: requests.PreparedRequest) -> str:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):]
    return ""
