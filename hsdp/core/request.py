"""Outbound request construction for HSDP services."""
from __future__ import annotations
import dataclasses
import json
import re
from typing import Any, Dict, List, Mapping, Optional, Union

import requests

from .exceptions import BuildError
from .token import TokenManager

JSON_CONTENT_TYPE = "application/json"

_BODYLESS_METHODS = {"GET", "DELETE", "HEAD"}
_PLACEHOLDER = re.compile(r"[{}]")


def query_param(name: str) -> Dict[str, str]:
    """Field metadata naming the URL parameter of a query option."""
    return {"param": name}


def encode_query_options(options: Any) -> Dict[str, Union[str, List[str]]]:
    """Turn a query options dataclass into URL parameters.

    Fields left as None are omitted; the parameter name comes from the
    field's ``param`` metadata and falls back to the field name.

    Example:
        >>> @dataclasses.dataclass
        ... class Opts:
        ...     id: Optional[str] = dataclasses.field(default=None, metadata=query_param("_id"))
        ...     name: Optional[str] = None
        >>> encode_query_options(Opts(id="abc"))
        {'_id': 'abc'}
    """
    if options is None:
        return {}
    if isinstance(options, Mapping):
        return {str(k): _param_value(v) for k, v in options.items() if v is not None}
    if not dataclasses.is_dataclass(options):
        raise BuildError(f"query options must be a dataclass or mapping, got {type(options).__name__}")

    params: Dict[str, Union[str, List[str]]] = {}
    for f in dataclasses.fields(options):
        value = getattr(options, f.name)
        if value is None:
            continue
        params[f.metadata.get("param", f.name)] = _param_value(value)
    return params


def _param_value(value: Any) -> Union[str, List[str]]:
    # Sequences become repeated parameters (?_id=a&_id=b)
    if isinstance(value, (list, tuple)):
        return [_scalar_value(v) for v in value if v is not None]
    return _scalar_value(value)


def _scalar_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_body(body: Any) -> bytes:
    """JSON-encode a request body (dict, list or object with ``to_dict``)."""
    if hasattr(body, "to_dict"):
        body = body.to_dict()
    try:
        return json.dumps(body).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise BuildError(f"request body is not JSON encodable: {e}") from e


class RequestBuilder:
    """Builds authenticated requests for a set of logical services.

    Usage:
        builder = RequestBuilder({"idm": "https://idm.example.com"}, token_manager)
        req = builder.build("idm", "GET", "authorize/identity/Client",
                            options=GetClientsOptions(name="demo"), api_version="1")
    """

    def __init__(self, base_urls: Mapping[str, str], token_manager: Optional[TokenManager]):
        self.base_urls = {name: url.rstrip("/") for name, url in base_urls.items() if url}
        self.token_manager = token_manager

    def url_for(self, service: str, path: str) -> str:
        """Resolve the absolute URL of ``path`` on ``service``."""
        base = self.base_urls.get(service)
        if not base:
            raise BuildError(f"no base URL configured for service '{service}'")
        if not path or path.startswith(("/", "http://", "https://")):
            raise BuildError(f"invalid path '{path}': must be relative to the service base URL")
        if _PLACEHOLDER.search(path) or any(c.isspace() for c in path):
            raise BuildError(f"invalid path '{path}': unresolved placeholder or whitespace")
        if ".." in path.split("/"):
            raise BuildError(f"invalid path '{path}': parent segments are not allowed")
        return f"{base}/{path}"

    def build(
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
        """Compose a ready-to-send request.

        Args:
            service: Logical service name (key of ``base_urls``)
            method: HTTP method
            path: Path relative to the service base URL
            body: Payload; ignored for GET/DELETE/HEAD
            options: Query options dataclass or mapping
            api_version: Value of the ``api-version`` header
            content_type: Content type of the payload
            headers: Extra headers

        Returns:
            Prepared request

        Raises:
            BuildError: Unknown service, bad path or unencodable body
            AuthError: No valid bearer token
        """
        method = method.upper()
        url = self.url_for(service, path)
        params = encode_query_options(options)

        request_headers = {"Accept": JSON_CONTENT_TYPE}
        data = None
        if body is not None and method not in _BODYLESS_METHODS:
            data = encode_body(body)
            request_headers["Content-Type"] = content_type
        if api_version:
            request_headers["api-version"] = api_version
        if headers:
            request_headers.update(headers)
        if self.token_manager is not None:
            request_headers["Authorization"] = f"Bearer {self.token_manager.current_token()}"

        return requests.Request(
            method=method,
            url=url,
            params=params,
            data=data,
            headers=request_headers,
        ).prepare()
