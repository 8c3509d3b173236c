"""Response envelope decoding for HSDP APIs.

Responses come in three shapes: a single resource, a bundle
(``{"total": n, "entry": [...]}``) or an empty acknowledgement (204).
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from urllib.parse import urlparse

import requests

from .exceptions import APIStatusError, DecodeError, PostCreateInvariantError

SUCCESS_STATUSES = frozenset({200, 201, 202, 204, 207, 304})

T = TypeVar("T")


class Response:
    """Transport response with its body read exactly once.

    Keeps status, headers and body bytes so callers can inspect low-level
    details (e.g. the ``Location`` header) after decoding or after an error.
    """

    def __init__(self, raw: requests.Response):
        self.raw = raw
        self.status_code = raw.status_code
        self.headers = raw.headers
        self.content = raw.content or b""
        request = raw.request
        self.method = request.method if request is not None else ""
        self.url = request.url if request is not None else (raw.url or "")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def ok(self) -> bool:
        return self.status_code in SUCCESS_STATUSES

    def json(self) -> Any:
        """Decode the body as JSON."""
        if not self.content:
            raise DecodeError(f"{self.method} {self.url}: empty response body")
        try:
            return json.loads(self.content)
        except ValueError as e:
            raise DecodeError(f"{self.method} {self.url}: invalid JSON body: {e}") from e

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}] {self.method} {self.url}>"


@dataclass
class Bundle(Generic[T]):
    total: int = 0
    entries: List[T] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.total == 0 or not self.entries


def check_response(resp: Response) -> Response:
    """Raise APIStatusError unless the status is a success status."""
    if resp.ok:
        return resp
    body = resp.text or "empty"
    raise APIStatusError(resp.status_code, resp.method, resp.url, body)


def _from_dict(cls: Optional[Type[T]], data: Any, what: str) -> Any:
    if not isinstance(data, dict):
        raise DecodeError(f"{what}: expected a JSON object, got {type(data).__name__}")
    if cls is None:
        return data
    try:
        return cls.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"{what}: cannot decode {cls.__name__}: {e}") from e


def decode_resource(resp: Response, cls: Type[T]) -> T:
    """Decode a single-resource response into ``cls``."""
    return _from_dict(cls, resp.json(), f"{resp.method} {resp.url}")


def decode_bundle(resp: Response, cls: Optional[Type[T]] = None) -> Bundle:
    """Decode a bundle response; every entry is decoded or the whole call fails.

    Entries are either ``{"resource": {...}}`` wrappers or bare resource
    objects. Without ``cls`` the raw resource dicts are returned.
    """
    what = f"{resp.method} {resp.url}"
    if resp.status_code == 204 or not resp.content:
        return Bundle(total=0, entries=[])

    payload = resp.json()
    if not isinstance(payload, dict):
        raise DecodeError(f"{what}: expected a bundle object, got {type(payload).__name__}")
    raw_entries = payload.get("entry") or []
    if not isinstance(raw_entries, list):
        raise DecodeError(f"{what}: bundle 'entry' is not a list")
    try:
        total = int(payload.get("total", len(raw_entries)) or 0)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"{what}: bundle 'total' is not a number") from e
    if total == 0:
        return Bundle(total=0, entries=[])

    entries = []
    for index, entry in enumerate(raw_entries):
        resource = entry
        if isinstance(entry, dict) and isinstance(entry.get("resource"), dict):
            resource = entry["resource"]
        entries.append(_from_dict(cls, resource, f"{what} entry[{index}]"))
    return Bundle(total=total, entries=entries)


def id_from_location(resp: Response) -> str:
    """Extract the identifier of a created resource from its ``Location`` header.

    Raises:
        PostCreateInvariantError: Header missing or without an identifier segment
    """
    location = resp.headers.get("Location") or resp.headers.get("location")
    if not location:
        raise PostCreateInvariantError(f"{resp.method} {resp.url}: created resource has no Location header")
    segments = [s for s in urlparse(location.strip()).path.split("/") if s]
    # FHIR style: .../Patient/<id>/_history/<version>
    if "_history" in segments:
        segments = segments[:segments.index("_history")]
    resource_id = segments[-1] if segments else ""
    if not resource_id or resource_id.startswith("$"):
        raise PostCreateInvariantError(f"{resp.method} {resp.url}: cannot read resource id from Location '{location}'")
    return resource_id

