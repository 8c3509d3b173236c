"""Authenticated request pipeline shared by all HSDP service clients.

Module Structure:
    - validators.py : Declarative field constraints, checked before any I/O
    - token.py      : OAuth2 token lifecycle with single-flight refresh
    - request.py    : Request construction (URL, headers, body, query options)
    - response.py   : Status checking and bundle/resource decoding
    - client.py     : Transport with refresh-and-retry-once on 401
    - exceptions.py : Typed exceptions for error handling

Control flow:
    service method ──> validators ──> request ──> client (transport) ──> response
"""
from .client import REQUEST_TIMEOUT, ServiceClient
from .exceptions import (
    APIStatusError,
    AuthError,
    BuildError,
    DecodeError,
    EmptyResultError,
    HSDPError,
    NotFoundError,
    OperationFailedError,
    PostCreateInvariantError,
    TransportError,
    ValidationError,
)
from .request import RequestBuilder, encode_query_options, query_param
from .response import Bundle, Response, check_response, decode_bundle, decode_resource, id_from_location
from .token import Credentials, Token, TokenManager, TokenState
from .validators import (
    LengthRange,
    NumericRange,
    Required,
    RequiredWith,
    RequiredWithout,
    Violation,
    ensure_valid,
    validate,
)

__all__ = [
    # Transport
    "ServiceClient",
    "REQUEST_TIMEOUT",
    "RequestBuilder",
    "encode_query_options",
    "query_param",
    "Response",
    "Bundle",
    "check_response",
    "decode_bundle",
    "decode_resource",
    "id_from_location",

    # Tokens
    "Credentials",
    "Token",
    "TokenManager",
    "TokenState",

    # Validation
    "Required",
    "RequiredWith",
    "RequiredWithout",
    "LengthRange",
    "NumericRange",
    "Violation",
    "validate",
    "ensure_valid",

    # Exceptions
    "HSDPError",
    "ValidationError",
    "AuthError",
    "TransportError",
    "APIStatusError",
    "DecodeError",
    "EmptyResultError",
    "NotFoundError",
    "PostCreateInvariantError",
    "BuildError",
    "OperationFailedError",
]
