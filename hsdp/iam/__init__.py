"""HSDP IAM client library.

Architecture:
- client.py: IAMClient with login, refresh and introspection
- clients.py: Application client lifecycle (create, read, update, scopes, delete)

Usage:
    from hsdp.config import IAMConfig
    from hsdp.iam import IAMClient, ApplicationClient

    iam = IAMClient(IAMConfig(iam_url=..., idm_url=..., oauth2_client_id=..., oauth2_secret=...))
    iam.login("alice", "password")
    created = iam.clients.create_client(ApplicationClient(...))
"""
from .client import IAM, IAMClient
from .clients import (
    CLIENT_API_VERSION,
    CLIENT_PATH,
    IDM,
    ApplicationClient,
    ClientMeta,
    ClientsService,
    GetClientsOptions,
)

__all__ = [
    "IAM",
    "IDM",
    "IAMClient",
    "ApplicationClient",
    "ClientMeta",
    "ClientsService",
    "GetClientsOptions",
    "CLIENT_API_VERSION",
    "CLIENT_PATH",
]
