"""IAM application client management operations."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, List, Optional
from urllib.parse import quote

from ..core.client import ServiceClient
from ..core.exceptions import (
    APIStatusError,
    EmptyResultError,
    HSDPError,
    OperationFailedError,
    PostCreateInvariantError,
    ValidationError,
)
from ..core.request import query_param
from ..core.response import decode_bundle, decode_resource, id_from_location
from ..core.validators import (
    LengthRange,
    NumericRange,
    Required,
    RequiredWith,
    RequiredWithout,
    Violation,
    validate,
)

IDM = "idm"
CLIENT_API_VERSION = "1"
CLIENT_PATH = "authorize/identity/Client"

logger = logging.getLogger(__name__)


def _str_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{name} must be a list")
    return [str(v) for v in value]


@dataclass
class ClientMeta:
    """Server-maintained metadata; never sent by the caller."""
    version_id: str = ""
    last_modified: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientMeta":
        return cls(
            version_id=data.get("versionId") or "",
            last_modified=data.get("lastModified") or "",
        )


@dataclass
class ApplicationClient:
    """IAM OAuth2 client registered under an application."""
    client_id: str = ""
    name: str = ""
    application_id: str = ""
    global_reference_id: str = ""
    type: str = ""
    password: str = field(default="", repr=False)
    redirection_uris: List[str] = field(default_factory=list)
    response_types: List[str] = field(default_factory=list)
    scopes: List[str] = field(default_factory=list)
    default_scopes: List[str] = field(default_factory=list)
    disabled: bool = False
    description: str = ""
    consent_implied: bool = False
    access_token_lifetime: Optional[int] = None
    refresh_token_lifetime: Optional[int] = None
    id_token_lifetime: Optional[int] = None
    realms: List[str] = field(default_factory=list)
    id: str = ""
    meta: Optional[ClientMeta] = None

    CONSTRAINTS: ClassVar[Dict[str, list]] = {
        "client_id": [Required(), LengthRange(min=5, max=20)],
        "name": [Required(), LengthRange(min=5, max=50)],
        "password": [RequiredWithout("id"), LengthRange(max=16)],
        "description": [LengthRange(max=250)],
        "application_id": [Required()],
        "global_reference_id": [Required(), LengthRange(min=3, max=50)],
        "access_token_lifetime": [NumericRange(min=0, max=31536000)],
        "refresh_token_lifetime": [NumericRange(min=0, max=157680000)],
        "id_token_lifetime": [NumericRange(min=0, max=31536000)],
        "realms": [RequiredWith("id")],
    }

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; empty optional fields and meta are left out."""
        data: Dict[str, Any] = {
            "clientId": self.client_id,
            "type": self.type,
            "name": self.name,
            "redirectionURIs": list(self.redirection_uris),
            "responseTypes": list(self.response_types),
            "description": self.description,
            "applicationId": self.application_id,
            "globalReferenceId": self.global_reference_id,
            "consentImplied": self.consent_implied,
        }
        if self.id:
            data["id"] = self.id
        if self.password:
            data["password"] = self.password
        if self.scopes:
            data["scopes"] = list(self.scopes)
        if self.default_scopes:
            data["defaultScopes"] = list(self.default_scopes)
        if self.disabled:
            data["disabled"] = True
        if self.access_token_lifetime is not None:
            data["accessTokenLifetime"] = self.access_token_lifetime
        if self.refresh_token_lifetime is not None:
            data["refreshTokenLifetime"] = self.refresh_token_lifetime
        if self.id_token_lifetime is not None:
            data["idTokenLifetime"] = self.id_token_lifetime
        if self.realms:
            data["realms"] = list(self.realms)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationClient":
        meta = data.get("meta")
        return cls(
            id=data.get("id") or "",
            client_id=data.get("clientId") or "",
            type=data.get("type") or "",
            name=data.get("name") or "",
            password=data.get("password") or "",
            redirection_uris=_str_list(data.get("redirectionURIs"), "redirectionURIs"),
            response_types=_str_list(data.get("responseTypes"), "responseTypes"),
            scopes=_str_list(data.get("scopes"), "scopes"),
            default_scopes=_str_list(data.get("defaultScopes"), "defaultScopes"),
            disabled=bool(data.get("disabled", False)),
            description=data.get("description") or "",
            application_id=data.get("applicationId") or "",
            global_reference_id=data.get("globalReferenceId") or "",
            consent_implied=bool(data.get("consentImplied", False)),
            access_token_lifetime=data.get("accessTokenLifetime"),
            refresh_token_lifetime=data.get("refreshTokenLifetime"),
            id_token_lifetime=data.get("idTokenLifetime"),
            realms=_str_list(data.get("realms"), "realms"),
            meta=ClientMeta.from_dict(meta) if isinstance(meta, dict) else None,
        )


@dataclass
class GetClientsOptions:
    """Search criteria for looking up clients; unset fields are not sent."""
    id: Optional[str] = field(default=None, metadata=query_param("_id"))
    name: Optional[str] = field(default=None, metadata=query_param("name"))
    global_reference_id: Optional[str] = field(default=None, metadata=query_param("globalReferenceId"))
    application_id: Optional[str] = field(default=None, metadata=query_param("applicationId"))


def _require_id(client: ApplicationClient, operation: str) -> None:
    if not client.id:
        raise ValidationError([Violation("id", "required", f"id is required to {operation} a client")])


class ClientsService:
    """Service for managing IAM application clients.

    Usage:
        clients = ClientsService(iam.http)
        created = clients.create_client(ApplicationClient(
            client_id="demo-client", name="Demo client", password="Secret123!",
            application_id=app_id, global_reference_id="demo-ref",
            scopes=["mail", "sn"], default_scopes=["sn"],
        ))
    """

    def __init__(self, client: ServiceClient):
        """Initialize clients service.

        Args:
            client: Authenticated service client with an ``idm`` base URL
        """
        self.client = client

    def _path(self, client_id: str, suffix: str = "") -> str:
        path = f"{CLIENT_PATH}/{quote(client_id, safe='')}"
        return f"{path}/{suffix}" if suffix else path

    def create_client(self, client: ApplicationClient) -> ApplicationClient:
        """Create a client, then apply its scopes in a second call.

        The create endpoint does not accept scopes, so they are stripped from
        the payload and set afterwards. When setting them fails, the new
        client is deleted again and the scope error is raised.

        Args:
            client: Client to create (``id`` normally empty)

        Returns:
            The created client as stored by IAM

        Raises:
            ValidationError: Client violates its constraints (nothing is sent)
            PostCreateInvariantError: No usable Location header, or the new
                client could not be read back
        """
        violations = validate(client)
        if violations:
            raise ValidationError(violations)

        scopes = list(client.scopes)
        default_scopes = list(client.default_scopes)
        payload = replace(client, scopes=[], default_scopes=[], meta=None)

        resp = self.client.post(IDM, CLIENT_PATH, body=payload, api_version=CLIENT_API_VERSION)
        if resp.status_code not in (200, 201):
            raise OperationFailedError(
                f"create client '{client.client_id}': unexpected status {resp.status_code}",
                resp.status_code,
            )
        new_id = id_from_location(resp)
        logger.info("Client '%s' created (id=%s)", client.client_id, new_id)

        if scopes or default_scopes:
            created = replace(payload, id=new_id)
            try:
                self.update_scopes(created, scopes, default_scopes)
            except HSDPError:
                self._rollback(created)
                raise

        try:
            return self.get_client_by_id(new_id)
        except HSDPError as e:
            raise PostCreateInvariantError(f"client {new_id} was created but could not be read back: {e}") from e

    def _rollback(self, client: ApplicationClient) -> None:
        """Best-effort delete of a partially created client; never raises."""
        try:
            deleted = self.delete_client(client)
        except HSDPError as e:
            logger.warning("Rollback of client %s failed: %s", client.id, e)
            return
        if not deleted:
            logger.warning("Rollback of client %s did not delete it", client.id)

    def get_clients(self, options: Optional[GetClientsOptions] = None) -> List[ApplicationClient]:
        """Look up clients matching ``options``.

        Returns:
            Matching clients in server order; empty list when nothing matches
        """
        try:
            resp = self.client.get(IDM, CLIENT_PATH, options=options, api_version=CLIENT_API_VERSION)
        except APIStatusError as e:
            if e.status_code == 404:
                return []
            raise
        return decode_bundle(resp, ApplicationClient).entries

    def get_client_by_id(self, client_id: str) -> ApplicationClient:
        """Find a client by its id.

        Raises:
            EmptyResultError: No client with that id
        """
        if not client_id:
            raise ValidationError([Violation("id", "required", "id is required to look up a client")])
        clients = self.get_clients(GetClientsOptions(id=client_id))
        if not clients:
            raise EmptyResultError(f"client {client_id} not found")
        return clients[0]

    def update_client(self, client: ApplicationClient) -> ApplicationClient:
        """Replace a client with the given representation."""
        violations = validate(client)
        if not client.id:
            violations.insert(0, Violation("id", "required", "id is required to update a client"))
        if violations:
            raise ValidationError(violations)

        resp = self.client.put(
            IDM,
            self._path(client.id),
            body=replace(client, meta=None),
            api_version=CLIENT_API_VERSION,
        )
        if not resp.content:
            return self.get_client_by_id(client.id)
        return decode_resource(resp, ApplicationClient)

    def update_scopes(self, client: ApplicationClient, scopes: List[str], default_scopes: List[str]) -> bool:
        """Set the scopes and default scopes of an existing client.

        Raises:
            OperationFailedError: Endpoint answered with anything but 204
        """
        _require_id(client, "update scopes of")
        body = {"scopes": list(scopes), "defaultScopes": list(default_scopes)}
        resp = self.client.put(IDM, self._path(client.id, "$scopes"), body=body, api_version=CLIENT_API_VERSION)
        if resp.status_code != 204:
            raise OperationFailedError(
                f"update scopes of client {client.id}: unexpected status {resp.status_code}",
                resp.status_code,
            )
        return True

    def delete_client(self, client: ApplicationClient) -> bool:
        """Delete a client.

        Returns:
            True only when IAM confirmed the delete with 204
        """
        _require_id(client, "delete")
        resp = self.client.delete(IDM, self._path(client.id), api_version=CLIENT_API_VERSION)
        return resp.status_code == 204
