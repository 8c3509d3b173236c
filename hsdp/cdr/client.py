"""Clinical Data Repository (CDR) FHIR store client.

FHIR resources are passed around as plain JSON objects; marshalling them
into typed FHIR models is left to the caller.
"""
from __future__ import annotations
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import requests

from ..config.settings import CDRConfig
from ..core.client import ServiceClient
from ..core.exceptions import APIStatusError, BuildError, EmptyResultError, ValidationError
from ..core.response import Bundle, decode_bundle, id_from_location
from ..core.validators import Violation
from ..iam.client import IAMClient

CDR = "cdr"
FHIR_STORE_PATH = "store/fhir/"


class CDRClient:
    """Client for one organization's endpoint on the CDR FHIR store.

    Usage:
        cdr = CDRClient(iam, CDRConfig(cdr_url="https://cdr.example.com", root_org_id=org_id))
        patient = cdr.create({"resourceType": "Patient", "name": [{"family": "Doe"}]})
        found = cdr.search("Patient", {"family": "Doe"})
    """

    def __init__(
        self,
        iam_client: IAMClient,
        config: CDRConfig,
        session: Optional[requests.Session] = None,
    ):
        config.validate()
        self.config = config
        self._cdr_url = config.cdr_url.rstrip("/")
        self._root_org_id = config.root_org_id
        self.content_type = f"application/fhir+json;fhirVersion={config.fhir_version}"
        self.http = ServiceClient(
            {CDR: self.fhir_store_url},
            iam_client.token_manager,
            session=session or iam_client.session,
            timeout=config.timeout,
            debug_log=config.debug_log,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Endpoints
    # ─────────────────────────────────────────────────────────────────────
    @property
    def fhir_store_url(self) -> str:
        return f"{self._cdr_url}/{FHIR_STORE_PATH}"

    @property
    def root_org_id(self) -> str:
        return self._root_org_id

    def get_endpoint_url(self) -> str:
        """FHIR endpoint of the current root organization."""
        return self.fhir_store_url + self._root_org_id

    def set_endpoint_url(self, url: str) -> None:
        """Point the client at another organization endpoint of the same store.

        Raises:
            ValueError: URL is not ``<fhir store>/<organization id>``
        """
        store = self.fhir_store_url
        if not url.startswith(store):
            raise ValueError(f"endpoint '{url}' is not on FHIR store '{store}'")
        org_id = url[len(store):].strip("/")
        if not org_id or "/" in org_id:
            raise ValueError(f"endpoint '{url}' does not name a single organization")
        self._root_org_id = org_id

    def _path(self, *segments: str) -> str:
        if not self._root_org_id:
            raise BuildError("no root organization set; call set_endpoint_url first")
        parts = [self._root_org_id] + [quote(s, safe="") for s in segments]
        return "/".join(parts)

    def _headers(self) -> Dict[str, str]:
        return {"Accept": self.content_type}

    # ─────────────────────────────────────────────────────────────────────
    # FHIR operations
    # ─────────────────────────────────────────────────────────────────────
    def create(self, resource: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a FHIR resource and return it as stored."""
        resource_type = _resource_type(resource)
        resp = self.http.post(
            CDR,
            self._path(resource_type),
            body=dict(resource),
            content_type=self.content_type,
            headers=self._headers(),
        )
        if resp.content:
            created = resp.json()
            if isinstance(created, dict):
                return created
        return self.read(resource_type, id_from_location(resp))

    def read(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        """Read one resource.

        Raises:
            EmptyResultError: Resource does not exist
        """
        try:
            resp = self.http.get(CDR, self._path(resource_type, resource_id), headers=self._headers())
        except APIStatusError as e:
            if e.status_code in (404, 410):
                raise EmptyResultError(f"{resource_type}/{resource_id} not found") from e
            raise
        return resp.json()

    def update(self, resource: Mapping[str, Any]) -> Dict[str, Any]:
        """Replace a resource (``id`` required)."""
        resource_type = _resource_type(resource)
        resource_id = resource.get("id")
        if not resource_id:
            raise ValidationError([Violation("id", "required", "id is required to update a resource")])
        resp = self.http.put(
            CDR,
            self._path(resource_type, resource_id),
            body=dict(resource),
            content_type=self.content_type,
            headers=self._headers(),
        )
        if not resp.content:
            return self.read(resource_type, resource_id)
        return resp.json()

    def delete(self, resource_type: str, resource_id: str) -> bool:
        """Delete a resource; True only when the store answered 204."""
        resp = self.http.delete(CDR, self._path(resource_type, resource_id), headers=self._headers())
        return resp.status_code == 204

    def search(self, resource_type: str, params: Optional[Mapping[str, Any]] = None) -> Bundle:
        """Search a resource type; the bundle holds raw FHIR resources."""
        try:
            resp = self.http.get(CDR, self._path(resource_type), options=params, headers=self._headers())
        except APIStatusError as e:
            if e.status_code == 404:
                return Bundle(total=0, entries=[])
            raise
        return decode_bundle(resp)

    def close(self) -> None:
        self.http.close()


def _resource_type(resource: Mapping[str, Any]) -> str:
    resource_type = resource.get("resourceType")
    if not resource_type:
        raise ValidationError([Violation("resourceType", "required", "resourceType is required")])
    return str(resource_type)
