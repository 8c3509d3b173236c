"""Notification producer management operations."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional
from urllib.parse import quote

from ..core.client import ServiceClient
from ..core.exceptions import APIStatusError, EmptyResultError, ValidationError
from ..core.request import query_param
from ..core.response import decode_bundle, decode_resource, id_from_location
from ..core.validators import Required, Violation, ensure_valid

NOTIFICATION = "notification"
NOTIFICATION_API_VERSION = "2"
PRODUCER_PATH = "core/notification/Producer"


@dataclass
class Producer:
    managing_organization_id: str = ""
    producer_product_name: str = ""
    producer_service_name: str = ""
    producer_service_instance_name: str = ""
    producer_service_base_url: str = ""
    producer_service_path_url: str = ""
    managing_organization: str = ""
    description: str = ""
    resource_type: str = ""
    id: str = ""

    CONSTRAINTS: ClassVar[Dict[str, list]] = {
        "managing_organization_id": [Required()],
        "producer_product_name": [Required()],
        "producer_service_name": [Required()],
        "producer_service_instance_name": [Required()],
        "producer_service_base_url": [Required()],
        "producer_service_path_url": [Required()],
    }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "managingOrganizationId": self.managing_organization_id,
            "producerProductName": self.producer_product_name,
            "producerServiceName": self.producer_service_name,
            "producerServiceInstanceName": self.producer_service_instance_name,
            "producerServiceBaseUrl": self.producer_service_base_url,
            "producerServicePathUrl": self.producer_service_path_url,
        }
        for key, value in (
            ("_id", self.id),
            ("resourceType", self.resource_type),
            ("managingOrganization", self.managing_organization),
            ("description", self.description),
        ):
            if value:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Producer":
        return cls(
            id=data.get("_id") or "",
            resource_type=data.get("resourceType") or "",
            managing_organization_id=data.get("managingOrganizationId") or "",
            managing_organization=data.get("managingOrganization") or "",
            producer_product_name=data.get("producerProductName") or "",
            producer_service_name=data.get("producerServiceName") or "",
            producer_service_instance_name=data.get("producerServiceInstanceName") or "",
            producer_service_base_url=data.get("producerServiceBaseUrl") or "",
            producer_service_path_url=data.get("producerServicePathUrl") or "",
            description=data.get("description") or "",
        )


@dataclass
class GetProducersOptions:
    """Fields on which producers can be searched."""
    id: Optional[str] = field(default=None, metadata=query_param("_id"))
    managing_organization_id: Optional[str] = field(default=None, metadata=query_param("managedOrganizationId"))
    managing_organization: Optional[str] = field(default=None, metadata=query_param("managedOrganization"))
    producer_product_name: Optional[str] = field(default=None, metadata=query_param("producerProductName"))
    producer_service_name: Optional[str] = field(default=None, metadata=query_param("producerServiceName"))
    scope: Optional[str] = field(default=None, metadata=query_param("scope"))


class ProducerService:
    """Service for managing notification producers."""

    def __init__(self, client: ServiceClient):
        self.client = client

    def create_producer(self, producer: Producer) -> Producer:
        """Register a producer.

        Returns:
            The producer as stored by the notification service
        """
        ensure_valid(producer)
        resp = self.client.post(NOTIFICATION, PRODUCER_PATH, body=producer, api_version=NOTIFICATION_API_VERSION)
        if not resp.content:
            return self.get_producer_by_id(id_from_location(resp))
        return decode_resource(resp, Producer)

    def get_producers(self, options: Optional[GetProducersOptions] = None) -> List[Producer]:
        """Search producers; empty list when nothing matches."""
        try:
            resp = self.client.get(NOTIFICATION, PRODUCER_PATH, options=options, api_version=NOTIFICATION_API_VERSION)
        except APIStatusError as e:
            if e.status_code == 404:
                return []
            raise
        return decode_bundle(resp, Producer).entries

    def get_producer_by_id(self, producer_id: str) -> Producer:
        if not producer_id:
            raise ValidationError([Violation("id", "required", "id is required to look up a producer")])
        producers = self.get_producers(GetProducersOptions(id=producer_id))
        if not producers:
            raise EmptyResultError(f"producer {producer_id} not found")
        return producers[0]

    def delete_producer(self, producer: Producer) -> bool:
        """Delete a producer; True only when the service answered 204."""
        if not producer.id:
            raise ValidationError([Violation("id", "required", "id is required to delete a producer")])
        resp = self.client.delete(
            NOTIFICATION,
            f"{PRODUCER_PATH}/{quote(producer.id, safe='')}",
            api_version=NOTIFICATION_API_VERSION,
        )
        return resp.status_code == 204
