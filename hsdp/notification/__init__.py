"""HSDP notification service client."""
from .client import NotificationClient
from .producers import (
    NOTIFICATION,
    NOTIFICATION_API_VERSION,
    PRODUCER_PATH,
    GetProducersOptions,
    Producer,
    ProducerService,
)

__all__ = [
    "NotificationClient",
    "NOTIFICATION",
    "NOTIFICATION_API_VERSION",
    "PRODUCER_PATH",
    "GetProducersOptions",
    "Producer",
    "ProducerService",
]
