"""Notification service client."""
from __future__ import annotations
from typing import Optional

import requests

from ..config.settings import NotificationConfig
from ..core.client import ServiceClient
from ..iam.client import IAMClient
from .producers import NOTIFICATION, ProducerService


class NotificationClient:
    """Client for the HSDP notification service, authenticated through IAM.

    Usage:
        notification = NotificationClient(iam, NotificationConfig(notification_url=...))
        producers = notification.producers.get_producers(GetProducersOptions(producer_product_name="demo"))
    """

    def __init__(
        self,
        iam_client: IAMClient,
        config: NotificationConfig,
        session: Optional[requests.Session] = None,
    ):
        config.validate()
        self.config = config
        self.iam = iam_client
        self.http = ServiceClient(
            {NOTIFICATION: config.notification_url},
            iam_client.token_manager,
            session=session or iam_client.session,
            timeout=config.timeout,
            debug_log=config.debug_log,
        )
        self.producers = ProducerService(self.http)

    def close(self) -> None:
        self.http.close()
