"""Configuration module for the HSDP client."""
from .settings import (
    CDRConfig,
    IAMConfig,
    NotificationConfig,
    load_cdr_config,
    load_iam_config,
    load_notification_config,
)

__all__ = [
    "CDRConfig",
    "IAMConfig",
    "NotificationConfig",
    "load_cdr_config",
    "load_iam_config",
    "load_notification_config",
]
