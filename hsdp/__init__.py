"""Typed client library for HSDP identity, notification and CDR services.

Usage:
    from hsdp.config import IAMConfig, NotificationConfig
    from hsdp.iam import IAMClient
    from hsdp.notification import NotificationClient

    iam = IAMClient(IAMConfig(iam_url=..., idm_url=..., oauth2_client_id=..., oauth2_secret=...))
    iam.login_client_credentials()
    notification = NotificationClient(iam, NotificationConfig(notification_url=...))
"""

__version__ = "0.1.0"
