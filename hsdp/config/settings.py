"""Client configuration with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

DEFAULT_TIMEOUT = 30.0

logger = logging.getLogger(__name__)


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)
        else:
            if secret_value:
                logger.debug("Loaded %s from /run/secrets", secret_name)
                return secret_value

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _require(var_name: str) -> str:
    value = os.environ.get(var_name, "").strip()
    if not value:
        raise ValueError(f"Environment variable {var_name} is required.")
    return value


def _timeout_from_env() -> float:
    raw = os.environ.get("HSDP_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise ValueError(f"HSDP_TIMEOUT must be a number of seconds, got '{raw}'") from None
    if timeout <= 0:
        raise ValueError("HSDP_TIMEOUT must be positive")
    return timeout


def _check_url(name: str, url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{name} must be an absolute http(s) URL, got '{url}'")


@dataclass(frozen=True)
class IAMConfig:
    """Identity and access management client configuration."""
    iam_url: str
    idm_url: str
    oauth2_client_id: str
    oauth2_secret: str = field(default="", repr=False)
    shared_key: str = ""
    secret_key: str = field(default="", repr=False)
    timeout: float = DEFAULT_TIMEOUT
    debug_log: Optional[str] = None

    def validate(self) -> None:
        """Raise ValueError on unusable URLs or a missing client id."""
        _check_url("iam_url", self.iam_url)
        _check_url("idm_url", self.idm_url)
        if not self.oauth2_client_id:
            raise ValueError("oauth2_client_id is required")


@dataclass(frozen=True)
class NotificationConfig:
    """Notification service configuration."""
    notification_url: str
    timeout: float = DEFAULT_TIMEOUT
    debug_log: Optional[str] = None

    def validate(self) -> None:
        _check_url("notification_url", self.notification_url)


@dataclass(frozen=True)
class CDRConfig:
    """Clinical data repository (FHIR store) configuration."""
    cdr_url: str
    root_org_id: str = ""
    fhir_version: str = "3.0"
    timeout: float = DEFAULT_TIMEOUT
    debug_log: Optional[str] = None

    def validate(self) -> None:
        _check_url("cdr_url", self.cdr_url)


def load_iam_config() -> IAMConfig:
    """Load IAM settings from environment and /run/secrets."""
    oauth2_secret = _load_secret_from_file("hsdp_oauth2_secret", "HSDP_OAUTH2_SECRET") or ""
    secret_key = _load_secret_from_file("hsdp_secret_key", "HSDP_SECRET_KEY") or ""

    config = IAMConfig(
        iam_url=_require("HSDP_IAM_URL"),
        idm_url=_require("HSDP_IDM_URL"),
        oauth2_client_id=_require("HSDP_OAUTH2_CLIENT_ID"),
        oauth2_secret=oauth2_secret,
        shared_key=os.environ.get("HSDP_SHARED_KEY", ""),
        secret_key=secret_key,
        timeout=_timeout_from_env(),
        debug_log=os.environ.get("HSDP_DEBUG_LOG") or None,
    )
    config.validate()
    logger.info("IAM config loaded; iam_url=%s idm_url=%s client_id=%s", config.iam_url, config.idm_url, config.oauth2_client_id)
    return config


def load_notification_config() -> NotificationConfig:
    """Load notification settings from environment."""
    config = NotificationConfig(
        notification_url=_require("HSDP_NOTIFICATION_URL"),
        timeout=_timeout_from_env(),
        debug_log=os.environ.get("HSDP_DEBUG_LOG") or None,
    )
    config.validate()
    return config


def load_cdr_config() -> CDRConfig:
    """Load CDR settings from environment."""
    config = CDRConfig(
        cdr_url=_require("HSDP_CDR_URL"),
        root_org_id=os.environ.get("HSDP_CDR_ROOT_ORG_ID", ""),
        timeout=_timeout_from_env(),
        debug_log=os.environ.get("HSDP_DEBUG_LOG") or None,
    )
    config.validate()
    return config
