"""
Process-wide configuration for the pipeline Lambdas.

Settings are read from environment variables once per process and passed
explicitly into each stage. Stage code never reads os.environ directly.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SECRET_NAME = 'channel-access-token'
DEFAULT_MAX_LABELS = 10
DEFAULT_LINE_CONTENT_URL = 'https://api-data.line.me/v2/bot/message/{image_id}/content'
DEFAULT_LINE_REPLY_URL = 'https://api.line.me/v2/bot/message/reply'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class Settings:
    """
    Immutable pipeline configuration.

    Attributes:
        project_id: Scope used to build secret ids ("{project_id}/{secret_name}")
        process_topic: SNS topic ARN carrying ProcessMessages
        send_topic: SNS topic ARN carrying SendMessages
        secret_name: Name of the channel access token secret
        max_labels: Maximum number of labels requested from the classifier
        http_connect_timeout: Seconds to establish outbound connections
        http_read_timeout: Seconds to wait for outbound responses
        drop_permanent_failures: Consume (instead of retry) records that
            fail with a PermanentError
        empty_reply_text: Reply text sent when classification finds no labels
        line_content_url: Image content URL template with an {image_id} field
        line_reply_url: Reply endpoint URL
        environment: Deployment label (dev, staging, prod)
        region: AWS region for boto3 clients (None = boto3 default chain)
    """
    project_id: Optional[str] = None
    process_topic: Optional[str] = None
    send_topic: Optional[str] = None
    secret_name: str = DEFAULT_SECRET_NAME
    max_labels: int = DEFAULT_MAX_LABELS
    http_connect_timeout: float = 10.0
    http_read_timeout: float = 30.0
    drop_permanent_failures: bool = False
    empty_reply_text: str = ''
    line_content_url: str = DEFAULT_LINE_CONTENT_URL
    line_reply_url: str = DEFAULT_LINE_REPLY_URL
    environment: str = 'dev'
    region: Optional[str] = None

    @property
    def http_timeout(self):
        """(connect, read) tuple in the form requests expects."""
        return (self.http_connect_timeout, self.http_read_timeout)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If a numeric value cannot be parsed or is out of range
        """
        env = os.environ if environ is None else environ

        settings = cls(
            project_id=env.get('PROJECT_ID') or None,
            process_topic=env.get('WAIT_PROCESS_TOPIC') or None,
            send_topic=env.get('WAIT_SEND_TOPIC') or None,
            secret_name=env.get('CHANNEL_SECRET_NAME') or DEFAULT_SECRET_NAME,
            max_labels=_parse_int(env, 'MAX_LABELS', DEFAULT_MAX_LABELS),
            http_connect_timeout=_parse_float(env, 'HTTP_CONNECT_TIMEOUT', 10.0),
            http_read_timeout=_parse_float(env, 'HTTP_READ_TIMEOUT', 30.0),
            drop_permanent_failures=_parse_bool(env, 'DROP_PERMANENT_FAILURES'),
            empty_reply_text=env.get('EMPTY_REPLY_TEXT', ''),
            line_content_url=env.get('LINE_CONTENT_URL') or DEFAULT_LINE_CONTENT_URL,
            line_reply_url=env.get('LINE_REPLY_URL') or DEFAULT_LINE_REPLY_URL,
            environment=env.get('ENVIRONMENT', 'dev'),
            region=env.get('AWS_REGION') or env.get('AWS_DEFAULT_REGION') or None,
        )

        if settings.max_labels < 1:
            raise ConfigurationError(f"MAX_LABELS must be at least 1, got: {settings.max_labels}")
        if '{image_id}' not in settings.line_content_url:
            raise ConfigurationError("LINE_CONTENT_URL must contain an {image_id} placeholder")

        logger.info(
            f"Settings loaded: environment={settings.environment}, "
            f"process_topic={settings.process_topic}, send_topic={settings.send_topic}, "
            f"max_labels={settings.max_labels}, "
            f"drop_permanent_failures={settings.drop_permanent_failures}"
        )
        return settings

    def require(self, *names: str) -> None:
        """
        Check that the named settings are set.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got: {raw!r}")


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got: {raw!r}")


def _parse_bool(env: Mapping[str, str], key: str) -> bool:
    return env.get(key, '').strip().lower() in _TRUE_VALUES


# Loaded once per process (cold start) and reused by warm invocations
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget loaded settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
