"""
Shared boto3 client configuration.

Every AWS client in the pipeline makes exactly one attempt per call and
carries bounded timeouts. Redelivery by the broker is the only retry path.
"""

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


def client_config(settings) -> Config:
    """
    Build a botocore Config with timeouts and retries disabled.

    Args:
        settings: Settings providing connect/read timeouts

    Returns:
        Config: 1 total attempt, standard mode, bounded timeouts
    """
    return Config(
        retries={
            'total_max_attempts': 1,  # 1 attempt total (no retries)
            'mode': 'standard'
        },
        connect_timeout=settings.http_connect_timeout,
        read_timeout=settings.http_read_timeout,
    )


def create_client(service_name: str, settings):
    """Create a fresh boto3 client for one invocation."""
    client = boto3.client(
        service_name,
        region_name=settings.region,
        config=client_config(settings),
    )
    logger.debug(
        f"{service_name} client initialized: region={settings.region}, "
        f"connect_timeout={settings.http_connect_timeout}s, "
        f"read_timeout={settings.http_read_timeout}s, max_attempts=1"
    )
    return client


def error_code(error: ClientError) -> str:
    """Extract the AWS error code from a ClientError."""
    return error.response.get('Error', {}).get('Code', 'Unknown')


def error_message(error: ClientError) -> str:
    """Extract the AWS error message from a ClientError."""
    return error.response.get('Error', {}).get('Message', str(error))
