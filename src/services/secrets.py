"""
Credential lookup backed by AWS Secrets Manager.

Secrets are always read fresh (latest version) and never cached, so a
rotated channel access token takes effect on the next invocation.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import PermanentError, TransientError
from .aws import create_client, error_code, error_message

logger = logging.getLogger(__name__)

# AWSCURRENT always points at the latest version of a secret
LATEST_VERSION_STAGE = 'AWSCURRENT'

PERMANENT_ERROR_CODES = frozenset({
    'ResourceNotFoundException',
    'AccessDeniedException',
    'DecryptionFailure',
    'InvalidRequestException',
    'InvalidParameterException',
})


def secret_id(scope: str, secret_name: str) -> str:
    """
    Build the secret id for a name within a deployment scope.

    Example:
        >>> secret_id("my-project", "channel-access-token")
        'my-project/channel-access-token'
    """
    return f"{scope}/{secret_name}"


class SecretResolver:
    """Fetches named credentials from Secrets Manager."""

    def __init__(self, settings, client=None):
        self._client = client or create_client('secretsmanager', settings)

    def close(self) -> None:
        self._client.close()

    def resolve(self, scope: str, secret_name: str) -> str:
        """
        Fetch the current value of a secret.

        Args:
            scope: Deployment scope (project id)
            secret_name: Secret name within the scope

        Returns:
            str: The secret value (never logged)

        Raises:
            PermanentError: If the secret does not exist or access is denied
            TransientError: For throttling, service or network failures
        """
        name = secret_id(scope, secret_name)
        logger.info(f"Fetching secret: {name}")

        try:
            response = self._client.get_secret_value(
                SecretId=name,
                VersionStage=LATEST_VERSION_STAGE
            )
        except ClientError as e:
            code = error_code(e)
            logger.error(f"Failed to fetch secret {name}: error_code={code}, error_message={error_message(e)}")
            if code in PERMANENT_ERROR_CODES:
                raise PermanentError(f"Secret {name} unavailable: {code}") from e
            raise TransientError(f"Secret {name} lookup failed: {code}") from e
        except BotoCoreError as e:
            logger.error(f"Secrets Manager unreachable while fetching {name}: {e}")
            raise TransientError(f"Secret {name} lookup failed: {e}") from e

        if 'SecretString' in response and response['SecretString'] is not None:
            return response['SecretString']

        secret_binary = response.get('SecretBinary')
        if secret_binary is None:
            raise PermanentError(f"Secret {name} has no value")
        try:
            return secret_binary.decode('utf-8')
        except UnicodeDecodeError as e:
            raise PermanentError(f"Secret {name} binary value is not UTF-8 text") from e
