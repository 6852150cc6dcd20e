"""
Topic publishing via Amazon SNS.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import PermanentError, TransientError
from .aws import create_client, error_code, error_message

logger = logging.getLogger(__name__)

PERMANENT_ERROR_CODES = frozenset({
    'NotFound',
    'NotFoundException',
    'AuthorizationError',
    'InvalidParameter',
    'InvalidParameterValue',
    'KMSAccessDenied',
    'KMSDisabled',
})


class Publisher:
    """Serializes messages and publishes them to SNS topics."""

    def __init__(self, settings, client=None):
        self._client = client or create_client('sns', settings)

    def close(self) -> None:
        self._client.close()

    def publish(self, topic: str, message) -> str:
        """
        Publish one message and wait for the broker's acknowledgment.

        Args:
            topic: SNS topic ARN
            message: ProcessMessage or SendMessage (anything with to_json())

        Returns:
            str: Broker-assigned message id

        Raises:
            PermanentError: If the topic does not exist or publishing is denied
            TransientError: For throttling, service or network failures
        """
        payload = message.to_json()

        try:
            response = self._client.publish(TopicArn=topic, Message=payload)
        except ClientError as e:
            code = error_code(e)
            logger.error(
                f"Failed to publish to {topic}: "
                f"error_code={code}, error_message={error_message(e)}"
            )
            if code in PERMANENT_ERROR_CODES:
                raise PermanentError(f"Publish to {topic} rejected: {code}") from e
            raise TransientError(f"Publish to {topic} failed: {code}") from e
        except BotoCoreError as e:
            logger.error(f"SNS unreachable while publishing to {topic}: {e}")
            raise TransientError(f"Publish to {topic} failed: {e}") from e

        message_id = response['MessageId']
        logger.info(f"Published to {topic}: message_id={message_id}, size={len(payload)} bytes")
        return message_id
