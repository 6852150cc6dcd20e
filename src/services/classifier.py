"""
Image classification via Amazon Rekognition label detection.
"""

import logging
from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import PermanentError, TransientError
from settings import DEFAULT_MAX_LABELS
from .aws import create_client, error_code, error_message

logger = logging.getLogger(__name__)

# Errors caused by the image or the caller's permissions; redelivery won't help
PERMANENT_ERROR_CODES = frozenset({
    'InvalidImageFormatException',
    'ImageTooLargeException',
    'InvalidParameterException',
    'AccessDeniedException',
})


class Classifier:
    """Detects labels in raw image bytes."""

    def __init__(self, settings, client=None):
        self._client = client or create_client('rekognition', settings)

    def close(self) -> None:
        self._client.close()

    def classify(self, image: bytes, max_labels: int = DEFAULT_MAX_LABELS) -> List[str]:
        """
        Detect labels in an image.

        Args:
            image: Raw image bytes (JPEG or PNG)
            max_labels: Maximum number of labels to return

        Returns:
            List[str]: Label names, highest confidence first (may be empty)

        Raises:
            PermanentError: If the image is rejected or access is denied
            TransientError: For throttling, service or network failures
        """
        logger.info(f"Classifying image: size={len(image):,} bytes, max_labels={max_labels}")

        try:
            response = self._client.detect_labels(
                Image={'Bytes': image},
                MaxLabels=max_labels
            )
        except ClientError as e:
            code = error_code(e)
            logger.error(f"Label detection failed: error_code={code}, error_message={error_message(e)}")
            if code in PERMANENT_ERROR_CODES:
                raise PermanentError(f"Label detection rejected image: {code}") from e
            raise TransientError(f"Label detection failed: {code}") from e
        except BotoCoreError as e:
            logger.error(f"Rekognition unreachable: {e}")
            raise TransientError(f"Label detection failed: {e}") from e

        # Rekognition already returns labels ordered by confidence
        labels = [label['Name'] for label in response.get('Labels', [])]
        logger.info(f"Detected {len(labels)} label(s)")
        return labels
