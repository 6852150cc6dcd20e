"""
Broker envelope decoding.

Stages are fed by SQS queues subscribed to SNS topics. Depending on the
subscription's raw message delivery setting, the SQS body is either the
published payload itself or an SNS notification wrapping it.
"""

import json
import logging
from typing import Dict, Any

from .errors import MalformedInputError
from .models import BrokerEnvelope

logger = logging.getLogger(__name__)


def from_sqs_record(record: Dict[str, Any]) -> BrokerEnvelope:
    """
    Build a BrokerEnvelope from one SQS record.

    Handles both raw delivery (SNS -> SQS with RawMessageDelivery) and
    SNS-wrapped notifications.

    Args:
        record: SQS record dict from a Lambda event

    Returns:
        BrokerEnvelope: Payload bytes plus delivery metadata

    Raises:
        MalformedInputError: If the record has no message id or body
    """
    message_id = record.get('messageId')
    if not message_id:
        raise MalformedInputError("SQS record missing 'messageId'")

    body = record.get('body')
    if body is None:
        raise MalformedInputError(f"SQS record {message_id} missing 'body'")

    attributes = record.get('attributes', {}) or {}
    try:
        attempt = int(attributes.get('ApproximateReceiveCount', 1))
    except (TypeError, ValueError):
        attempt = 1

    payload = _unwrap_sns_notification(body)

    return BrokerEnvelope(
        message_id=message_id,
        data=payload.encode('utf-8'),
        attempt=attempt,
        source=record.get('eventSourceARN', ''),
    )


def _unwrap_sns_notification(body: str) -> str:
    """Return the SNS Message field if body is an SNS notification, else body."""
    try:
        parsed = json.loads(body)
    except ValueError:
        # Not JSON at all; the stage decoder reports the error
        return body

    if (
        isinstance(parsed, dict)
        and parsed.get('Type') == 'Notification'
        and isinstance(parsed.get('Message'), str)
    ):
        logger.info("Unwrapping SNS message (SNS -> SQS without raw delivery)")
        return parsed['Message']

    return body
