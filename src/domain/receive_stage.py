"""
Receive stage: webhook body -> one ProcessMessage per event on "to-process".
"""

import logging
from typing import List

from .models import ProcessMessage, WebhookEnvelope

logger = logging.getLogger(__name__)


class ReceiveStage:
    """
    Fans a webhook out into ProcessMessages.

    Publishes are sequential and each waits for the broker acknowledgment.
    The first failure aborts the remaining publishes; messages already
    published stay published, so a retried webhook may duplicate them.
    """

    def __init__(self, settings, clients):
        settings.require('process_topic')
        self._topic = settings.process_topic
        self._clients = clients

    def run(self, body) -> List[str]:
        """
        Parse a webhook body and publish every event.

        Args:
            body: Raw JSON webhook body (str or bytes)

        Returns:
            List[str]: Broker message ids, in event order

        Raises:
            MalformedInputError: If the body is malformed (nothing is published)
            PipelineError: If a publish fails
        """
        webhook = WebhookEnvelope.from_json(body)
        logger.info(f"Webhook contains {len(webhook)} event(s)")

        message_ids = []
        for index, event in enumerate(webhook.events):
            message = ProcessMessage.from_event(event)
            message_id = self._clients.publisher.publish(self._topic, message)
            logger.info(
                f"Published event {index + 1}/{len(webhook)}: "
                f"image_id={message.image_id}, dedup_key={message.dedup_key[:12]}, "
                f"message_id={message_id}"
            )
            message_ids.append(message_id)

        return message_ids
