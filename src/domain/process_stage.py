"""
Process stage: ProcessMessage -> credential -> image -> labels -> SendMessage.

Steps:
1. Decode the broker payload into a ProcessMessage
2. Resolve the channel access token
3. Download the image content
4. Classify the image (labels kept in classifier order)
5. Publish a SendMessage to "to-send"

Every step raises on failure. There is no stage-local retry; broker
redelivery is the only recovery path.
"""

import logging
import time

from .models import BrokerEnvelope, ProcessMessage, SendMessage

logger = logging.getLogger(__name__)


class ProcessStage:
    """Classifies the image referenced by a ProcessMessage."""

    def __init__(self, settings, clients):
        settings.require('project_id', 'send_topic')
        self._settings = settings
        self._clients = clients

    def run(self, envelope: BrokerEnvelope) -> str:
        """
        Process one broker delivery.

        Args:
            envelope: Broker envelope wrapping a serialized ProcessMessage

        Returns:
            str: Broker message id of the published SendMessage

        Raises:
            MalformedInputError: If the payload is not a ProcessMessage
            PipelineError: If any downstream call fails
        """
        start_time = time.time()

        message = ProcessMessage.from_json(envelope.data)
        logger.info(
            f"Processing image_id={message.image_id}, "
            f"dedup_key={message.dedup_key[:12]}, attempt={envelope.attempt}"
        )

        credential = self._clients.secrets.resolve(
            self._settings.project_id,
            self._settings.secret_name
        )

        image = self._clients.image_fetcher.fetch(message.image_id, credential)

        labels = self._clients.classifier.classify(image, max_labels=self._settings.max_labels)
        logger.info(f"Labels: {labels}")

        result = SendMessage(reply_token=message.reply_token, labels=labels)
        message_id = self._clients.publisher.publish(self._settings.send_topic, result)

        logger.info(f"Process stage completed: {time.time() - start_time:.3f}s")
        return message_id
