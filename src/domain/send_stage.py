"""
Send stage: SendMessage -> text reply into the originating conversation.
"""

import logging

from .models import BrokerEnvelope, SendMessage

logger = logging.getLogger(__name__)


class SendStage:
    """Replies with the labels of a SendMessage, one per line."""

    def __init__(self, settings, clients):
        settings.require('project_id')
        self._settings = settings
        self._clients = clients

    def reply_text(self, message: SendMessage) -> str:
        """
        Build the reply text for a message.

        Labels are joined with a newline. An empty label list yields
        settings.empty_reply_text, which defaults to the empty string.
        """
        if not message.labels:
            return self._settings.empty_reply_text
        return message.reply_text

    def run(self, envelope: BrokerEnvelope) -> str:
        """
        Send the reply for one broker delivery.

        Args:
            envelope: Broker envelope wrapping a serialized SendMessage

        Returns:
            str: The text that was sent

        Raises:
            MalformedInputError: If the payload is not a SendMessage
            PipelineError: If the credential lookup or the reply fails
        """
        message = SendMessage.from_json(envelope.data)
        logger.info(
            f"Sending {len(message.labels)} label(s): "
            f"dedup_key={message.dedup_key[:12]}, attempt={envelope.attempt}"
        )

        text = self.reply_text(message)
        if not text:
            # Sent anyway; LINE may reject an empty text message
            logger.warning("Reply text is empty (no labels detected)")

        credential = self._clients.secrets.resolve(
            self._settings.project_id,
            self._settings.secret_name
        )

        self._clients.reply_sender.reply(message.reply_token, text, credential)
        logger.info("Send stage completed")
        return text
