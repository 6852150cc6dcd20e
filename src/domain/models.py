"""
Data models for the image label pipeline.

These type-safe data structures define the contracts between stages. Every
message that crosses a topic is a complete, self-describing JSON document.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from .errors import MalformedInputError


def _load_json_object(data, what: str) -> Dict[str, Any]:
    """Parse bytes/str as JSON and require a top-level object."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"{what} is not valid UTF-8: {e}") from e

    try:
        parsed = json.loads(data)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"{what} is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedInputError(
            f"{what} must be a JSON object, got: {type(parsed).__name__}"
        )
    return parsed


def _require_text(obj: Dict[str, Any], key: str, what: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedInputError(f"{what} missing non-empty string field '{key}'")
    return value


@dataclass(frozen=True)
class InboundEvent:
    """
    One event of a chat-platform webhook.

    Attributes:
        reply_token: Token used to reply into the originating conversation
        image_id: Identifier of the image message content
    """
    reply_token: str
    image_id: str

    @classmethod
    def from_dict(cls, event: Any, index: int = 0) -> 'InboundEvent':
        what = f"events[{index}]"
        if not isinstance(event, dict):
            raise MalformedInputError(f"{what} must be an object")

        message = event.get('message')
        if not isinstance(message, dict):
            raise MalformedInputError(f"{what} missing 'message' object")

        return cls(
            reply_token=_require_text(event, 'replyToken', what),
            image_id=_require_text(message, 'id', f"{what}.message"),
        )


@dataclass(frozen=True)
class WebhookEnvelope:
    """
    Parsed webhook body: an ordered sequence of InboundEvents.

    Expected JSON format:
    {
        "events": [
            {"replyToken": "r1", "message": {"id": "img1"}}
        ]
    }
    """
    events: List[InboundEvent] = field(default_factory=list)

    @classmethod
    def from_json(cls, body) -> 'WebhookEnvelope':
        """
        Parse and validate a webhook body.

        Every event is validated before the envelope is returned, so callers
        never act on a partially valid body.

        Raises:
            MalformedInputError: If the body or any event is malformed
        """
        payload = _load_json_object(body, "Webhook body")

        events = payload.get('events', [])
        if not isinstance(events, list):
            raise MalformedInputError("Webhook body field 'events' must be a list")

        return cls(events=[InboundEvent.from_dict(e, i) for i, e in enumerate(events)])

    def __len__(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class ProcessMessage:
    """
    Payload of the "to-process" topic.

    JSON form: {"imageId": "...", "replyToken": "..."}
    """
    image_id: str
    reply_token: str

    @classmethod
    def from_event(cls, event: InboundEvent) -> 'ProcessMessage':
        return cls(image_id=event.image_id, reply_token=event.reply_token)

    @classmethod
    def from_json(cls, data) -> 'ProcessMessage':
        """
        Decode a broker payload.

        Raises:
            MalformedInputError: If the payload is not a valid ProcessMessage
        """
        payload = _load_json_object(data, "ProcessMessage")
        return cls(
            image_id=_require_text(payload, 'imageId', "ProcessMessage"),
            reply_token=_require_text(payload, 'replyToken', "ProcessMessage"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'imageId': self.image_id, 'replyToken': self.reply_token}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def dedup_key(self) -> str:
        """Stable content hash; identical messages share the same key."""
        return _content_hash(self.image_id, self.reply_token)


@dataclass(frozen=True)
class SendMessage:
    """
    Payload of the "to-send" topic.

    JSON form: {"replyToken": "...", "labels": ["cat", "outdoor"]}

    Attributes:
        reply_token: Token used to reply into the originating conversation
        labels: Labels in classifier confidence order (may be empty, never None)
    """
    reply_token: str
    labels: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.labels is None:
            raise MalformedInputError("SendMessage labels must be a list, not None")
        # Normalise to a list so equality holds for tuple input
        object.__setattr__(self, 'labels', list(self.labels))

    @classmethod
    def from_json(cls, data) -> 'SendMessage':
        """
        Decode a broker payload.

        Raises:
            MalformedInputError: If the payload is not a valid SendMessage
        """
        payload = _load_json_object(data, "SendMessage")
        labels = payload.get('labels')
        if not isinstance(labels, list) or not all(isinstance(l, str) for l in labels):
            raise MalformedInputError("SendMessage field 'labels' must be a list of strings")

        return cls(
            reply_token=_require_text(payload, 'replyToken', "SendMessage"),
            labels=labels,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'replyToken': self.reply_token, 'labels': list(self.labels)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def reply_text(self) -> str:
        """Labels joined with a newline; empty string when there are no labels."""
        return "\n".join(self.labels)

    @property
    def dedup_key(self) -> str:
        """Stable content hash; identical messages share the same key."""
        return _content_hash(self.reply_token, *self.labels)


@dataclass(frozen=True)
class BrokerEnvelope:
    """
    Broker delivery wrapper around one serialized message.

    Attributes:
        message_id: Broker-assigned delivery identifier
        data: Serialized ProcessMessage/SendMessage payload
        attempt: Delivery attempt (1 on first delivery)
        source: Queue or topic the message was delivered from
    """
    message_id: str
    data: bytes
    attempt: int = 1
    source: str = ''

    @property
    def is_redelivery(self) -> bool:
        return self.attempt > 1

    def __repr__(self) -> str:
        """Human-readable representation for logging (payload omitted)."""
        return (
            f"BrokerEnvelope(message_id={self.message_id}, attempt={self.attempt}, "
            f"size={len(self.data)}, source={self.source})"
        )


@dataclass
class ProcessingResult:
    """
    Result of running a stage on one broker delivery.

    Attributes:
        success: Whether the stage completed
        message_id: Broker message id of the delivery
        attempt: Delivery attempt
        output: Stage output (published message id or sent text)
        error_message: Error description (if the stage failed)
        permanent: Whether the failure was classified as permanent
    """
    success: bool
    message_id: str
    attempt: int = 1
    output: Optional[str] = None
    error_message: Optional[str] = None
    permanent: bool = False

    def should_retry(self, drop_permanent_failures: bool = False) -> bool:
        """
        Check if the delivery must be reported back for redelivery.

        Every failure is retried unless drop_permanent_failures is set and
        the failure is permanent.
        """
        if self.success:
            return False
        if self.permanent and drop_permanent_failures:
            return False
        return True

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return f"ProcessingResult(success=True, message_id={self.message_id})"
        else:
            return (
                f"ProcessingResult(success=False, message_id={self.message_id}, "
                f"permanent={self.permanent}, error={self.error_message})"
            )


def _content_hash(*parts: str) -> str:
    digest = hashlib.sha256()
    for part in parts:
        # Length prefix keeps ("ab", "c") and ("a", "bc") distinct
        encoded = part.encode('utf-8')
        digest.update(str(len(encoded)).encode('ascii') + b':' + encoded)
    return digest.hexdigest()
