"""
LINE Messaging API integration.

This module wraps the two outbound LINE calls made by the pipeline:
downloading the content of an image message and replying to a conversation.
Both are authenticated with the channel access token as a bearer credential.

Usage:
    from integrations.line_messaging import ImageFetcher, ReplySender

    image = ImageFetcher(settings).fetch("325708", channel_access_token)
    ReplySender(settings).reply(reply_token, "cat\\noutdoor", channel_access_token)
"""

import logging
from typing import Dict
from urllib.parse import quote

import requests

from domain.errors import PermanentError, TransientError

logger = logging.getLogger(__name__)

# Status codes worth another delivery attempt; every other 4xx is final
RETRYABLE_STATUS_CODES = frozenset({408, 429})


def _auth_headers(credential: str) -> Dict[str, str]:
    return {'Authorization': f"Bearer {credential}"}


def _raise_for_status(response: requests.Response, action: str) -> None:
    """
    Map a non-2xx response to the pipeline error taxonomy.

    Raises:
        TransientError: For 408, 429 and 5xx responses
        PermanentError: For every other non-2xx response
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    # LINE error bodies are small JSON documents ({"message": ...})
    detail = response.text[:200]
    logger.error(f"{action} failed: status={status}, body={detail}")

    if status in RETRYABLE_STATUS_CODES or status >= 500:
        raise TransientError(f"{action} failed with HTTP {status}: {detail}")
    raise PermanentError(f"{action} failed with HTTP {status}: {detail}")


class _LineClient:
    """Shared session and timeout handling for LINE API calls."""

    def __init__(self, settings, session=None):
        self._settings = settings
        self._session = session or requests.Session()

    def _request(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        try:
            response = self._session.request(
                method,
                url,
                timeout=self._settings.http_timeout,
                **kwargs
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"{action} timed out: {url}")
            raise TransientError(f"{action} timed out") from e
        except requests.exceptions.ConnectionError as e:
            logger.error(f"{action} could not connect: {url}")
            raise TransientError(f"{action} could not connect: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{action} request failed: {e}")
            raise TransientError(f"{action} request failed: {e}") from e

        _raise_for_status(response, action)
        return response

    def close(self) -> None:
        self._session.close()


class ImageFetcher(_LineClient):
    """Downloads image message content."""

    def fetch(self, image_id: str, credential: str) -> bytes:
        """
        Download the raw bytes of an image message.

        Args:
            image_id: Message id of the image
            credential: Channel access token

        Returns:
            bytes: Raw image content

        Raises:
            PermanentError: If the content is gone or the token is rejected
            TransientError: For timeouts, connection errors and 5xx responses
        """
        # Image ids must stay inside a single path segment
        url = self._settings.line_content_url.format(image_id=quote(image_id, safe=''))
        logger.info(f"Downloading image content: image_id={image_id}")

        response = self._request('GET', url, "Image download", headers=_auth_headers(credential))

        content = response.content
        logger.info(f"Downloaded {len(content):,} bytes (content_type={response.headers.get('Content-Type', 'unknown')})")
        return content


class ReplySender(_LineClient):
    """Sends text replies into a conversation."""

    def reply(self, reply_token: str, text: str, credential: str) -> None:
        """
        Send a single text message as a reply.

        Args:
            reply_token: Reply token of the originating event
            text: Message text (sent as-is, even when empty)
            credential: Channel access token

        Raises:
            PermanentError: If LINE rejects the reply (expired token, bad body)
            TransientError: For timeouts, connection errors and 5xx responses
        """
        body = {
            'replyToken': reply_token,
            'messages': [{
                'type': 'text',
                'text': text,
            }],
        }
        headers = _auth_headers(credential)
        headers['Content-Type'] = 'application/json'

        logger.info(f"Sending reply: text_length={len(text)}")
        self._request('POST', self._settings.line_reply_url, "Reply", json=body, headers=headers)
        logger.info("Reply accepted")
