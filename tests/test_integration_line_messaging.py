"""
Tests for the LINE Messaging API integration.
"""

import pytest
import requests
from unittest.mock import MagicMock
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import PermanentError, TransientError
from integrations.line_messaging import ImageFetcher, ReplySender


def _response(status_code=200, content=b'', text='', headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = text
    response.headers = headers or {}
    return response


@pytest.fixture
def mock_session():
    return MagicMock()


class TestImageFetcher:
    """Test downloading image content."""

    def test_fetch_success(self, settings, mock_session):
        mock_session.request.return_value = _response(
            200, content=b'\xff\xd8jpeg-bytes', headers={'Content-Type': 'image/jpeg'}
        )

        image = ImageFetcher(settings, session=mock_session).fetch('325708', 'token-abc')

        assert image == b'\xff\xd8jpeg-bytes'
        mock_session.request.assert_called_once_with(
            'GET',
            'https://api-data.line.me/v2/bot/message/325708/content',
            timeout=(10.0, 30.0),
            headers={'Authorization': 'Bearer token-abc'}
        )

    def test_fetch_escapes_image_id(self, settings, mock_session):
        mock_session.request.return_value = _response(200, content=b'x')

        ImageFetcher(settings, session=mock_session).fetch('../../v2/bot/info?x=', 'token')

        assert mock_session.request.call_args[0][1] == (
            'https://api-data.line.me/v2/bot/message/..%2F..%2Fv2%2Fbot%2Finfo%3Fx%3D/content'
        )

    def test_fetch_uses_configured_url(self, settings, mock_session):
        from dataclasses import replace
        custom = replace(settings, line_content_url='http://localhost:8080/content/{image_id}')
        mock_session.request.return_value = _response(200, content=b'x')

        ImageFetcher(custom, session=mock_session).fetch('img1', 'token')

        assert mock_session.request.call_args[0][1] == 'http://localhost:8080/content/img1'

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_permanent(self, settings, mock_session, status):
        mock_session.request.return_value = _response(status, text='{"message":"Not found"}')

        with pytest.raises(PermanentError, match=str(status)):
            ImageFetcher(settings, session=mock_session).fetch('img1', 'token')

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503])
    def test_retryable_statuses_are_transient(self, settings, mock_session, status):
        mock_session.request.return_value = _response(status, text='busy')

        with pytest.raises(TransientError, match=str(status)):
            ImageFetcher(settings, session=mock_session).fetch('img1', 'token')

    def test_timeout_is_transient(self, settings, mock_session):
        mock_session.request.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(TransientError, match="timed out"):
            ImageFetcher(settings, session=mock_session).fetch('img1', 'token')

    def test_connection_error_is_transient(self, settings, mock_session):
        mock_session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransientError):
            ImageFetcher(settings, session=mock_session).fetch('img1', 'token')


class TestReplySender:
    """Test sending replies."""

    def test_reply_success(self, settings, mock_session):
        mock_session.request.return_value = _response(200, text='{}')

        ReplySender(settings, session=mock_session).reply('r1', 'cat\noutdoor', 'token-abc')

        mock_session.request.assert_called_once_with(
            'POST',
            'https://api.line.me/v2/bot/message/reply',
            timeout=(10.0, 30.0),
            json={
                'replyToken': 'r1',
                'messages': [{'type': 'text', 'text': 'cat\noutdoor'}],
            },
            headers={
                'Authorization': 'Bearer token-abc',
                'Content-Type': 'application/json',
            }
        )

    def test_empty_text_is_still_sent(self, settings, mock_session):
        mock_session.request.return_value = _response(200)

        ReplySender(settings, session=mock_session).reply('r1', '', 'token')

        body = mock_session.request.call_args[1]['json']
        assert body['messages'] == [{'type': 'text', 'text': ''}]

    def test_invalid_reply_token_is_permanent(self, settings, mock_session):
        mock_session.request.return_value = _response(400, text='{"message":"Invalid reply token"}')

        with pytest.raises(PermanentError, match="Invalid reply token"):
            ReplySender(settings, session=mock_session).reply('expired', 'cat', 'token')

    def test_rate_limit_is_transient(self, settings, mock_session):
        mock_session.request.return_value = _response(429, text='{"message":"The API rate limit has been exceeded"}')

        with pytest.raises(TransientError):
            ReplySender(settings, session=mock_session).reply('r1', 'cat', 'token')

    def test_close_closes_session(self, settings, mock_session):
        ReplySender(settings, session=mock_session).close()
        mock_session.close.assert_called_once()

    def test_fetcher_close_closes_session(self, settings, mock_session):
        ImageFetcher(settings, session=mock_session).close()
        mock_session.close.assert_called_once()
