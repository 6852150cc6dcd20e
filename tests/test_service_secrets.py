"""
Tests for the Secrets Manager credential resolver.
"""

import logging
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError, EndpointConnectionError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import PermanentError, TransientError
from services.secrets import SecretResolver, secret_id


def _client_error(code, message="error"):
    return ClientError({'Error': {'Code': code, 'Message': message}}, 'GetSecretValue')


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def resolver(settings, mock_client):
    return SecretResolver(settings, client=mock_client)


class TestResolve:
    """Test fetching secrets."""

    def test_resolve_secret_string(self, resolver, mock_client):
        mock_client.get_secret_value.return_value = {'SecretString': 'token-123'}

        assert resolver.resolve('test-project', 'channel-access-token') == 'token-123'
        mock_client.get_secret_value.assert_called_once_with(
            SecretId='test-project/channel-access-token',
            VersionStage='AWSCURRENT'
        )

    def test_resolve_secret_binary(self, resolver, mock_client):
        mock_client.get_secret_value.return_value = {'SecretBinary': b'token-bin'}
        assert resolver.resolve('p', 's') == 'token-bin'

    def test_resolve_empty_secret(self, resolver, mock_client):
        mock_client.get_secret_value.return_value = {}

        with pytest.raises(PermanentError, match="has no value"):
            resolver.resolve('p', 's')

    def test_never_cached(self, resolver, mock_client):
        mock_client.get_secret_value.side_effect = [
            {'SecretString': 'old-token'},
            {'SecretString': 'rotated-token'},
        ]

        assert resolver.resolve('p', 's') == 'old-token'
        assert resolver.resolve('p', 's') == 'rotated-token'
        assert mock_client.get_secret_value.call_count == 2

    @pytest.mark.parametrize("code", [
        'ResourceNotFoundException',
        'AccessDeniedException',
        'DecryptionFailure',
    ])
    def test_permanent_errors(self, resolver, mock_client, code):
        mock_client.get_secret_value.side_effect = _client_error(code)

        with pytest.raises(PermanentError, match=code) as exc_info:
            resolver.resolve('p', 's')

        assert isinstance(exc_info.value.__cause__, ClientError)

    @pytest.mark.parametrize("code", ['ThrottlingException', 'InternalServiceError'])
    def test_transient_errors(self, resolver, mock_client, code):
        mock_client.get_secret_value.side_effect = _client_error(code)

        with pytest.raises(TransientError, match=code):
            resolver.resolve('p', 's')

    def test_network_error_is_transient(self, resolver, mock_client):
        mock_client.get_secret_value.side_effect = EndpointConnectionError(
            endpoint_url='https://secretsmanager.us-west-2.amazonaws.com'
        )

        with pytest.raises(TransientError):
            resolver.resolve('p', 's')

    def test_secret_value_not_logged(self, resolver, mock_client, caplog):
        mock_client.get_secret_value.return_value = {'SecretString': 'super-secret-token'}

        with caplog.at_level(logging.DEBUG):
            resolver.resolve('p', 's')

        assert 'super-secret-token' not in caplog.text


def test_secret_id():
    assert secret_id('my-project', 'channel-access-token') == 'my-project/channel-access-token'


def test_close_closes_client(resolver, mock_client):
    resolver.close()
    mock_client.close.assert_called_once()
