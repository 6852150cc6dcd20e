"""
Pytest configuration and fixtures for all tests.
"""

import itertools
import json
import os
import sys
from unittest.mock import Mock

import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('PROJECT_ID', 'test-project')
os.environ.setdefault('WAIT_PROCESS_TOPIC', 'arn:aws:sns:us-west-2:123456789012:wait-process')
os.environ.setdefault('WAIT_SEND_TOPIC', 'arn:aws:sns:us-west-2:123456789012:wait-send')
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')

from settings import Settings  # noqa: E402
from services.factory import StageClients  # noqa: E402

EVENTS_DIR = os.path.join(os.path.dirname(__file__), 'events')

PROCESS_TOPIC = 'arn:aws:sns:us-west-2:123456789012:wait-process'
SEND_TOPIC = 'arn:aws:sns:us-west-2:123456789012:wait-send'
CHANNEL_TOKEN = 'test-channel-token-SECRET'


def load_event(name):
    """Load a sample Lambda event from tests/events."""
    with open(os.path.join(EVENTS_DIR, name)) as f:
        return json.load(f)


@pytest.fixture
def settings():
    """Settings for a fully configured deployment."""
    return Settings(
        project_id='test-project',
        process_topic=PROCESS_TOPIC,
        send_topic=SEND_TOPIC,
        environment='test',
        region='us-west-2',
    )


@pytest.fixture
def lambda_context():
    """Mock Lambda context."""
    context = Mock()
    context.aws_request_id = "test-request-id"
    context.invoked_function_arn = "arn:aws:lambda:us-west-2:123456789012:function:test"
    return context


@pytest.fixture
def fake_secrets():
    secrets = Mock()
    secrets.resolve.return_value = CHANNEL_TOKEN
    return secrets


@pytest.fixture
def fake_image_fetcher():
    fetcher = Mock()
    fetcher.fetch.return_value = b'\xff\xd8\xff\xe0fake-jpeg'
    return fetcher


@pytest.fixture
def fake_classifier():
    classifier = Mock()
    classifier.classify.return_value = ['cat', 'outdoor']
    return classifier


@pytest.fixture
def fake_reply_sender():
    return Mock()


@pytest.fixture
def fake_publisher():
    """Publisher returning broker ids pub-1, pub-2, ..."""
    publisher = Mock()
    counter = itertools.count(1)
    publisher.publish.side_effect = lambda topic, message: f"pub-{next(counter)}"
    return publisher


@pytest.fixture
def fakes(fake_secrets, fake_image_fetcher, fake_classifier, fake_reply_sender, fake_publisher):
    return {
        'secrets': fake_secrets,
        'image_fetcher': fake_image_fetcher,
        'classifier': fake_classifier,
        'reply_sender': fake_reply_sender,
        'publisher': fake_publisher,
    }


@pytest.fixture
def clients(settings, fakes):
    """StageClients backed entirely by fakes."""
    return StageClients(settings, **fakes)


@pytest.fixture
def client_factory(fakes):
    """Drop-in replacement for services.factory.build_clients."""
    def build(settings):
        return StageClients(settings, **fakes)
    return build


@pytest.fixture
def make_sqs_record():
    """Build an SQS record as delivered to Lambda."""
    def build(body, message_id='msg-1', receive_count=1):
        if not isinstance(body, str):
            body = json.dumps(body)
        return {
            'messageId': message_id,
            'receiptHandle': f"handle-{message_id}",
            'body': body,
            'attributes': {
                'ApproximateReceiveCount': str(receive_count),
                'SentTimestamp': '1700000000000',
            },
            'messageAttributes': {},
            'eventSource': 'aws:sqs',
            'eventSourceARN': 'arn:aws:sqs:us-west-2:123456789012:wait-process-queue',
            'awsRegion': 'us-west-2',
        }
    return build
