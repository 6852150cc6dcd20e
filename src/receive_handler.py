"""
AWS Lambda handler for the chat-platform webhook (API Gateway proxy event).

Acknowledges the webhook only after every event has been published to the
"to-process" topic. Any failure returns HTTP 500 with the error text so the
platform retries the whole webhook. Events without a reply token and message
id (follow, unfollow, ...) make the whole body malformed, so no event in that
body is published.
"""

import base64
import json
import logging
import os
from typing import Dict, Any

from domain.receive_stage import ReceiveStage
from services.factory import build_clients
from settings import get_settings

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

ACK_BODY = 'receive'


def _text_response(status_code: int, body: str) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'text/plain; charset=utf-8'},
        'body': body
    }


def _read_body(event: Dict[str, Any]) -> str:
    """Extract the raw request body, decoding base64 when API Gateway encoded it."""
    body = event.get('body') or ''
    if event.get('isBase64Encoded'):
        return base64.b64decode(body).decode('utf-8')
    return body


def handle_request(event: Dict[str, Any], settings, client_factory=None) -> Dict[str, Any]:
    """
    Run the receive stage for one HTTP request.

    Args:
        event: API Gateway proxy event
        settings: Pipeline settings
        client_factory: Builds the per-invocation leaf components (default: build_clients)

    Returns:
        Dict: API Gateway proxy response (200 ack, or 500 with error text)
    """
    client_factory = client_factory or build_clients

    try:
        body = _read_body(event)
        logger.info(f"Received webhook: {len(body)} bytes")

        with client_factory(settings) as clients:
            message_ids = ReceiveStage(settings, clients).run(body)

        logger.info(f"Successfully published {len(message_ids)} message(s)")
        return _text_response(200, ACK_BODY)

    except Exception as e:
        logger.error(f"Receive failed: {type(e).__name__}: {e}", exc_info=True)
        return _text_response(500, str(e))


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Receive a webhook and fan its events out to the "to-process" topic.

    Expected body format:
    {
        "events": [
            {"replyToken": "r1", "message": {"id": "img1"}}
        ]
    }
    """
    request_id = getattr(context, 'aws_request_id', None) or getattr(context, 'request_id', 'UNKNOWN')
    logger.info(f"Receive invoked: request_id={request_id}")

    try:
        settings = get_settings()
    except Exception as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        return _text_response(500, str(e))

    return handle_request(event, settings)


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    try:
        settings = get_settings()
    except Exception as e:
        logger.error(f"Health check configuration error: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'status': 'unhealthy',
                'error': str(e)
            })
        }

    return {
        'statusCode': 200,
        'body': json.dumps({
            'status': 'healthy',
            'environment': settings.environment,
            'processTopicConfigured': bool(settings.process_topic)
        })
    }
