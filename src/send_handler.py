"""
AWS Lambda handler for the send stage (SQS queue subscribed to "to-send").

Thin orchestration layer that delegates each record to SendStage.
Policy: failed records are returned in batchItemFailures so SQS redelivers
them. Requires ReportBatchItemFailures on the event source mapping.
"""

import logging
import os
from typing import Dict, Any, List

from domain.batch import run_batch
from domain.send_stage import SendStage
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


def send_records(
    records: List[Dict[str, Any]],
    settings,
    client_factory=None
) -> Dict[str, Any]:
    """
    Run the send stage for every record, each with fresh clients.

    Returns:
        Dict with batchItemFailures
    """
    client_factory = client_factory or build_clients

    def run(envelope):
        with client_factory(settings) as clients:
            return SendStage(settings, clients).run(envelope)

    return run_batch(records, run, settings.drop_permanent_failures)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Send replies for SendMessages from SQS.

    Args:
        event: Lambda event with SQS records
        context: Lambda context

    Returns:
        Dict with batchItemFailures (records to redeliver)
    """
    logger.info("Send stage - Started")
    return send_records(event.get('Records', []), get_settings())
