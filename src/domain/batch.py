"""
Runs a broker-triggered stage over an SQS batch.

Each record is processed independently. Failed records are reported in the
Lambda partial batch response so SQS redelivers only those. No failure is
swallowed: a record either succeeds, is reported for redelivery, or (only
when drop_permanent_failures is set) is logged and consumed.
"""

import logging
from typing import Any, Callable, Dict, List

from . import envelope as envelope_decoder
from .errors import is_permanent
from .models import BrokerEnvelope, ProcessingResult

logger = logging.getLogger(__name__)

# (envelope) -> stage output
StageRunner = Callable[[BrokerEnvelope], str]


def run_record(record: Dict[str, Any], runner: StageRunner) -> ProcessingResult:
    """
    Run the stage for a single SQS record.

    Args:
        record: SQS record dict
        runner: Callable executing the stage on a decoded envelope

    Returns:
        ProcessingResult with success=True or success=False (errors logged)
    """
    message_id = record.get('messageId', 'UNKNOWN')
    attempt = 1

    try:
        broker_envelope = envelope_decoder.from_sqs_record(record)
        attempt = broker_envelope.attempt
        logger.info(f"Processing {broker_envelope!r}")

        output = runner(broker_envelope)

        return ProcessingResult(
            success=True,
            message_id=message_id,
            attempt=attempt,
            output=output
        )

    except Exception as e:
        permanent = is_permanent(e)
        logger.error(
            f"Failed to process {message_id} (attempt {attempt}, "
            f"{'permanent' if permanent else 'transient'}): {type(e).__name__}: {e}",
            exc_info=True
        )
        return ProcessingResult(
            success=False,
            message_id=message_id,
            attempt=attempt,
            error_message=str(e),
            permanent=permanent
        )


def run_batch(
    records: List[Dict[str, Any]],
    runner: StageRunner,
    drop_permanent_failures: bool = False
) -> Dict[str, Any]:
    """
    Run the stage for every record and build the partial batch response.

    Args:
        records: SQS records from the Lambda event
        runner: Callable executing the stage on a decoded envelope
        drop_permanent_failures: Consume records that failed permanently

    Returns:
        Dict with batchItemFailures listing every record to redeliver
    """
    logger.info(f"Processing batch of {len(records)} message(s)")

    results = [run_record(record, runner) for record in records]

    failures = []
    for result in results:
        if result.success:
            logger.info(f"✓ Successfully processed message {result.message_id}")
        elif result.should_retry(drop_permanent_failures):
            logger.warning(f"⚠ Message {result.message_id} will be redelivered: {result.error_message}")
            failures.append({'itemIdentifier': result.message_id})
        else:
            logger.warning(
                f"⚠ Dropping message {result.message_id} after permanent failure: "
                f"{result.error_message}"
            )

    success_count = sum(1 for r in results if r.success)
    logger.info(f"Batch processing complete: {len(results)} message(s)")
    logger.info(f"  Success: {success_count}")
    logger.info(f"  Redeliver: {len(failures)}")
    logger.info(f"  Dropped: {len(results) - success_count - len(failures)}")

    return {'batchItemFailures': failures}
