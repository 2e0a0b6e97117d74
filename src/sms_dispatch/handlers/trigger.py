"""
Module: handlers/trigger.py
Description: DynamoDB stream Lambda that delivers newly created SMS requests.

Every INSERT on the sms-requests table arrives here as a stream record;
each new request is handed to the delivery executor exactly once per
delivery of the stream record.

Key Components:
- handle_created_request(): Deliver one newly created request
- fail_malformed_record(): Fail a stream record whose image cannot be decoded
- handler(): Lambda entry point for DynamoDB stream batches
"""

import asyncio
from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeDeserializer

from sms_dispatch.delivery.executor import DeliveryExecutor, get_executor
from sms_dispatch.models.response import DeliveryOutcome
from sms_dispatch.models.sms_request import DeliveryStatus, SmsRequest
from sms_dispatch.storage.dynamodb import SmsRequestStore, describe_decode_error, item_to_request
from sms_dispatch.utils.logger import bind_request_context, clear_request_context, get_logger
from sms_dispatch.utils.metrics import MetricsClient, get_metrics_client

logger = get_logger(__name__)

_deserializer = TypeDeserializer()


def image_to_request(image: Dict[str, Any]) -> SmsRequest:
    """Decode a DynamoDB stream NewImage into an SmsRequest."""
    item = {key: _deserializer.deserialize(value) for key, value in image.items()}
    return item_to_request(item)


async def handle_created_request(
    request: SmsRequest,
    executor: DeliveryExecutor,
    metrics_client: Optional[MetricsClient] = None
) -> DeliveryOutcome:
    """
    Deliver a newly created SMS request.

    The stream image is a snapshot taken at insert time, so the stored
    record is re-read first: a redelivered INSERT for a request that has
    since reached a terminal status is skipped without a provider call.
    The returned outcome is informational; the executor has already
    written the terminal status.

    Raises:
        ClientError: If the status lookup or the write-back fails
    """
    current = await executor.store.get_request(request.request_id, consistent=True)
    if current is not None and current.is_terminal():
        request = current

    outcome = await executor.execute(request)

    if metrics_client and not outcome.skipped:
        metrics_client.record_delivery(outcome.success, source="trigger")

    return outcome


async def fail_malformed_record(
    dynamodb: Dict[str, Any],
    exc: Exception,
    store: SmsRequestStore,
    metrics_client: Optional[MetricsClient] = None
) -> DeliveryOutcome:
    """
    Mark the record behind an undecodable stream image as failed.

    The request id is taken from the stream record Keys. Retrying the
    stream record would decode the same image again, so the record is
    failed in place instead.

    Raises:
        The decode error itself when the stream record carries no key
        ClientError: If the write-back fails
    """
    keys = dynamodb.get('Keys') or {}
    if 'request_id' not in keys:
        raise exc

    request_id = _deserializer.deserialize(keys['request_id'])
    error = describe_decode_error(exc)
    bind_request_context(request_id=request_id)

    logger.error("Malformed SMS request in stream, marking failed", error=error)
    applied = await store.mark_failed(request_id, error)

    if metrics_client and applied:
        metrics_client.record_delivery(False, source="trigger")

    return DeliveryOutcome(
        request_id=request_id,
        success=False,
        status=DeliveryStatus.FAILED.value,
        error=error,
        skipped=not applied
    )


async def process_stream_records(
    records: List[Dict[str, Any]],
    executor: DeliveryExecutor,
    metrics_client: Optional[MetricsClient] = None
) -> Dict[str, Any]:
    """
    Process a batch of DynamoDB stream records.

    Only INSERT records are delivered. A record whose image cannot be
    decoded is marked failed by key. A record whose processing raises is
    reported in batchItemFailures so the stream retries it; the others are
    unaffected.

    Returns:
        {"batchItemFailures": [...], "results": [...]}
    """
    batch_failures = []
    results = []

    for record in records:
        if record.get('eventName') != 'INSERT':
            continue

        dynamodb = record.get('dynamodb', {})
        sequence_number = dynamodb.get('SequenceNumber')

        bind_request_context(source="trigger", sequence_number=sequence_number)
        try:
            try:
                request = image_to_request(dynamodb['NewImage'])
            except (KeyError, ValueError, TypeError) as decode_error:
                outcome = await fail_malformed_record(dynamodb, decode_error, executor.store, metrics_client)
            else:
                logger.info("Processing new SMS request from stream", request_id=request.request_id)
                outcome = await handle_created_request(request, executor, metrics_client)

            results.append(outcome.model_dump())

        except Exception as e:
            logger.error(
                "Error processing stream record",
                error=str(e),
                error_type=type(e).__name__
            )
            batch_failures.append({'itemIdentifier': sequence_number})

        finally:
            clear_request_context()

    return {'batchItemFailures': batch_failures, 'results': results}


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for the sms-requests DynamoDB stream.

    Args:
        event: DynamoDB stream event with a batch of records
        context: Lambda context

    Returns:
        Response with batch item failures (if any) and per-request outcomes
    """
    return asyncio.run(
        process_stream_records(
            event.get('Records', []),
            get_executor(),
            get_metrics_client()
        )
    )
