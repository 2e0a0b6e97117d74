"""
Module: recovery.py
Description: Batch recovery of SMS requests stuck in `pending`.

Operator-triggered sweep for requests the stream trigger never finished
(trigger not fired, or a run crashed before writing a terminal status).
Each invocation handles a small, fixed batch; one failing request never
stops the rest of the batch. Pending records that cannot be decoded are
failed with the decode error so they stop occupying the batch.

Key Components:
- process_pending_requests(): The recovery job
- POST /sms-requests/process-pending: Authenticated HTTP entry point

Dependencies: FastAPI, typing, models, storage, delivery, auth
"""

from typing import Optional

from fastapi import APIRouter, Depends

from sms_dispatch.auth.identity import get_caller_identity
from sms_dispatch.delivery.executor import DeliveryExecutor, get_executor
from sms_dispatch.errors import AuthorizationError, RecoveryError
from sms_dispatch.models.response import RecoveryItemResult, RecoveryResponse
from sms_dispatch.models.sms_request import DeliveryStatus
from sms_dispatch.storage.dynamodb import SmsRequestStore, get_store
from sms_dispatch.utils.logger import bind_request_context, clear_request_context, get_logger
from sms_dispatch.utils.metrics import MetricsClient, get_metrics_client

router = APIRouter(prefix="/sms-requests", tags=["recovery"])
logger = get_logger(__name__)

RECOVERY_BATCH_SIZE = 10


async def _record_failure(store: SmsRequestStore, request_id: str, error: str) -> None:
    """Best-effort write of a `failed` status; a write error is logged, not raised."""
    try:
        await store.mark_failed(request_id, error)
    except Exception as write_error:
        logger.error(
            "Failed to record recovery failure",
            request_id=request_id,
            error=str(write_error)
        )


async def process_pending_requests(
    caller_id: Optional[str],
    store: SmsRequestStore,
    executor: DeliveryExecutor,
    metrics_client: Optional[MetricsClient] = None
) -> RecoveryResponse:
    """
    Deliver up to RECOVERY_BATCH_SIZE pending SMS requests.

    Args:
        caller_id: Authenticated operator identity
        store: SMS request store
        executor: Delivery executor
        metrics_client: Optional CloudWatch metrics client

    Returns:
        RecoveryResponse with the count and per-request outcomes

    Raises:
        AuthorizationError: If caller_id is missing; nothing is read
        RecoveryError: If the pending query itself fails
    """
    if not caller_id:
        logger.warning("Recovery invoked without authentication")
        raise AuthorizationError()

    try:
        page = await store.query_by_status(
            DeliveryStatus.PENDING.value,
            limit=RECOVERY_BATCH_SIZE
        )
    except Exception as e:
        logger.error("Failed to query pending SMS requests", error=str(e), operator_id=caller_id)
        raise RecoveryError(str(e)) from e

    logger.info(
        "Recovering pending SMS requests",
        count=len(page.requests),
        undecodable=len(page.undecodable),
        operator_id=caller_id
    )

    results = []
    for request_id, error in page.undecodable:
        bind_request_context(source="recovery", operator_id=caller_id, request_id=request_id)
        try:
            await _record_failure(store, request_id, error)
            results.append(RecoveryItemResult(id=request_id, status=DeliveryStatus.FAILED.value, error=error))
        finally:
            clear_request_context()

    for request in page.requests:
        bind_request_context(source="recovery", operator_id=caller_id)
        try:
            outcome = await executor.execute(request)
            results.append(RecoveryItemResult.from_outcome(outcome))

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(
                "Error recovering SMS request",
                request_id=request.request_id,
                error=error,
                error_type=type(e).__name__
            )
            await _record_failure(store, request.request_id, error)
            results.append(
                RecoveryItemResult(id=request.request_id, status=DeliveryStatus.FAILED.value, error=error)
            )

        finally:
            clear_request_context()

    sent = sum(1 for result in results if result.status == DeliveryStatus.SENT.value)

    logger.info(
        "Recovery batch completed",
        processed=len(results),
        sent=sent,
        failed=len(results) - sent,
        operator_id=caller_id
    )

    if metrics_client:
        metrics_client.record_recovery_batch(processed=len(results), failed=len(results) - sent)

    return RecoveryResponse(success=True, processed=len(results), results=results)


@router.post("/process-pending", response_model=RecoveryResponse)
async def process_pending(
    caller_id: Optional[str] = Depends(get_caller_identity),
    store: SmsRequestStore = Depends(get_store),
    executor: DeliveryExecutor = Depends(get_executor),
    metrics_client: MetricsClient = Depends(get_metrics_client)
) -> RecoveryResponse:
    """
    Run one recovery batch.

    Example:
        POST /sms-requests/process-pending
        Authorization: Bearer sk_...

        Response (200):
        {
            "success": true,
            "processed": 1,
            "results": [{"id": "smsreq_a1b2c3d4e5f6", "status": "sent", "message_id": "m-1", "error": null}]
        }

    Raises:
        AuthorizationError: 401 when unauthenticated
        RecoveryError: 500 when the pending query fails
    """
    return await process_pending_requests(caller_id, store, executor, metrics_client)
