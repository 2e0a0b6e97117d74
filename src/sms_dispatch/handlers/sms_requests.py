"""
Module: sms_requests.py
Description: SMS request enqueue and lookup endpoints.

Enqueueing only writes a pending record; delivery is always performed by
the stream trigger. Lookups let operators inspect failed requests and
their stored error.

Key Components:
- POST /sms-requests: Enqueue a new SMS
- POST /sms-requests/batch: Enqueue one message for many recipients
- GET /sms-requests: List requests by status
- GET /sms-requests/{request_id}: Retrieve one request

Dependencies: FastAPI, pydantic, typing, models, storage, auth
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as status_codes
from pydantic import ValidationError

from sms_dispatch.auth.identity import require_caller
from sms_dispatch.errors import RequestNotFoundError
from sms_dispatch.models.response import (
    BatchCreateItemResult,
    BatchCreateResponse,
    BatchItemError,
    BatchOperationSummary,
    SmsRequestResponse,
)
from sms_dispatch.models.sms_request import (
    BatchCreateSmsRequest,
    CreateSmsRequest,
    DeliveryStatus,
    SmsRequest,
)
from sms_dispatch.storage.dynamodb import SmsRequestStore, get_store, new_request_id, utc_now
from sms_dispatch.utils.logger import get_logger
from sms_dispatch.utils.redact import mask_phone

router = APIRouter(prefix="/sms-requests", tags=["sms-requests"])
logger = get_logger(__name__)


@router.post("", status_code=status_codes.HTTP_201_CREATED, response_model=SmsRequestResponse)
async def create_sms_request(
    request: CreateSmsRequest,
    caller_id: str = Depends(require_caller),
    store: SmsRequestStore = Depends(get_store)
) -> SmsRequestResponse:
    """
    Enqueue a new SMS request in `pending` state.

    Example:
        POST /sms-requests
        {"phone_number": "+972501234567", "message": "Flight LY001 delayed"}

        Response (201 Created):
        {"request_id": "smsreq_a1b2c3d4e5f6", "status": "pending", ...}
    """
    try:
        sms_request = await store.create_request(
            phone_number=request.phone_number,
            message=request.message,
            sender=request.sender
        )
    except Exception as e:
        logger.error(
            "Failed to enqueue SMS request",
            error=str(e),
            phone_number=mask_phone(request.phone_number),
            operator_id=caller_id
        )
        raise HTTPException(
            status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to enqueue SMS request"
        )

    logger.info("SMS request enqueued", request_id=sms_request.request_id, operator_id=caller_id)
    return SmsRequestResponse.from_request(sms_request)


@router.post("/batch", status_code=status_codes.HTTP_201_CREATED, response_model=BatchCreateResponse)
async def batch_create_sms_requests(
    request: BatchCreateSmsRequest,
    caller_id: str = Depends(require_caller),
    store: SmsRequestStore = Depends(get_store)
) -> BatchCreateResponse:
    """
    Enqueue one message for many recipients.

    Each recipient becomes its own pending SMS request. Entries are
    validated and stored independently: an invalid phone number or a
    failed write is reported for that entry and the rest are enqueued.

    Example:
        POST /sms-requests/batch
        {
            "phone_numbers": ["+972501234567", "not a phone"],
            "message": "Flight LY001 delayed"
        }

        Response (201 Created):
        {
            "results": [
                {"index": 0, "success": true, "request": {"request_id": "smsreq_a1b2c3d4e5f6", ...}, "error": null},
                {"index": 1, "success": false, "request": null, "error": {"code": "VALIDATION_ERROR", ...}}
            ],
            "summary": {"total": 2, "successful": 1, "failed": 1}
        }
    """
    logger.info("Starting batch enqueue", batch_size=len(request.phone_numbers), operator_id=caller_id)

    results: List[BatchCreateItemResult] = []
    to_store: List[SmsRequest] = []
    index_map: Dict[str, int] = {}
    created_at = utc_now()

    for idx, phone_number in enumerate(request.phone_numbers):
        try:
            entry = CreateSmsRequest(
                phone_number=phone_number,
                message=request.message,
                sender=request.sender
            )
        except ValidationError as e:
            logger.warning(
                "Invalid batch entry",
                index=idx,
                phone_number=mask_phone(phone_number),
                operator_id=caller_id
            )
            results.append(BatchCreateItemResult(
                index=idx,
                success=False,
                error=BatchItemError(code="VALIDATION_ERROR", message=e.errors()[0]['msg'])
            ))
            continue

        sms_request = SmsRequest(
            request_id=new_request_id(),
            phone_number=entry.phone_number,
            message=entry.message,
            sender=entry.sender,
            status=DeliveryStatus.PENDING,
            created_at=created_at
        )
        to_store.append(sms_request)
        index_map[sms_request.request_id] = idx

    if to_store:
        stored = await store.batch_put_requests(to_store)
        successful_ids = set(stored["successful_request_ids"])

        for failed_item in stored["failed_items"]:
            results.append(BatchCreateItemResult(
                index=index_map[failed_item["request_id"]],
                success=False,
                error=BatchItemError(code="STORAGE_ERROR", message=failed_item["reason"])
            ))

        for sms_request in to_store:
            if sms_request.request_id in successful_ids:
                results.append(BatchCreateItemResult(
                    index=index_map[sms_request.request_id],
                    success=True,
                    request=SmsRequestResponse.from_request(sms_request)
                ))

    results.sort(key=lambda result: result.index)
    successful = sum(1 for result in results if result.success)

    logger.info(
        "Batch enqueue completed",
        total=len(results),
        successful=successful,
        failed=len(results) - successful,
        operator_id=caller_id
    )

    return BatchCreateResponse(
        results=results,
        summary=BatchOperationSummary(
            total=len(results),
            successful=successful,
            failed=len(results) - successful
        )
    )


@router.get("", response_model=List[SmsRequestResponse])
async def list_sms_requests(
    status: DeliveryStatus = Query(default=DeliveryStatus.FAILED),
    limit: int = Query(default=50, ge=1, le=100),
    caller_id: str = Depends(require_caller),
    store: SmsRequestStore = Depends(get_store)
) -> List[SmsRequestResponse]:
    """List SMS requests in a given status, oldest first."""
    try:
        requests = await store.list_requests_by_status(status.value, limit=limit)
    except Exception as e:
        logger.error("Failed to list SMS requests", status=status.value, error=str(e))
        raise HTTPException(
            status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list SMS requests"
        )

    return [SmsRequestResponse.from_request(request) for request in requests]


@router.get("/{request_id}", response_model=SmsRequestResponse)
async def get_sms_request(
    request_id: str,
    caller_id: str = Depends(require_caller),
    store: SmsRequestStore = Depends(get_store)
) -> SmsRequestResponse:
    """Retrieve one SMS request with its delivery state."""
    sms_request = await store.get_request(request_id)
    if sms_request is None:
        raise RequestNotFoundError(f"SMS request {request_id} not found")

    return SmsRequestResponse.from_request(sms_request)
