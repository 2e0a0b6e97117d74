"""
Module: response.py
Description: Outcome and API response models for the dispatch pipeline.

Key Components:
- DeliveryOutcome: Result of executing one SMS request
- RecoveryItemResult: Per-record entry of a recovery batch
- RecoveryResponse: Aggregated recovery batch result
- SmsRequestResponse: API representation of a stored SMS request
- BatchCreateItemResult / BatchCreateResponse: Per-entry results of a batch enqueue

Dependencies: pydantic, datetime, typing
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sms_dispatch.models.sms_request import SmsRequest


class DeliveryOutcome(BaseModel):
    """
    Result of running one SMS request through the delivery executor.

    `success` reports whether the SMS was delivered to the provider.
    `skipped` is set when no write happened because the record was
    already terminal.
    """

    request_id: str = Field(..., description="SMS request identifier")
    success: bool = Field(..., description="Whether the provider accepted the SMS")
    status: str = Field(..., description="Terminal status of the record")
    message_id: Optional[str] = Field(default=None, description="Provider message id")
    error: Optional[str] = Field(default=None, description="Error detail")
    skipped: bool = Field(default=False, description="True when the record was already terminal")


class RecoveryItemResult(BaseModel):
    """Outcome of one record in a recovery batch."""

    id: str = Field(..., description="SMS request identifier")
    status: str = Field(..., description="Terminal status (sent or failed)")
    message_id: Optional[str] = Field(default=None, description="Provider message id")
    error: Optional[str] = Field(default=None, description="Error detail")

    @classmethod
    def from_outcome(cls, outcome: DeliveryOutcome) -> "RecoveryItemResult":
        """Build a batch entry from an executor outcome."""
        if outcome.status == "sent":
            return cls(id=outcome.request_id, status=outcome.status, message_id=outcome.message_id)
        return cls(id=outcome.request_id, status=outcome.status, error=outcome.error)


class RecoveryResponse(BaseModel):
    """
    Aggregated result of a recovery batch.

    Example:
        {
            "success": true,
            "processed": 2,
            "results": [
                {"id": "smsreq_a1b2c3d4e5f6", "status": "sent", "message_id": "m-1"},
                {"id": "smsreq_f6e5d4c3b2a1", "status": "failed", "error": "SMS API error: 500 - Internal Server Error"}
            ]
        }
    """

    success: bool = Field(default=True, description="Whether the batch ran")
    processed: int = Field(..., ge=0, description="Number of records processed")
    results: List[RecoveryItemResult] = Field(default_factory=list, description="Per-record outcomes")


class SmsRequestResponse(BaseModel):
    """API response model for a stored SMS request."""

    request_id: str
    phone_number: Optional[str] = None
    message: Optional[str] = None
    sender: Optional[str] = None
    status: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    api_response: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def from_request(cls, request: SmsRequest) -> "SmsRequestResponse":
        return cls(**request.model_dump())


class BatchItemError(BaseModel):
    """Error information for a failed batch entry."""

    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error description")


class BatchCreateItemResult(BaseModel):
    """
    Result for a single recipient of a batch enqueue.

    Index corresponds to the position in the request's phone_numbers.
    `request` is present on success, `error` on failure.
    """

    index: int = Field(..., ge=0, description="Position in the original phone_numbers array (0-based)")
    success: bool = Field(..., description="Whether this entry was enqueued")
    request: Optional[SmsRequestResponse] = Field(default=None, description="Enqueued SMS request")
    error: Optional[BatchItemError] = Field(default=None, description="Error information")


class BatchOperationSummary(BaseModel):
    """Summary statistics for a batch operation."""

    total: int = Field(..., ge=0, description="Total number of entries")
    successful: int = Field(..., ge=0, description="Number of entries enqueued")
    failed: int = Field(..., ge=0, description="Number of entries that failed")


class BatchCreateResponse(BaseModel):
    """
    Response for a batch enqueue.

    Example:
        {
            "results": [
                {"index": 0, "success": true, "request": {"request_id": "smsreq_a1b2c3d4e5f6", ...}, "error": null},
                {"index": 1, "success": false, "request": null,
                 "error": {"code": "VALIDATION_ERROR", "message": "phone_number must contain only digits..."}}
            ],
            "summary": {"total": 2, "successful": 1, "failed": 1}
        }
    """

    results: List[BatchCreateItemResult] = Field(..., description="Per-entry results in request order")
    summary: BatchOperationSummary = Field(..., description="Batch statistics")
