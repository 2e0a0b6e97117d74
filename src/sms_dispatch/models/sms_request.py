"""
Module: sms_request.py
Description: SMS request data models for the dispatch pipeline.

Defines the SmsRequest model, the persisted unit of work that carries one
outbound flight notification from `pending` to a terminal status.

Key Components:
- DeliveryStatus: Enum for delivery lifecycle states
- SmsRequest: Stored SMS request with delivery bookkeeping
- CreateSmsRequest: API request model for enqueueing a new SMS
- BatchCreateSmsRequest: API request model for enqueueing one message to many recipients

Dependencies: pydantic, datetime, typing
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeliveryStatus(str, Enum):
    """Delivery lifecycle states. `sent` and `failed` are terminal."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({DeliveryStatus.SENT, DeliveryStatus.FAILED})

PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9 \-]{5,19}$')


class SmsRequest(BaseModel):
    """
    A queued outbound SMS and its delivery state.

    Records are written by the composing side in `pending` state and
    transitioned exactly once to `sent` or `failed`. Phone number and
    message are optional on this read model so that a malformed record can
    still be loaded and failed rather than crash the pipeline.

    Attributes:
        request_id: Store-assigned record key
        phone_number: Recipient phone number
        message: Message body
        sender: Optional sender label (provider default applies when absent)
        status: Delivery status (pending, sent, failed)
        message_id: Provider message identifier (set on sent)
        error: Error detail (set on failed)
        api_response: Raw provider response (set on sent)
        created_at: Timestamp when the request was enqueued
        processed_at: Timestamp of the terminal transition
    """

    model_config = ConfigDict(use_enum_values=True)

    request_id: str = Field(
        ...,
        min_length=1,
        description="Unique SMS request identifier"
    )
    phone_number: Optional[str] = Field(
        default=None,
        description="Recipient phone number"
    )
    message: Optional[str] = Field(
        default=None,
        description="Message body"
    )
    sender: Optional[str] = Field(
        default=None,
        description="Sender label"
    )
    status: DeliveryStatus = Field(
        default=DeliveryStatus.PENDING,
        validate_default=True,
        description="Delivery status"
    )
    message_id: Optional[str] = Field(
        default=None,
        description="Provider message identifier"
    )
    error: Optional[str] = Field(
        default=None,
        description="Delivery error detail"
    )
    api_response: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Raw provider response payload"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="Enqueue timestamp"
    )
    processed_at: Optional[datetime] = Field(
        default=None,
        description="Terminal transition timestamp"
    )

    def is_terminal(self) -> bool:
        """Return True once the request is sent or failed."""
        return DeliveryStatus(self.status) in TERMINAL_STATUSES


class CreateSmsRequest(BaseModel):
    """
    Request model for enqueueing a new SMS.

    Example:
        {
            "phone_number": "+972501234567",
            "message": "Flight LY001 delayed",
            "sender": "ELAL"
        }
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    phone_number: str = Field(
        ...,
        min_length=1,
        description="Recipient phone number"
    )
    message: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Message body"
    )
    sender: Optional[str] = Field(
        default=None,
        max_length=11,
        description="Optional sender label"
    )

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        """Validate the phone number looks dialable."""
        if not PHONE_PATTERN.match(v):
            raise ValueError(
                "phone_number must contain only digits, spaces and dashes, optionally prefixed with '+'"
            )
        return v


class BatchCreateSmsRequest(BaseModel):
    """
    Request model for enqueueing one message to many recipients.

    Recipients are validated one by one when the batch is processed, so a
    bad number fails its own entry instead of the whole request.

    Example:
        {
            "phone_numbers": ["+972501234567", "+972502222222"],
            "message": "Flight LY001 delayed",
            "sender": "ELAL"
        }
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    phone_numbers: List[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Recipient phone numbers (1-100)"
    )
    message: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Message body sent to every recipient"
    )
    sender: Optional[str] = Field(
        default=None,
        max_length=11,
        description="Optional sender label"
    )
