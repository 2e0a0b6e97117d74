"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the SMS dispatch service:
- SmsRequest: Stored SMS request with delivery state
- CreateSmsRequest: API request model for enqueueing an SMS
- DeliveryPolicy / ProviderResult: Provider request and response mapping
- DeliveryOutcome / RecoveryResponse: Pipeline results

All models are exported here for convenient importing.
"""

from .sms_request import CreateSmsRequest, DeliveryStatus, SmsRequest
from .provider import DELIVERY_POLICY, DeliveryPolicy, ProviderResult
from .response import DeliveryOutcome, RecoveryItemResult, RecoveryResponse, SmsRequestResponse

__all__ = [
    "SmsRequest",
    "CreateSmsRequest",
    "DeliveryStatus",
    "DeliveryPolicy",
    "DELIVERY_POLICY",
    "ProviderResult",
    "DeliveryOutcome",
    "RecoveryItemResult",
    "RecoveryResponse",
    "SmsRequestResponse",
]
