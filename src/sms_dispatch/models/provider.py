"""
Module: provider.py
Description: SMS provider request/response mapping.

Renders SmsRequest records into the provider's SendSms JSON body and
interprets the provider's acknowledgement. The body layout is a fixed
wire contract and must not change shape.

Key Components:
- DeliveryPolicy: Immutable provider delivery flags
- DELIVERY_POLICY: The single policy used by every entry point
- build_provider_payload(): Render the SendSms body
- extract_message_id(): Pull the provider message id out of a response
- ProviderResult: Outcome of one provider call

Dependencies: pydantic, typing
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from sms_dispatch.models.sms_request import SmsRequest

UNKNOWN_MESSAGE_ID = "unknown"


class DeliveryPolicy(BaseModel):
    """Fixed delivery flags sent with every SMS."""

    model_config = ConfigDict(frozen=True)

    campaign_name: str = "Flight Message System"
    priority: int = 0
    max_segments: int = 0
    ignore_unsubscribe_check: bool = False
    allow_duplicates: bool = False
    shorten_url_enable: bool = False
    track_purchase_data: bool = False


DELIVERY_POLICY = DeliveryPolicy()


class ProviderResult(BaseModel):
    """
    Outcome of a single provider call.

    Attributes:
        success: True when the provider acknowledged the message
        message_id: Provider message id (success only)
        response: Parsed response body (success only)
        error: Error detail string (failure only)
        status_code: HTTP status code, when a response was received
    """

    success: bool = Field(..., description="Whether the provider accepted the SMS")
    message_id: Optional[str] = Field(default=None, description="Provider message id")
    response: Optional[Dict[str, Any]] = Field(default=None, description="Raw provider response")
    error: Optional[str] = Field(default=None, description="Error detail")
    status_code: Optional[int] = Field(default=None, description="HTTP status code")


def build_provider_payload(
    request: SmsRequest,
    policy: DeliveryPolicy = DELIVERY_POLICY,
    default_sender: str = "ELAL"
) -> Dict[str, Any]:
    """
    Render the SendSms request body for an SMS request.

    Message text and phone number are copied verbatim; the sender falls
    back to default_sender when the request carries none.

    Args:
        request: SMS request to render
        policy: Delivery flags
        default_sender: Sender label used when the request has none

    Returns:
        JSON-serializable provider request body
    """
    return {
        'Data': {
            'Message': request.message,
            'Recipients': [
                {'Phone': request.phone_number}
            ],
            'Settings': {
                'Sender': request.sender or default_sender,
                'CampaignName': policy.campaign_name,
                'Priority': policy.priority,
                'MaxSegments': policy.max_segments,
                'IgnoreUnsubscribeCheck': policy.ignore_unsubscribe_check,
                'AllowDuplicates': policy.allow_duplicates,
                'ShortenUrlEnable': policy.shorten_url_enable,
                'TrackPurchaseTData': policy.track_purchase_data,
            }
        }
    }


def _as_message_id(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value:
        return value
    return None


def extract_message_id(body: Dict[str, Any]) -> str:
    """
    Extract the provider message id from a response body.

    Precedence: Data.MessageID, then top-level MessageID, then "unknown".

    Example:
        >>> extract_message_id({"Data": {"MessageID": "A"}, "MessageID": "B"})
        'A'
        >>> extract_message_id({"MessageID": "B"})
        'B'
        >>> extract_message_id({})
        'unknown'
    """
    data = body.get('Data')
    if isinstance(data, dict):
        message_id = _as_message_id(data.get('MessageID'))
        if message_id:
            return message_id

    message_id = _as_message_id(body.get('MessageID'))
    if message_id:
        return message_id

    return UNKNOWN_MESSAGE_ID
