"""
Module: delivery/executor.py
Description: Delivery executor shared by the trigger and recovery paths.

Renders an SMS request into a provider call, interprets the result and
writes exactly one terminal status back to the store.

Key Components:
- DeliveryExecutor: execute() drives one request pending -> sent | failed
- get_executor(): Process-wide executor built from settings
"""

from functools import lru_cache

from sms_dispatch.config.settings import settings
from sms_dispatch.delivery.provider import SmsProviderClient
from sms_dispatch.models.provider import (
    DELIVERY_POLICY,
    DeliveryPolicy,
    ProviderResult,
    build_provider_payload,
)
from sms_dispatch.models.response import DeliveryOutcome
from sms_dispatch.models.sms_request import DeliveryStatus, SmsRequest
from sms_dispatch.storage.dynamodb import SmsRequestStore, get_store
from sms_dispatch.utils.logger import get_logger
from sms_dispatch.utils.redact import mask_phone, preview_message

logger = get_logger(__name__)


def _recorded_outcome(request: SmsRequest) -> DeliveryOutcome:
    """Outcome mirroring a record that already holds a terminal status."""
    return DeliveryOutcome(
        request_id=request.request_id,
        success=request.status == DeliveryStatus.SENT.value,
        status=request.status,
        message_id=request.message_id,
        error=request.error,
        skipped=True
    )


class DeliveryExecutor:
    """
    Drives a single SMS request to a terminal status.

    Provider rejections and transport failures end as a `failed` record and
    are never raised. Store write failures propagate to the caller.
    """

    def __init__(
        self,
        store: SmsRequestStore,
        provider: SmsProviderClient,
        policy: DeliveryPolicy = DELIVERY_POLICY,
        default_sender: str = "ELAL"
    ):
        self.store = store
        self.provider = provider
        self.policy = policy
        self.default_sender = default_sender

    async def execute(self, request: SmsRequest) -> DeliveryOutcome:
        """
        Deliver one SMS request and record its terminal status.

        Args:
            request: SMS request, expected to be pending

        Returns:
            DeliveryOutcome for this request

        Raises:
            ClientError: If the status write-back fails
        """
        if request.is_terminal():
            logger.warning(
                "SMS request already processed, skipping",
                request_id=request.request_id,
                status=request.status
            )
            return _recorded_outcome(request)

        logger.info(
            "Processing SMS request",
            request_id=request.request_id,
            phone_number=mask_phone(request.phone_number),
            message=preview_message(request.message)
        )

        result = await self._deliver(request)

        if result.success:
            applied = await self.store.mark_sent(
                request.request_id,
                result.message_id,
                result.response or {}
            )
            outcome = DeliveryOutcome(
                request_id=request.request_id,
                success=True,
                status=DeliveryStatus.SENT.value,
                message_id=result.message_id,
                skipped=not applied
            )
            logger.info("SMS sent", request_id=request.request_id, message_id=result.message_id)
        else:
            applied = await self.store.mark_failed(request.request_id, result.error)
            outcome = DeliveryOutcome(
                request_id=request.request_id,
                success=False,
                status=DeliveryStatus.FAILED.value,
                error=result.error,
                skipped=not applied
            )
            logger.warning("SMS delivery failed", request_id=request.request_id, error=result.error)

        if not applied:
            outcome = await self._stored_outcome(outcome)

        return outcome

    async def _stored_outcome(self, attempted: DeliveryOutcome) -> DeliveryOutcome:
        # Another run reached the record first; report what it recorded.
        current = await self.store.get_request(attempted.request_id, consistent=True)
        if current is None or not current.is_terminal():
            return attempted.model_copy(update={'skipped': True})
        return _recorded_outcome(current)

    async def _deliver(self, request: SmsRequest) -> ProviderResult:
        # A request without a recipient or body must never end as sent,
        # whatever the provider would answer.
        if not request.phone_number:
            return ProviderResult(success=False, error="SMS API error: missing phone number")
        if not request.message:
            return ProviderResult(success=False, error="SMS API error: missing message body")

        payload = build_provider_payload(request, self.policy, self.default_sender)
        return await self.provider.send(payload, request_id=request.request_id)


@lru_cache(maxsize=1)
def get_executor() -> DeliveryExecutor:
    """Return the process-wide delivery executor built from settings."""
    provider = SmsProviderClient(
        api_url=settings.sms_api_url,
        authorization=settings.sms_api_authorization.get_secret_value(),
        timeout_seconds=settings.delivery_timeout
    )
    return DeliveryExecutor(
        store=get_store(),
        provider=provider,
        default_sender=settings.default_sender
    )
