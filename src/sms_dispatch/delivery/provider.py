"""
Module: provider.py
Description: HTTP client for the SMS provider's SendSms API.

Posts rendered SendSms bodies with the fixed provider credential and
converts every outcome, including timeouts and network errors, into a
ProviderResult. Delivery-level failures are never raised.
"""

from typing import Any, Dict, Optional

import httpx

from sms_dispatch.models.provider import UNKNOWN_MESSAGE_ID, ProviderResult, extract_message_id
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)


class SmsProviderClient:
    """
    HTTP client for the SMS provider.

    One POST per call, with no retries: a retried SendSms can deliver the
    same SMS twice.
    """

    def __init__(
        self,
        api_url: str,
        authorization: str,
        timeout_seconds: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the provider client.

        Args:
            api_url: SendSms endpoint URL
            authorization: Authorization header value (e.g. "Basic ...")
            timeout_seconds: HTTP timeout in seconds
            transport: Optional httpx transport override

        Raises:
            ValueError: If api_url or authorization is invalid
        """
        if not api_url or not isinstance(api_url, str):
            raise ValueError("api_url must be a non-empty string")
        if not api_url.startswith(('http://', 'https://')):
            raise ValueError("api_url must be a valid HTTP/HTTPS URL")
        if not authorization or not isinstance(authorization, str):
            raise ValueError("authorization must be a non-empty string")

        self.api_url = api_url
        self._authorization = authorization
        self.timeout = httpx.Timeout(timeout_seconds, connect=timeout_seconds)
        self._transport = transport

        logger.info(
            "SMS provider client initialized",
            api_url=api_url,
            timeout_seconds=timeout_seconds
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': self._authorization,
        }

    async def send(self, payload: Dict[str, Any], request_id: Optional[str] = None) -> ProviderResult:
        """
        POST a SendSms body to the provider.

        Args:
            payload: Rendered SendSms request body
            request_id: SMS request id, for log correlation only

        Returns:
            ProviderResult describing the acknowledgement or the failure
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                logger.debug("Sending SMS to provider", request_id=request_id, api_url=self.api_url)

                response = await client.post(self.api_url, json=payload, headers=self.headers)

            except httpx.TimeoutException:
                logger.warning("SMS provider timeout", request_id=request_id, api_url=self.api_url)
                return ProviderResult(success=False, error="SMS API error: request timed out")

            except httpx.HTTPError as e:
                logger.warning(
                    "SMS provider network error",
                    request_id=request_id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                return ProviderResult(success=False, error=f"SMS API error: {e}")

        return self._interpret(response, request_id)

    def _interpret(self, response: httpx.Response, request_id: Optional[str]) -> ProviderResult:
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            detail = None
            if isinstance(body, dict) and body.get('message'):
                detail = body['message']
            error = f"SMS API error: {response.status_code} - {detail or response.reason_phrase}"

            logger.warning(
                "SMS provider rejected request",
                request_id=request_id,
                status_code=response.status_code,
                response=response.text[:500]
            )
            return ProviderResult(success=False, error=error, status_code=response.status_code)

        if not isinstance(body, dict):
            logger.warning(
                "SMS provider returned malformed body",
                request_id=request_id,
                status_code=response.status_code,
                response=response.text[:500]
            )
            return ProviderResult(
                success=False,
                error="SMS API error: malformed response body",
                status_code=response.status_code
            )

        message_id = extract_message_id(body)

        logger.info(
            "SMS accepted by provider",
            request_id=request_id,
            message_id=message_id,
            status_code=response.status_code
        )
        if message_id == UNKNOWN_MESSAGE_ID:
            logger.warning("Provider acknowledgement carried no message id", request_id=request_id)

        return ProviderResult(
            success=True,
            message_id=message_id,
            response=body,
            status_code=response.status_code
        )
