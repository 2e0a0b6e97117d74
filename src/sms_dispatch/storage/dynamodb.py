"""
Module: dynamodb.py
Description: DynamoDB store for SMS requests.

Provides async operations for creating, retrieving, and querying SMS
requests, and the conditional terminal-status writes used by the
delivery executor.

Key Components:
- SmsRequestStore: Main client class for the sms-requests table
- create_request(): Enqueue a new pending request with a store-assigned key
- query_by_status(): StatusIndex query that also reports undecodable records
- list_requests_by_status(): StatusIndex query with a result cap
- batch_put_requests(): Chunked batch insert for bulk enqueue
- mark_sent() / mark_failed(): One-shot pending -> terminal transitions
- get_store(): Process-wide store instance

Dependencies: boto3, botocore, pydantic, tenacity, datetime, typing
"""

import json
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sms_dispatch.config.settings import settings
from sms_dispatch.models.sms_request import DeliveryStatus, SmsRequest
from sms_dispatch.utils.logger import get_logger
from sms_dispatch.utils.redact import mask_phone

logger = get_logger(__name__)

STATUS_INDEX = 'StatusIndex'

BATCH_WRITE_CHUNK_SIZE = 25

THROTTLING_ERROR_CODES = frozenset({
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as an ISO 8601 UTC string with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def new_request_id() -> str:
    return f"smsreq_{uuid4().hex[:12]}"


def _is_throttling_error(exc: BaseException) -> bool:
    return (
        isinstance(exc, ClientError)
        and exc.response.get('Error', {}).get('Code') in THROTTLING_ERROR_CODES
    )


def _log_retry(retry_state) -> None:
    logger.warning(
        "Retrying throttled DynamoDB write",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception())
    )


# The terminal writes are conditional on `pending`, so repeating a
# throttled write can never apply a second transition.
throttled_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception(_is_throttling_error),
    before_sleep=_log_retry,
    reraise=True
)


def request_to_item(request: SmsRequest) -> Dict[str, Any]:
    """
    Convert an SmsRequest to a DynamoDB item.

    Datetimes become ISO strings, the raw provider response is stored as a
    JSON string to preserve its types, and None values are dropped since
    DynamoDB does not store nulls usefully.
    """
    item = request.model_dump()

    for field in ('created_at', 'processed_at'):
        if item.get(field) is not None:
            item[field] = format_timestamp(item[field])

    if item.get('api_response') is not None:
        item['api_response'] = json.dumps(item['api_response'])

    return {k: v for k, v in item.items() if v is not None}


def item_to_request(item: Dict[str, Any]) -> SmsRequest:
    """Convert a DynamoDB item (or stream image) back to an SmsRequest."""
    item = dict(item)

    if isinstance(item.get('api_response'), str):
        item['api_response'] = json.loads(item['api_response'])

    for field in ('created_at', 'processed_at'):
        if isinstance(item.get(field), str):
            item[field] = parse_timestamp(item[field])

    return SmsRequest(**item)


def describe_decode_error(exc: Exception) -> str:
    """
    Summarize why a stored item could not be decoded.

    Validation errors name the offending fields only; the field values may
    hold a phone number and are kept out of the stored error.
    """
    if isinstance(exc, ValidationError):
        fields = sorted({
            '.'.join(str(part) for part in error['loc']) or 'record'
            for error in exc.errors()
        })
        return f"Malformed SMS request: invalid {', '.join(fields)}"
    return f"Malformed SMS request: {exc}"


class StatusQueryResult(NamedTuple):
    """
    One page of a StatusIndex query.

    `undecodable` holds (request_id, error) pairs for items that were
    returned by the query but could not be loaded as SmsRequest.
    """

    requests: List[SmsRequest]
    undecodable: List[Tuple[str, str]]


class SmsRequestStore:
    """
    DynamoDB store for SMS request operations.

    The table is keyed on request_id and carries a StatusIndex GSI
    (status HASH, created_at RANGE) used to find pending requests.

    Attributes:
        table_name: Name of the DynamoDB sms-requests table
        dynamodb: boto3 DynamoDB resource
        table: boto3 DynamoDB table resource

    Example:
        >>> store = SmsRequestStore(table_name="sms-requests")
        >>> request = await store.create_request("+972501234567", "Flight LY001 delayed")
        >>> await store.mark_sent(request.request_id, "m-1", {"Data": {"MessageID": "m-1"}})
        True
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize the store.

        Args:
            table_name: Name of the DynamoDB sms-requests table
            region_name: AWS region (defaults to the boto3 session region)

        Raises:
            ValueError: If table_name is empty or invalid
        """
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)

        logger.info("SMS request store initialized", table_name=table_name)

    async def put_request(self, request: SmsRequest) -> None:
        """
        Store a new SMS request.

        Refuses to overwrite an existing record with the same key.

        Raises:
            ClientError: If the DynamoDB operation fails
            ValueError: If request is not an SmsRequest
        """
        if not isinstance(request, SmsRequest):
            raise ValueError("request must be an SmsRequest instance")

        try:
            self.table.put_item(
                Item=request_to_item(request),
                ConditionExpression='attribute_not_exists(request_id)'
            )

            logger.info(
                "SMS request stored in DynamoDB",
                request_id=request.request_id,
                status=request.status,
                phone_number=mask_phone(request.phone_number),
                table_name=self.table_name
            )

        except ClientError as e:
            logger.error(
                "Failed to store SMS request in DynamoDB",
                request_id=request.request_id,
                table_name=self.table_name,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

    async def create_request(
        self,
        phone_number: str,
        message: str,
        sender: Optional[str] = None
    ) -> SmsRequest:
        """
        Enqueue a new pending SMS request with a store-assigned key.

        Args:
            phone_number: Recipient phone number
            message: Message body
            sender: Optional sender label

        Returns:
            The stored SmsRequest
        """
        request = SmsRequest(
            request_id=new_request_id(),
            phone_number=phone_number,
            message=message,
            sender=sender,
            status=DeliveryStatus.PENDING,
            created_at=utc_now()
        )
        await self.put_request(request)
        return request

    async def get_request(
        self,
        request_id: str,
        consistent: bool = False
    ) -> Optional[SmsRequest]:
        """
        Retrieve an SMS request by ID.

        Args:
            request_id: SMS request identifier
            consistent: Use a strongly consistent read, so a transition
                written moments ago is visible

        Returns:
            SmsRequest if found, None otherwise

        Raises:
            ClientError: If the DynamoDB operation fails
            ValueError: If request_id is invalid
        """
        if not request_id or not isinstance(request_id, str):
            raise ValueError("request_id must be a non-empty string")

        try:
            response = self.table.get_item(
                Key={'request_id': request_id},
                ConsistentRead=consistent
            )
        except ClientError as e:
            logger.error(
                "Failed to retrieve SMS request from DynamoDB",
                request_id=request_id,
                table_name=self.table_name,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        if 'Item' not in response:
            logger.warning(
                "SMS request not found in DynamoDB",
                request_id=request_id,
                table_name=self.table_name
            )
            return None

        return item_to_request(response['Item'])

    async def query_by_status(
        self,
        status: str,
        limit: int = 10
    ) -> StatusQueryResult:
        """
        Query one page of SMS requests in a given status, oldest first.

        Queries the StatusIndex GSI for at most `limit` items. Items that
        cannot be decoded are not dropped: they are returned by key with
        their decode error, so the caller can fail them instead of letting
        them occupy the page on every run.

        Args:
            status: Status to filter by (pending, sent, failed)
            limit: Maximum number of items to read (1-100)

        Raises:
            ClientError: If the DynamoDB query fails
            ValueError: If parameters are invalid
        """
        valid_statuses = [s.value for s in DeliveryStatus]
        if status not in valid_statuses:
            raise ValueError(f"status must be one of: {', '.join(valid_statuses)}")
        if limit <= 0 or limit > 100:
            raise ValueError("limit must be between 1 and 100")

        try:
            response = self.table.query(
                IndexName=STATUS_INDEX,
                KeyConditionExpression='#status = :status',
                ExpressionAttributeNames={'#status': 'status'},
                ExpressionAttributeValues={':status': status},
                ScanIndexForward=True,
                Limit=limit
            )
        except ClientError as e:
            logger.error(
                "Failed to query SMS requests by status",
                status=status,
                table_name=self.table_name,
                error_code=e.response['Error']['Code'],
                error_message=e.response['Error']['Message']
            )
            raise

        requests = []
        undecodable = []
        for item in response.get('Items', []):
            try:
                requests.append(item_to_request(item))
            except (ValueError, TypeError) as e:
                error = describe_decode_error(e)
                logger.error(
                    "Undecodable SMS request in status query",
                    request_id=item.get('request_id'),
                    error=error
                )
                if item.get('request_id'):
                    undecodable.append((str(item['request_id']), error))

        logger.info(
            "SMS requests queried by status",
            status=status,
            count=len(requests),
            undecodable=len(undecodable),
            limit=limit,
            table_name=self.table_name
        )

        return StatusQueryResult(requests=requests, undecodable=undecodable)

    async def list_requests_by_status(
        self,
        status: str,
        limit: int = 10
    ) -> List[SmsRequest]:
        """
        List SMS requests in a given status, oldest first.

        Returns at most `limit` decodable records; undecodable items are
        logged by query_by_status() and left out of the listing.

        Raises:
            ClientError: If the DynamoDB query fails
            ValueError: If parameters are invalid
        """
        result = await self.query_by_status(status, limit)
        return result.requests

    async def batch_put_requests(self, requests: List[SmsRequest]) -> Dict[str, Any]:
        """
        Store multiple new SMS requests with internal chunking.

        Writes in chunks of 25 (the batch_write_item limit) and keeps going
        when a chunk fails. Items DynamoDB leaves unprocessed are reported
        as failed.

        Args:
            requests: SmsRequest models to store (at most 100)

        Returns:
            Dict with 'successful_request_ids' list and 'failed_items' list
            of {"request_id", "reason"}

        Raises:
            ValueError: If the requests list is invalid
        """
        if not isinstance(requests, list):
            raise ValueError("requests must be a list")
        if not requests:
            return {"successful_request_ids": [], "failed_items": []}
        if len(requests) > 100:
            raise ValueError("batch size cannot exceed 100 requests")
        for request in requests:
            if not isinstance(request, SmsRequest):
                raise ValueError("all items must be SmsRequest instances")

        successful_request_ids = []
        failed_items = []

        for start in range(0, len(requests), BATCH_WRITE_CHUNK_SIZE):
            chunk = requests[start:start + BATCH_WRITE_CHUNK_SIZE]
            try:
                response = self.dynamodb.batch_write_item(
                    RequestItems={
                        self.table_name: [
                            {'PutRequest': {'Item': request_to_item(request)}}
                            for request in chunk
                        ]
                    }
                )
            except ClientError as e:
                logger.error(
                    "Failed to batch write SMS requests",
                    chunk_start=start,
                    chunk_size=len(chunk),
                    table_name=self.table_name,
                    error_code=e.response['Error']['Code'],
                    error_message=e.response['Error']['Message']
                )
                failed_items.extend(
                    {"request_id": request.request_id,
                     "reason": f"DynamoDB error: {e.response['Error']['Message']}"}
                    for request in chunk
                )
                continue

            unprocessed_ids = {
                entry.get('PutRequest', {}).get('Item', {}).get('request_id')
                for entry in response.get('UnprocessedItems', {}).get(self.table_name, [])
            }
            if unprocessed_ids:
                logger.warning(
                    "Some SMS requests not processed in batch write",
                    chunk_start=start,
                    unprocessed_count=len(unprocessed_ids),
                    table_name=self.table_name
                )

            for request in chunk:
                if request.request_id in unprocessed_ids:
                    failed_items.append({
                        "request_id": request.request_id,
                        "reason": "Unprocessed by DynamoDB"
                    })
                else:
                    successful_request_ids.append(request.request_id)

        logger.info(
            "Batch put SMS requests completed",
            total=len(requests),
            successful=len(successful_request_ids),
            failed=len(failed_items),
            table_name=self.table_name
        )

        return {
            "successful_request_ids": successful_request_ids,
            "failed_items": failed_items
        }

    async def mark_sent(
        self,
        request_id: str,
        message_id: str,
        api_response: Dict[str, Any]
    ) -> bool:
        """
        Transition a pending request to `sent`.

        Returns:
            True if the transition was applied, False if the request was
            no longer pending

        Raises:
            ClientError: If the write fails for any other reason
        """
        return self._transition(
            request_id,
            DeliveryStatus.SENT,
            {
                'message_id': message_id,
                'api_response': json.dumps(api_response),
            }
        )

    async def mark_failed(self, request_id: str, error: str) -> bool:
        """
        Transition a pending request to `failed`.

        Returns:
            True if the transition was applied, False if the request was
            no longer pending

        Raises:
            ClientError: If the write fails for any other reason
        """
        return self._transition(request_id, DeliveryStatus.FAILED, {'error': error})

    def _transition(
        self,
        request_id: str,
        status: DeliveryStatus,
        fields: Dict[str, Any]
    ) -> bool:
        if not request_id or not isinstance(request_id, str):
            raise ValueError("request_id must be a non-empty string")

        fields = dict(fields, processed_at=format_timestamp(utc_now()))

        try:
            self._conditional_update(request_id, status, fields)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code == 'ConditionalCheckFailedException':
                logger.warning(
                    "SMS request no longer pending, transition skipped",
                    request_id=request_id,
                    target_status=status.value,
                    table_name=self.table_name
                )
                return False

            logger.error(
                "Failed to update SMS request status",
                request_id=request_id,
                target_status=status.value,
                table_name=self.table_name,
                error_code=error_code,
                error_message=e.response['Error']['Message']
            )
            raise

        logger.info(
            "SMS request status updated",
            request_id=request_id,
            status=status.value,
            table_name=self.table_name
        )
        return True

    @throttled_write_retry
    def _conditional_update(
        self,
        request_id: str,
        status: DeliveryStatus,
        fields: Dict[str, Any]
    ) -> None:
        # Every attribute is aliased: `error` is a DynamoDB reserved word.
        assignments = ['#status = :status']
        names = {'#status': 'status'}
        values: Dict[str, Any] = {
            ':status': status.value,
            ':pending': DeliveryStatus.PENDING.value,
        }
        for name, value in fields.items():
            assignments.append(f"#f_{name} = :{name}")
            names[f"#f_{name}"] = name
            values[f":{name}"] = value

        self.table.update_item(
            Key={'request_id': request_id},
            UpdateExpression='SET ' + ', '.join(assignments),
            ConditionExpression='#status = :pending',
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values
        )


@lru_cache(maxsize=1)
def get_store() -> SmsRequestStore:
    """
    Return the process-wide SMS request store.

    Created once per process (Lambda container) and reused across
    invocations.
    """
    return SmsRequestStore(
        table_name=settings.sms_requests_table_name,
        region_name=settings.aws_region
    )
