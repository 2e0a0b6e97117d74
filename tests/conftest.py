"""
Module: conftest.py
Description: Shared pytest fixtures for SMS dispatch tests.

Provides mocked DynamoDB tables (moto), a store and provider client wired
to test configuration, and helpers for seeding SMS requests.
"""

import os
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from moto import mock_aws

# moto must never see real credentials
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from sms_dispatch.delivery.executor import DeliveryExecutor  # noqa: E402
from sms_dispatch.delivery.provider import SmsProviderClient  # noqa: E402
from sms_dispatch.models.sms_request import SmsRequest  # noqa: E402
from sms_dispatch.storage.dynamodb import SmsRequestStore, request_to_item  # noqa: E402

from tests.constants import API_KEYS_TABLE, PROVIDER_AUTH, PROVIDER_URL, REGION, SMS_TABLE  # noqa: E402


def create_sms_requests_table(dynamodb):
    """Create the sms-requests table with the production schema."""
    return dynamodb.create_table(
        TableName=SMS_TABLE,
        KeySchema=[
            {'AttributeName': 'request_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'request_id', 'AttributeType': 'S'},
            {'AttributeName': 'status', 'AttributeType': 'S'},
            {'AttributeName': 'created_at', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'StatusIndex',
                'KeySchema': [
                    {'AttributeName': 'status', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def aws():
    """Activate moto for the duration of a test."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name=REGION)


@pytest.fixture
def sms_table(aws):
    """Mock sms-requests table."""
    return create_sms_requests_table(aws)


@pytest.fixture
def api_keys_table(aws):
    """Mock API keys table."""
    return aws.create_table(
        TableName=API_KEYS_TABLE,
        KeySchema=[{'AttributeName': 'key_id', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'key_id', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def store(sms_table):
    """SmsRequestStore bound to the mock table."""
    return SmsRequestStore(table_name=SMS_TABLE, region_name=REGION)


@pytest.fixture
def provider_client():
    """Provider client pointed at the mocked SMS endpoint."""
    return SmsProviderClient(api_url=PROVIDER_URL, authorization=PROVIDER_AUTH, timeout_seconds=1)


@pytest.fixture
def executor(store, provider_client):
    """Delivery executor wired to the mock table and mocked provider."""
    return DeliveryExecutor(store=store, provider=provider_client)


@pytest.fixture
def seed_request(store):
    """
    Factory fixture that writes an SMS request straight into the table.

    Requests seeded one after another get increasing created_at values so
    the StatusIndex order is deterministic.
    """
    counter = {'n': 0}
    base = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

    def _seed(request_id=None, **fields) -> SmsRequest:
        counter['n'] += 1
        values = {
            'request_id': request_id or f"smsreq_test{counter['n']:08d}",
            'phone_number': "+972501234567",
            'message': "Flight LY001 delayed",
            'status': "pending",
            'created_at': base + timedelta(seconds=counter['n']),
        }
        values.update(fields)
        request = SmsRequest(**values)
        store.table.put_item(Item=request_to_item(request))
        return request

    return _seed


@pytest.fixture
def sample_request():
    """A pending SMS request that is not stored anywhere."""
    return SmsRequest(
        request_id="smsreq_sample000001",
        phone_number="+972501234567",
        message="Flight LY001 delayed",
        status="pending",
        created_at=datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
    )
