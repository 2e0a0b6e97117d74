"""
Module: test_delivery_flow.py
Description: Integration tests for the SMS delivery pipeline.

Exercises the full path from an enqueued request through the stream
trigger, and the recovery sweep through the HTTP API as it runs behind API
Gateway, with DynamoDB mocked by moto and the provider by pytest-httpx.
"""

from unittest.mock import MagicMock

import httpx
import pytest
from boto3.dynamodb.types import TypeSerializer
from fastapi.testclient import TestClient

from sms_dispatch.auth.api_key import get_api_key_validator
from sms_dispatch.delivery.executor import get_executor
from sms_dispatch.handlers.trigger import process_stream_records
from sms_dispatch.main import app, handler
from sms_dispatch.storage.dynamodb import get_store, request_to_item
from sms_dispatch.utils.metrics import get_metrics_client
from tests.constants import PROVIDER_URL

_serializer = TypeSerializer()


def insert_event(*requests):
    return [
        {
            'eventName': 'INSERT',
            'dynamodb': {
                'SequenceNumber': str(100 + n),
                'NewImage': {k: _serializer.serialize(v) for k, v in request_to_item(r).items()}
            }
        }
        for n, r in enumerate(requests)
    ]


def behind_api_gateway(asgi_app, authorizer=None):
    """Expose the app the way Mangum does, with the API Gateway event on the scope."""
    event = {'requestContext': {'stage': 'api'}}
    if authorizer is not None:
        event['requestContext']['authorizer'] = authorizer

    async def wrapped(scope, receive, send):
        if scope['type'] == 'http':
            scope = {**scope, 'aws.event': event}
        await asgi_app(scope, receive, send)

    return TestClient(wrapped)


class TestTriggerFlow:
    """Created request -> stream trigger -> terminal record."""

    @pytest.mark.asyncio
    async def test_created_request_is_sent(self, store, executor, sms_table, httpx_mock):
        request = await store.create_request("+972501234567", "Flight LY001 delayed")
        httpx_mock.add_response(url=PROVIDER_URL, method="POST", json={'Data': {'MessageID': "m-1"}})

        result = await process_stream_records(insert_event(request), executor)

        assert result['batchItemFailures'] == []
        stored = await store.get_request(request.request_id)
        assert stored.status == "sent"
        assert stored.message_id == "m-1"
        assert stored.processed_at is not None
        assert stored.api_response == {'Data': {'MessageID': "m-1"}}

    @pytest.mark.asyncio
    async def test_provider_error_fails_request(self, store, executor, httpx_mock):
        request = await store.create_request("+972501234567", "Flight LY001 delayed")
        httpx_mock.add_response(url=PROVIDER_URL, method="POST", status_code=500)

        await process_stream_records(insert_event(request), executor)

        stored = await store.get_request(request.request_id)
        assert stored.status == "failed"
        assert "500" in stored.error
        assert stored.processed_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_stream_delivery_calls_provider_once(self, store, executor, httpx_mock):
        """A redelivered INSERT finds the record terminal and does nothing."""
        request = await store.create_request("+972501234567", "Flight LY001 delayed")
        httpx_mock.add_response(url=PROVIDER_URL, method="POST", json={'MessageID': "m-1"})

        await process_stream_records(insert_event(request), executor)
        # Stream images are snapshots: the redelivery still says pending
        second = await process_stream_records(insert_event(request), executor)

        assert len(httpx_mock.get_requests()) == 1
        assert second['results'][0]['skipped'] is True
        stored = await store.get_request(request.request_id)
        assert stored.status == "sent"
        assert stored.message_id == "m-1"


class TestRecoveryThroughApiGateway:
    """POST /sms-requests/process-pending with the authorizer context on the request."""

    @pytest.fixture(autouse=True)
    def wire_app(self, store, executor):
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_executor] = lambda: executor
        app.dependency_overrides[get_metrics_client] = lambda: MagicMock()
        app.dependency_overrides[get_api_key_validator] = lambda: MagicMock(validate=MagicMock(return_value=None))
        yield
        app.dependency_overrides = {}

    def test_recovers_mixed_batch(self, seed_request, sms_table, httpx_mock):
        first = seed_request(phone_number="+972501111111")
        second = seed_request(phone_number="+972502222222")
        third = seed_request(phone_number="+972503333333")
        httpx_mock.add_response(url=PROVIDER_URL, json={'MessageID': "m-1"})
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))
        httpx_mock.add_response(url=PROVIDER_URL, json={'Data': {'MessageID': "m-3"}})

        client = behind_api_gateway(app, authorizer={'operatorId': "ops-1"})
        response = client.post("/sms-requests/process-pending")

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['processed'] == 3
        assert [r['status'] for r in body['results']] == ["sent", "failed", "sent"]
        assert body['results'][1]['error'] == "SMS API error: request timed out"

        statuses = {
            r.request_id: sms_table.get_item(Key={'request_id': r.request_id})['Item']['status']
            for r in (first, second, third)
        }
        assert statuses == {
            first.request_id: "sent",
            second.request_id: "failed",
            third.request_id: "sent",
        }

    def test_http_api_authorizer_context(self, seed_request, httpx_mock):
        seed_request()
        httpx_mock.add_response(url=PROVIDER_URL, json={'MessageID': "m-1"})

        client = behind_api_gateway(app, authorizer={'lambda': {'operatorId': "ops-1"}})
        response = client.post("/sms-requests/process-pending")

        assert response.status_code == 200
        assert response.json()['processed'] == 1

    def test_unauthenticated_reads_nothing(self, store, seed_request, sms_table, httpx_mock):
        request = seed_request()
        store.query_by_status = MagicMock(side_effect=AssertionError("must not query"))

        response = behind_api_gateway(app).post("/sms-requests/process-pending")

        assert response.status_code == 401
        assert response.json()['error']['message'] == "User must be authenticated"
        assert sms_table.get_item(Key={'request_id': request.request_id})['Item']['status'] == "pending"
        assert httpx_mock.get_requests() == []


def test_lambda_entry_point_wraps_app():
    assert handler.app is app
