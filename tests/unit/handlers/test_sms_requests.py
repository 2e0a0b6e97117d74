"""
Module: test_sms_requests.py
Description: Unit tests for the SMS request enqueue and lookup endpoints.

Runs the full application with the store dependency bound to a moto table
and the caller identity overridden.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from sms_dispatch.auth.identity import get_caller_identity
from sms_dispatch.main import app
from sms_dispatch.storage.dynamodb import get_store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_caller_identity] = lambda: "ops-1"
    yield TestClient(app)
    app.dependency_overrides = {}


class TestCreateSmsRequest:
    """Test cases for POST /sms-requests."""

    def test_enqueue(self, client, sms_table):
        response = client.post(
            "/sms-requests",
            json={"phone_number": "+972501234567", "message": "Flight LY001 delayed", "sender": "LY-OPS"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["request_id"].startswith("smsreq_")
        assert data["status"] == "pending"
        assert data["processed_at"] is None
        assert data["message_id"] is None

        item = sms_table.get_item(Key={'request_id': data["request_id"]})['Item']
        assert item['status'] == "pending"
        assert item['sender'] == "LY-OPS"

    def test_validation_error(self, client):
        invalid_requests = [
            {"message": "Flight LY001 delayed"},
            {"phone_number": "+972501234567"},
            {"phone_number": "not a phone", "message": "hi"},
            {"phone_number": "+972501234567", "message": ""},
        ]

        for invalid_request in invalid_requests:
            response = client.post("/sms-requests", json=invalid_request)
            assert response.status_code == 422

    def test_unauthenticated(self, client):
        app.dependency_overrides[get_caller_identity] = lambda: None

        response = client.post("/sms-requests", json={"phone_number": "+972501234567", "message": "hi"})

        assert response.status_code == 401
        assert response.json()["error"]["type"] == "unauthenticated"

    def test_store_error(self, client, store):
        with patch.object(store, 'create_request', new_callable=AsyncMock, side_effect=Exception("Database error")):
            response = client.post("/sms-requests", json={"phone_number": "+972501234567", "message": "hi"})

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to enqueue SMS request"


class TestBatchCreateSmsRequests:
    """Test cases for POST /sms-requests/batch."""

    def test_batch_enqueue(self, client, sms_table):
        response = client.post(
            "/sms-requests/batch",
            json={
                "phone_numbers": ["+972501111111", "+972502222222"],
                "message": "Flight LY001 delayed",
                "sender": "LY-OPS"
            }
        )

        assert response.status_code == 201
        data = response.json()
        assert data["summary"] == {"total": 2, "successful": 2, "failed": 0}
        assert [r["index"] for r in data["results"]] == [0, 1]
        assert all(r["success"] and r["error"] is None for r in data["results"])

        request_ids = [r["request"]["request_id"] for r in data["results"]]
        assert len(set(request_ids)) == 2
        for request_id, phone in zip(request_ids, ["+972501111111", "+972502222222"]):
            item = sms_table.get_item(Key={'request_id': request_id})['Item']
            assert item['status'] == "pending"
            assert item['phone_number'] == phone
            assert item['sender'] == "LY-OPS"

    def test_invalid_recipient_fails_only_its_entry(self, client, sms_table):
        response = client.post(
            "/sms-requests/batch",
            json={"phone_numbers": ["+972501111111", "not a phone"], "message": "Flight LY001 delayed"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["summary"] == {"total": 2, "successful": 1, "failed": 1}
        ok, bad = data["results"]
        assert ok["success"] is True
        assert ok["request"]["status"] == "pending"
        assert bad["index"] == 1
        assert bad["success"] is False
        assert bad["request"] is None
        assert bad["error"]["code"] == "VALIDATION_ERROR"
        assert "phone_number must contain only digits" in bad["error"]["message"]
        assert sms_table.scan()['Count'] == 1

    def test_storage_failure_is_reported_per_entry(self, client, store):
        def partial_write(requests):
            return {
                "successful_request_ids": [requests[0].request_id],
                "failed_items": [{"request_id": requests[1].request_id, "reason": "Unprocessed by DynamoDB"}]
            }

        with patch.object(store, 'batch_put_requests', new_callable=AsyncMock, side_effect=partial_write):
            response = client.post(
                "/sms-requests/batch",
                json={"phone_numbers": ["+972501111111", "+972502222222"], "message": "hi"}
            )

        assert response.status_code == 201
        data = response.json()
        assert data["summary"] == {"total": 2, "successful": 1, "failed": 1}
        assert data["results"][1]["error"] == {"code": "STORAGE_ERROR", "message": "Unprocessed by DynamoDB"}

    def test_batch_validation_error(self, client):
        invalid_requests = [
            {"phone_numbers": [], "message": "hi"},
            {"phone_numbers": ["+972501234567"] * 101, "message": "hi"},
            {"phone_numbers": ["+972501234567"], "message": ""},
            {"message": "hi"},
        ]

        for invalid_request in invalid_requests:
            response = client.post("/sms-requests/batch", json=invalid_request)
            assert response.status_code == 422

    def test_batch_unauthenticated(self, client, sms_table):
        app.dependency_overrides[get_caller_identity] = lambda: None

        response = client.post("/sms-requests/batch", json={"phone_numbers": ["+972501234567"], "message": "hi"})

        assert response.status_code == 401
        assert sms_table.scan()['Count'] == 0


class TestGetSmsRequests:
    """Test cases for GET /sms-requests and GET /sms-requests/{request_id}."""

    def test_list_defaults_to_failed(self, client, seed_request):
        seed_request()
        failed = seed_request(status="failed", error="SMS API error: request timed out")

        response = client.get("/sms-requests")

        assert response.status_code == 200
        data = response.json()
        assert [r["request_id"] for r in data] == [failed.request_id]
        assert data[0]["error"] == "SMS API error: request timed out"

    def test_list_by_status(self, client, seed_request):
        first = seed_request()
        seed_request()

        response = client.get("/sms-requests", params={"status": "pending", "limit": 1})

        assert response.status_code == 200
        assert [r["request_id"] for r in response.json()] == [first.request_id]

    def test_list_invalid_status(self, client):
        assert client.get("/sms-requests", params={"status": "delivered"}).status_code == 422
        assert client.get("/sms-requests", params={"limit": 0}).status_code == 422

    def test_get_request(self, client, seed_request):
        seeded = seed_request(status="sent", message_id="m-1", api_response={'MessageID': "m-1"})

        response = client.get(f"/sms-requests/{seeded.request_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "sent"
        assert data["message_id"] == "m-1"
        assert data["api_response"] == {'MessageID': "m-1"}

    def test_get_request_not_found(self, client):
        response = client.get("/sms-requests/smsreq_missing")

        assert response.status_code == 404
        assert response.json()["error"] == {
            "code": 404,
            "message": "SMS request smsreq_missing not found",
            "type": "not_found"
        }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
