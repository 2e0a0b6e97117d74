"""
Module: test_metrics.py
Description: Unit tests for CloudWatch metrics publishing.
"""

from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

from sms_dispatch.utils.metrics import MetricsClient
from sms_dispatch.utils.redact import mask_phone, preview_message
from tests.constants import REGION


@pytest.fixture
def cloudwatch():
    with mock_aws():
        yield boto3.client('cloudwatch', region_name=REGION)


def _metric_names(cloudwatch, namespace="FlightSms"):
    return sorted(m['MetricName'] for m in cloudwatch.list_metrics(Namespace=namespace)['Metrics'])


class TestMetricsClient:

    def test_record_delivery(self, cloudwatch):
        client = MetricsClient(region_name=REGION)

        client.record_delivery(True, source="trigger")
        client.record_delivery(False, source="trigger")

        metrics = cloudwatch.list_metrics(Namespace="FlightSms")['Metrics']
        assert sorted(m['MetricName'] for m in metrics) == ["SmsFailed", "SmsSent"]
        assert all(m['Dimensions'] == [{'Name': 'Source', 'Value': 'trigger'}] for m in metrics)

    def test_record_recovery_batch(self, cloudwatch):
        client = MetricsClient(region_name=REGION)

        client.record_recovery_batch(processed=3, failed=1)

        assert _metric_names(cloudwatch) == ["SmsFailed", "SmsRecovered"]

    def test_clean_batch_publishes_no_failures(self, cloudwatch):
        MetricsClient(region_name=REGION).record_recovery_batch(processed=2, failed=0)

        assert _metric_names(cloudwatch) == ["SmsRecovered"]

    def test_publish_failure_is_swallowed(self, cloudwatch):
        client = MetricsClient(region_name=REGION)
        client.cloudwatch = MagicMock()
        client.cloudwatch.put_metric_data.side_effect = Exception("CloudWatch unavailable")

        client.put_metric("SmsSent", 1.0)

        client.cloudwatch.put_metric_data.assert_called_once()


class TestRedaction:

    def test_mask_phone(self):
        assert mask_phone("+972501234567") == "*********4567"
        assert mask_phone("123") == "***"
        assert mask_phone(None) is None

    def test_preview_message(self):
        assert preview_message("short") == "short"
        assert preview_message("x" * 60, length=10) == "x" * 10 + "..."
