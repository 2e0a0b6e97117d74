"""
Module: metrics.py
Description: CloudWatch custom metrics publishing.

Publishes delivery metrics (SMS sent/failed, recovery batch size)
to CloudWatch for monitoring the dispatch pipeline.

Key Components:
- MetricsClient: CloudWatch metrics client
- put_metric(): Publish individual metrics
- record_delivery() / record_recovery_batch(): Pipeline counters
- Graceful error handling for metrics failures

Dependencies: boto3, typing, logger
"""

from functools import lru_cache
from typing import Dict, Optional

import boto3

from sms_dispatch.config.settings import settings
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)


class MetricsClient:
    """CloudWatch metrics client."""

    def __init__(self, namespace: str = "FlightSms", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region (defaults to the boto3 session region)
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.debug("Metrics client initialized", namespace=namespace)

    def put_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = 'Count',
        dimensions: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Publish a metric to CloudWatch.

        Never raises: a metrics outage must not affect delivery.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (Count, Seconds, etc.)
            dimensions: Optional metric dimensions
        """
        try:
            metric_data = {
                'MetricName': metric_name,
                'Value': value,
                'Unit': unit
            }

            if dimensions:
                metric_data['Dimensions'] = [
                    {'Name': k, 'Value': v}
                    for k, v in dimensions.items()
                ]

            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )

            logger.debug(
                "Metric published to CloudWatch",
                metric_name=metric_name,
                value=value,
                namespace=self.namespace
            )

        except Exception as e:
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                value=value,
                error=str(e),
                namespace=self.namespace
            )

    def record_delivery(self, success: bool, source: str) -> None:
        """Count one terminal delivery (SmsSent or SmsFailed) for an entry point."""
        self.put_metric(
            metric_name="SmsSent" if success else "SmsFailed",
            value=1.0,
            dimensions={"Source": source}
        )

    def record_recovery_batch(self, processed: int, failed: int) -> None:
        self.put_metric(metric_name="SmsRecovered", value=float(processed))
        if failed:
            self.put_metric(
                metric_name="SmsFailed",
                value=float(failed),
                dimensions={"Source": "recovery"}
            )


@lru_cache(maxsize=1)
def get_metrics_client() -> MetricsClient:
    """Return the process-wide CloudWatch metrics client."""
    return MetricsClient(namespace=settings.metrics_namespace, region_name=settings.aws_region)
