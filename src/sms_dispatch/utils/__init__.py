"""
Module: utils
Description: Package initialization for shared utilities.

This package contains cross-cutting helpers for the SMS dispatch service:
- logger: structlog configuration and get_logger()
- metrics: CloudWatch custom metrics publishing
- redact: masking of phone numbers and message text in logs
"""

__all__ = []
