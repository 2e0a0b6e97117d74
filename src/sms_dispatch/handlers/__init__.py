"""
Module: handlers
Description: Package initialization for the service entry points.

This package contains the entry points of the dispatch service:
- trigger: DynamoDB stream Lambda delivering new SMS requests
- recovery: Authenticated batch recovery of pending SMS requests
- sms_requests: Enqueue and lookup endpoints
"""

__all__ = []
