"""
Module: storage
Description: Package initialization for the data persistence layer.

This package contains data storage implementations for the dispatch service:
- dynamodb: DynamoDB store for SMS requests and their delivery state
"""

__all__ = []
