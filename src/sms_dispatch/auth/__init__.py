"""
Module: auth
Description: Package initialization for authentication and authorization.

This package contains authentication and authorization components:
- api_key: Operator API key hashing and validation
- identity: Caller identity resolution for HTTP requests
- authorizer: Lambda authorizer for API key validation
"""

__all__ = []
