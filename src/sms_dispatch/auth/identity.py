"""
Module: identity.py
Description: Caller identity resolution for HTTP requests.

Behind API Gateway the Lambda authorizer has already validated the key
and placed the operator id in the request context; Mangum exposes that
event on the ASGI scope. Outside API Gateway (local runs, tests) a Bearer
key in the Authorization header is validated directly.
"""

from typing import Optional

from fastapi import Depends, Request

from sms_dispatch.auth.api_key import ApiKeyValidator, get_api_key_validator
from sms_dispatch.errors import AuthorizationError
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)


def get_authorizer_operator_id(request: Request) -> Optional[str]:
    """Extract the operator id placed in the API Gateway authorizer context."""
    event = request.scope.get('aws.event') or {}
    authorizer = event.get('requestContext', {}).get('authorizer') or {}
    # REST APIs put the context at the top level, HTTP APIs nest it under 'lambda'
    context = authorizer.get('lambda') or authorizer
    return context.get('operatorId')


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from a 'Bearer <token>' header value."""
    if not authorization or not authorization.startswith('Bearer '):
        return None
    return authorization[7:].strip() or None


def get_caller_identity(
    request: Request,
    validator: ApiKeyValidator = Depends(get_api_key_validator)
) -> Optional[str]:
    """
    Resolve the calling operator, or None when unauthenticated.

    FastAPI dependency; does not raise so that each operation decides how
    to fail.
    """
    operator_id = get_authorizer_operator_id(request)
    if operator_id:
        return operator_id

    token = extract_bearer_token(request.headers.get('authorization'))
    if token:
        return validator.validate(token)

    return None


def require_caller(caller_id: Optional[str] = Depends(get_caller_identity)) -> str:
    """FastAPI dependency that rejects unauthenticated callers."""
    if not caller_id:
        logger.warning("Unauthenticated request rejected")
        raise AuthorizationError()
    return caller_id
