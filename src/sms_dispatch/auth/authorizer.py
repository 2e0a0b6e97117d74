"""
Module: authorizer.py
Description: Lambda authorizer for operator API key authentication.

Validates Bearer API keys from the Authorization header and returns an
IAM policy for API Gateway. The operator id is passed to the API in the
authorizer context.

Key Components:
- lambda_handler(): Main Lambda authorizer function
- generate_policy(): Creates IAM policy documents
"""

from typing import Any, Dict, Optional

from sms_dispatch.auth.api_key import get_api_key_validator
from sms_dispatch.auth.identity import extract_bearer_token
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda authorizer handler for API key validation.

    Args:
        event: API Gateway request authorizer event
        context: Lambda context object

    Returns:
        IAM policy document allowing or denying access

    Example Event:
        {
            "headers": {"authorization": "Bearer sk_abc123..."},
            "methodArn": "arn:aws:execute-api:us-east-1:123456789/api/POST/sms-requests/process-pending"
        }
    """
    method_arn = event.get('methodArn', '*')

    try:
        headers = event.get('headers') or {}
        token = extract_bearer_token(headers.get('authorization') or headers.get('Authorization'))

        if not token:
            logger.warning("No API key provided in request")
            return generate_policy('anonymous', 'Deny', method_arn)

        operator_id = get_api_key_validator().validate(token)
        if not operator_id:
            logger.warning("API key authentication failed")
            return generate_policy('anonymous', 'Deny', method_arn)

        logger.info("API key authentication successful", operator_id=operator_id)
        return generate_policy(operator_id, 'Allow', method_arn, operator_id)

    except Exception as e:
        # Deny on any error
        logger.error("Unexpected error in authorizer", error=str(e), method_arn=method_arn)
        return generate_policy('anonymous', 'Deny', method_arn)


def generate_policy(
    principal_id: str,
    effect: str,
    resource: str,
    operator_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Generate IAM policy document for API Gateway.

    Example:
        >>> policy = generate_policy('ops-1', 'Allow', 'arn:aws:...', 'ops-1')
        >>> policy['policyDocument']['Statement'][0]['Effect']
        'Allow'
        >>> policy['context']['operatorId']
        'ops-1'
    """
    policy = {
        'principalId': principal_id,
        'policyDocument': {
            'Version': '2012-10-17',
            'Statement': [{
                'Action': 'execute-api:Invoke',
                'Effect': effect,
                'Resource': resource
            }]
        }
    }

    if effect == 'Allow':
        policy['context'] = {
            'operatorId': operator_id or principal_id,
            'authenticated': 'true'
        }

    return policy
