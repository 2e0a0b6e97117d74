"""
Module: test_authorizer.py
Description: Unit tests for the API Gateway Lambda authorizer.
"""

from unittest.mock import MagicMock, patch

from sms_dispatch.auth import authorizer
from sms_dispatch.auth.authorizer import generate_policy, lambda_handler

METHOD_ARN = "arn:aws:execute-api:us-east-1:123456789012/api/POST/sms-requests/process-pending"


def _event(authorization=None):
    headers = {'authorization': authorization} if authorization else {}
    return {'headers': headers, 'methodArn': METHOD_ARN}


def _effect(policy):
    return policy['policyDocument']['Statement'][0]['Effect']


class TestLambdaAuthorizer:

    def test_valid_key_allows(self):
        validator = MagicMock()
        validator.validate.return_value = "ops-1"

        with patch.object(authorizer, 'get_api_key_validator', return_value=validator):
            policy = lambda_handler(_event("Bearer sk_abcdefgh12345678"), None)

        assert _effect(policy) == 'Allow'
        assert policy['principalId'] == "ops-1"
        assert policy['context'] == {'operatorId': "ops-1", 'authenticated': 'true'}
        validator.validate.assert_called_once_with("sk_abcdefgh12345678")

    def test_missing_header_denies(self):
        policy = lambda_handler(_event(), None)

        assert _effect(policy) == 'Deny'
        assert 'context' not in policy

    def test_invalid_key_denies(self):
        validator = MagicMock()
        validator.validate.return_value = None

        with patch.object(authorizer, 'get_api_key_validator', return_value=validator):
            policy = lambda_handler(_event("Bearer sk_wrong"), None)

        assert _effect(policy) == 'Deny'

    def test_error_denies(self):
        with patch.object(authorizer, 'get_api_key_validator', side_effect=RuntimeError("boom")):
            policy = lambda_handler(_event("Bearer sk_abcdefgh12345678"), None)

        assert _effect(policy) == 'Deny'
        assert policy['principalId'] == 'anonymous'


def test_generate_policy():
    policy = generate_policy('ops-1', 'Allow', METHOD_ARN)

    assert policy['policyDocument']['Statement'][0]['Resource'] == METHOD_ARN
    assert policy['policyDocument']['Statement'][0]['Action'] == 'execute-api:Invoke'
    assert policy['context']['operatorId'] == 'ops-1'
