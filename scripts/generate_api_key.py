#!/usr/bin/env python3
"""
Script: generate_api_key.py
Description: Issue an operator API key for the SMS dispatch API.

Generates a secure API key, hashes it with PBKDF2-SHA256 and stores the
hash in the API keys DynamoDB table for use by the authorizer.

Usage:
    python scripts/generate_api_key.py --operator ops-oncall [--description "Night shift"]

Security Note:
    The plaintext API key is shown only once. Store it securely!
"""

import argparse
import sys
from datetime import datetime, timezone

import boto3
from botocore.exceptions import ClientError

from sms_dispatch.auth.api_key import generate_api_key, hash_api_key, key_id_for
from sms_dispatch.config.settings import settings
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)


def store_api_key(api_key: str, operator_id: str, description: str) -> str:
    """
    Store the hashed API key in DynamoDB.

    Returns:
        The key_id the hash was stored under

    Raises:
        ClientError: If DynamoDB operation fails
    """
    table = boto3.resource('dynamodb', region_name=settings.aws_region).Table(
        settings.api_keys_table_name
    )
    key_id = key_id_for(api_key)

    try:
        table.put_item(
            Item={
                'key_id': key_id,
                'api_key_hash': hash_api_key(api_key),
                'operator_id': operator_id,
                'description': description,
                'environment': settings.stage,
                'created_at': datetime.now(timezone.utc).isoformat(),
                'is_active': True
            },
            ConditionExpression='attribute_not_exists(key_id)'
        )
    except ClientError as e:
        logger.error(
            "Failed to store API key in DynamoDB",
            key_id=key_id,
            error_code=e.response['Error']['Code'],
            table_name=settings.api_keys_table_name
        )
        raise

    logger.info(
        "API key stored in DynamoDB",
        key_id=key_id,
        operator_id=operator_id,
        table_name=settings.api_keys_table_name
    )
    return key_id


def main():
    parser = argparse.ArgumentParser(
        description="Issue an operator API key for the SMS dispatch API"
    )
    parser.add_argument('--operator', required=True, help='Operator identity the key belongs to')
    parser.add_argument('--description', default='Operator API key', help='Human-readable description')
    args = parser.parse_args()

    try:
        api_key = generate_api_key()
        key_id = store_api_key(api_key, args.operator, args.description)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Key ID: {key_id}")
    print(f"API key (shown once): {api_key}")
    print(f"Use it as: Authorization: Bearer {api_key}")


if __name__ == '__main__':
    main()
