"""
Module: api_key.py
Description: Operator API key generation, hashing and validation.

Operator keys guard the manual recovery entry point. Keys are hashed with
PBKDF2-SHA256 and stored in the API keys table under a key_id derived
from the key's prefix, so validation is a single GetItem rather than a
table scan.

Key Components:
- generate_api_key(): Create a new plaintext operator key
- key_id_for(): Derive the table key for an API key
- hash_api_key() / verify_api_key(): PBKDF2-SHA256 hashing
- ApiKeyValidator: Resolve an API key to its operator identity

Dependencies: hashlib, secrets, boto3, botocore, typing
"""

import hashlib
import secrets
from functools import lru_cache
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from sms_dispatch.config.settings import settings
from sms_dispatch.utils.logger import get_logger

logger = get_logger(__name__)

PBKDF2_ITERATIONS = 100000
PBKDF2_SALT_LENGTH = 32
PBKDF2_KEY_LENGTH = 32
PBKDF2_ALGORITHM = 'pbkdf2_sha256'

API_KEY_PREFIX = 'sk_'


def generate_api_key() -> str:
    """
    Generate a secure random operator API key.

    Returns:
        API key in format: sk_{32 url-safe characters}
    """
    return f"{API_KEY_PREFIX}{secrets.token_urlsafe(32)[:32]}"


def key_id_for(api_key: str) -> str:
    """
    Derive the API keys table key from a plaintext key.

    Example:
        >>> key_id_for("sk_abcdefgh12345678")
        'key_abcdefgh'
    """
    return f"key_{api_key[len(API_KEY_PREFIX):len(API_KEY_PREFIX) + 8]}"


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key using PBKDF2-SHA256.

    Args:
        api_key: Plain text API key to hash

    Returns:
        Hashed API key string in format: pbkdf2_sha256$iterations$salt$hash

    Raises:
        ValueError: If api_key is empty or only whitespace
    """
    if not api_key or not isinstance(api_key, str):
        raise ValueError("api_key must be a non-empty string")
    if not api_key.strip():
        raise ValueError("api_key cannot be only whitespace")

    salt = secrets.token_bytes(PBKDF2_SALT_LENGTH)
    key = hashlib.pbkdf2_hmac(
        'sha256',
        api_key.encode('utf-8'),
        salt,
        PBKDF2_ITERATIONS,
        dklen=PBKDF2_KEY_LENGTH
    )

    return f"{PBKDF2_ALGORITHM}${PBKDF2_ITERATIONS}${salt.hex()}${key.hex()}"


def verify_api_key(plain_key: str, hashed_key: str) -> bool:
    """
    Verify an API key against its PBKDF2 hash.

    Returns False for malformed input rather than raising.

    Example:
        >>> hashed = hash_api_key("sk_abc123xyz")
        >>> verify_api_key("sk_abc123xyz", hashed)
        True
        >>> verify_api_key("wrong_key", hashed)
        False
    """
    if not plain_key or not isinstance(plain_key, str):
        return False
    if not hashed_key or not isinstance(hashed_key, str):
        return False

    parts = hashed_key.split('$')
    if len(parts) != 4 or parts[0] != PBKDF2_ALGORITHM:
        logger.warning("Invalid hash format for verification")
        return False

    try:
        iterations = int(parts[1])
        salt = bytes.fromhex(parts[2])
        expected_key = bytes.fromhex(parts[3])
    except ValueError:
        logger.warning("Invalid hash parameters")
        return False

    if iterations < 1:
        logger.warning("Invalid hash iteration count", iterations=iterations)
        return False

    computed_key = hashlib.pbkdf2_hmac(
        'sha256',
        plain_key.encode('utf-8'),
        salt,
        iterations,
        dklen=PBKDF2_KEY_LENGTH
    )

    # Constant-time comparison
    return secrets.compare_digest(computed_key, expected_key)


class ApiKeyValidator:
    """
    Resolves operator API keys against the API keys table.

    Attributes:
        table_name: Name of the DynamoDB API keys table
        table: boto3 DynamoDB table resource
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        if not table_name or not isinstance(table_name, str):
            raise ValueError("table_name must be a non-empty string")

        self.table_name = table_name
        self.table = boto3.resource('dynamodb', region_name=region_name).Table(table_name)

    def validate(self, api_key: Optional[str]) -> Optional[str]:
        """
        Validate an API key and return the operator it belongs to.

        Args:
            api_key: Plaintext API key from the request

        Returns:
            Operator identity if the key is valid and active, None otherwise
        """
        if not api_key or not api_key.startswith(API_KEY_PREFIX):
            return None

        key_id = key_id_for(api_key)

        try:
            response = self.table.get_item(Key={'key_id': key_id})
        except ClientError as e:
            logger.error(
                "Error validating API key against DynamoDB",
                key_id=key_id,
                table_name=self.table_name,
                error_code=e.response['Error']['Code']
            )
            return None

        item = response.get('Item')
        if not item or not item.get('is_active', True):
            logger.warning("Unknown or inactive API key", key_id=key_id)
            return None

        if not verify_api_key(api_key, item.get('api_key_hash')):
            logger.warning("API key verification failed", key_id=key_id)
            return None

        return item.get('operator_id') or key_id


@lru_cache(maxsize=1)
def get_api_key_validator() -> ApiKeyValidator:
    """Return the process-wide API key validator."""
    return ApiKeyValidator(
        table_name=settings.api_keys_table_name,
        region_name=settings.aws_region
    )
