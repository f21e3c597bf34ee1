"""Integration test fixtures — LocalStack Secrets Manager."""

from __future__ import annotations

import os

import boto3
import pytest
from botocore.config import Config

# Default LocalStack endpoint
LOCALSTACK_URL = os.environ.get("LOCALSTACK_URL", "http://localhost:4566")
SECRET_PREFIX = "conveyor-inttest/"


def _localstack_available() -> bool:
    """Check if LocalStack is reachable."""
    try:
        client = boto3.client(
            "secretsmanager", region_name="us-east-1", endpoint_url=LOCALSTACK_URL,
            aws_access_key_id="test", aws_secret_access_key="test",
            config=Config(connect_timeout=1, retries={"max_attempts": 0}),
        )
        client.list_secrets(MaxResults=1)
        return True
    except Exception:
        return False


skip_no_localstack = pytest.mark.skipif(
    not _localstack_available(),
    reason="LocalStack not available",
)


@pytest.fixture(scope="session")
def localstack_sm():
    """Secrets Manager client pointing at LocalStack."""
    return boto3.client(
        "secretsmanager", region_name="us-east-1", endpoint_url=LOCALSTACK_URL,
        aws_access_key_id="test", aws_secret_access_key="test",
    )
