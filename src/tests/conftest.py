import os
from unittest.mock import MagicMock

import boto3
import pytest

SOURCE_GROUP_ID = "11111111-2222-3333-4444-555555555555"
TARGET_GROUP_ID = "66666666-7777-8888-9999-000000000000"


def pytest_sessionstart(session):  # noqa: ANN201, ARG001, ANN001
    mock_env = {
        "source_user_group_id": SOURCE_GROUP_ID,
        "target_device_group_id": TARGET_GROUP_ID,
        "azure_tenant_id": "x",
        "azure_client_id": "x",
        "azure_client_secret": "x",
        "log_level": "DEBUG",
        "post_update_to_slack": "true",
        "slack_channel_id": "x",
        "slack_bot_token": "x",
        "s3_bucket_for_reports_name": "x",
        "s3_bucket_prefix_for_partitions": "x",
    }
    os.environ |= mock_env

    boto3.setup_default_session(region_name="us-east-1")


@pytest.fixture
def mock_s3_client():
    mock_client = MagicMock()
    mock_client.put_object.return_value = {"ETag": '"etag"'}
    return mock_client


@pytest.fixture
def mock_slack_client():
    return MagicMock()
