from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from config import get_logger

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client, type_defs

    from sync_report import SyncRunReport

logger = get_logger(service="s3")


def report_key(prefix: str, now: datetime) -> str:
    return f"{prefix}/{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}.json"


def store_run_report(
    s3_client: S3Client,
    report: SyncRunReport,
    bucket_name: str,
    bucket_prefix: str,
) -> type_defs.PutObjectOutputTypeDef:
    now = datetime.now(timezone.utc)
    key = report_key(bucket_prefix.rstrip("/"), now)
    logger.info(f"Posting device sync report to s3://{bucket_name}/{key}")

    report_dict = report.to_dict() | {
        "time": str(now),
        "timestamp": int(now.timestamp() * 1000),
        "version": 1,
    }
    return s3_client.put_object(
        Bucket=bucket_name,
        Key=key,
        Body=json.dumps(report_dict),
        ContentType="application/json",
        ServerSideEncryption="AES256",
    )
