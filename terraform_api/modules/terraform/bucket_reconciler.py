import boto3
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from terraform_api.config import settings
from terraform_api.core.exceptions import ReconciliationError

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def create_s3_client():
    """boto3 S3 client with explicit timeouts so a stalled call cannot hang a request."""
    kwargs = {
        "region_name": settings.aws_region,
        "config": Config(
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_read_timeout,
            retries={"max_attempts": settings.s3_max_attempts, "mode": "standard"},
        ),
    }
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    return boto3.client("s3", **kwargs)


class BucketReconciler:
    """Finds and deletes the temporary buckets terraform runs leave behind."""

    def __init__(self, s3_client=None, prefix: Optional[str] = None):
        self.s3_client = s3_client or create_s3_client()
        self.prefix = prefix or settings.temp_bucket_prefix

    def is_temporary(self, bucket_name: Optional[str]) -> bool:
        return bool(bucket_name) and bucket_name.startswith(self.prefix)

    def delete_bucket(self, bucket_name: str) -> bool:
        """Empty and delete a temporary bucket. Returns False instead of raising."""
        if not self.is_temporary(bucket_name):
            logger.warning(f"Skipping bucket {bucket_name} as it doesn't match the naming pattern")
            return False

        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket_name):
                for obj in page.get("Contents") or []:
                    self.s3_client.delete_object(Bucket=bucket_name, Key=obj["Key"])
                    logger.info(f"Deleted object {obj['Key']} from bucket {bucket_name}")

            self.s3_client.delete_bucket(Bucket=bucket_name)
            logger.info(f"Deleted bucket {bucket_name}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error cleaning up bucket {bucket_name}: {e}")
            return False

    def sweep_temporary_buckets(self) -> SweepReport:
        """
        Delete every visible bucket carrying the temporary prefix.

        A failure to list buckets aborts the sweep with ReconciliationError.
        A failure on one bucket is recorded in the report and the sweep moves on.
        """
        try:
            response = self.s3_client.list_buckets()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing buckets for cleanup: {e}")
            raise ReconciliationError(f"Failed to list buckets: {e}")

        report = SweepReport()
        buckets = response.get("Buckets") or []
        if not buckets:
            logger.info("No buckets found")
            return report

        temp_buckets = [b["Name"] for b in buckets if self.is_temporary(b.get("Name"))]
        logger.info(f"Found {len(temp_buckets)} temporary buckets to clean up")

        for bucket_name in temp_buckets:
            if self.delete_bucket(bucket_name):
                report.succeeded.append(bucket_name)
            else:
                report.failed.append(bucket_name)
        return report
