"""Tests for BucketReconciler against a mock S3 client."""

from unittest.mock import call

import pytest

from terraform_api.core.exceptions import ReconciliationError
from terraform_api.modules.terraform.bucket_reconciler import BucketReconciler
from tests.conftest import PREFIX, client_error, create_mock_s3


class TestDeleteBucket:
    def test_refuses_bucket_outside_temporary_prefix(self):
        s3 = create_mock_s3()
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket("production-assets") is False
        assert s3.method_calls == []
        s3.delete_object.assert_not_called()
        s3.delete_bucket.assert_not_called()

    def test_refuses_empty_name(self):
        s3 = create_mock_s3()
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket("") is False
        assert s3.method_calls == []

    def test_deletes_each_object_then_the_bucket(self):
        bucket = "terraform-temp-demo-1"
        s3 = create_mock_s3(objects={bucket: ["index.html", "logs/app.log"]})
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket(bucket) is True

        assert s3.delete_object.call_args_list == [
            call(Bucket=bucket, Key="index.html"),
            call(Bucket=bucket, Key="logs/app.log"),
        ]
        s3.delete_bucket.assert_called_once_with(Bucket=bucket)
        assert s3.method_calls[-1] == call.delete_bucket(Bucket=bucket)

    def test_empty_bucket_only_deletes_bucket(self):
        bucket = "terraform-temp-demo-1"
        s3 = create_mock_s3()
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket(bucket) is True
        s3.delete_object.assert_not_called()
        s3.delete_bucket.assert_called_once_with(Bucket=bucket)

    def test_listing_failure_returns_false(self):
        bucket = "terraform-temp-demo-1"
        s3 = create_mock_s3(failing_buckets=[bucket])
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket(bucket) is False
        s3.delete_bucket.assert_not_called()

    def test_bucket_deletion_failure_returns_false(self):
        bucket = "terraform-temp-demo-1"
        s3 = create_mock_s3()
        s3.delete_bucket.side_effect = client_error("DeleteBucket", code="NoSuchBucket")
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        assert reconciler.delete_bucket(bucket) is False


class TestSweepTemporaryBuckets:
    def test_only_temporary_buckets_are_deleted(self):
        s3 = create_mock_s3(buckets=["terraform-temp-a-1", "company-data", "terraform-temp-b-2"])
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        report = reconciler.sweep_temporary_buckets()

        assert report.succeeded == ["terraform-temp-a-1", "terraform-temp-b-2"]
        assert report.failed == []
        assert s3.delete_bucket.call_args_list == [
            call(Bucket="terraform-temp-a-1"),
            call(Bucket="terraform-temp-b-2"),
        ]

    def test_continues_after_a_bucket_fails(self):
        buckets = ["terraform-temp-a-1", "terraform-temp-b-2", "terraform-temp-c-3"]
        s3 = create_mock_s3(buckets=buckets, failing_buckets=["terraform-temp-b-2"])
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        report = reconciler.sweep_temporary_buckets()

        assert report.succeeded == ["terraform-temp-a-1", "terraform-temp-c-3"]
        assert report.failed == ["terraform-temp-b-2"]
        attempted = [c.kwargs["Bucket"] for c in s3.get_paginator.return_value.paginate.call_args_list]
        assert attempted == buckets

    def test_no_buckets_is_a_no_op(self):
        s3 = create_mock_s3(buckets=[])
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        report = reconciler.sweep_temporary_buckets()

        assert report.succeeded == [] and report.failed == []
        s3.delete_bucket.assert_not_called()

    def test_listing_failure_aborts_the_sweep(self):
        s3 = create_mock_s3(buckets=["terraform-temp-a-1"])
        s3.list_buckets.side_effect = client_error("ListBuckets")
        reconciler = BucketReconciler(s3_client=s3, prefix=PREFIX)

        with pytest.raises(ReconciliationError):
            reconciler.sweep_temporary_buckets()
        s3.delete_bucket.assert_not_called()
