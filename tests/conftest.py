"""Pytest configuration and shared fakes."""

import itertools
import os

# Keep the rate limiter out of the way of the test suite; must be set before settings load
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("AWS_REGION", "us-east-1")

import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from terraform_api.core.dependencies import get_lifecycle_service
from terraform_api.main import app
from terraform_api.modules.terraform.bucket_reconciler import BucketReconciler
from terraform_api.modules.terraform.process_runner import CommandResult, CommandSpec
from terraform_api.modules.terraform.service import TemplateLifecycleService
from terraform_api.modules.terraform.workspace import WorkspaceManager

SEED_FILES = ["main.tf", "terraform.tfvars", ".terraform.lock.hcl"]
PREFIX = "terraform-temp-"


class FakeRunner:
    """Stands in for ProcessRunner; records every CommandSpec it is asked to run."""

    def __init__(self):
        self.calls = []
        self.failures = {}

    def fail(self, subcommand: str, exit_code: int = 1, error_output: str = "Error: something went wrong"):
        self.failures[subcommand] = (exit_code, error_output)

    def succeed(self, subcommand: str):
        self.failures.pop(subcommand, None)

    @property
    def subcommands(self):
        return [spec.subcommand for spec in self.calls]

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        if spec.subcommand in self.failures:
            exit_code, error_output = self.failures[spec.subcommand]
            return CommandResult(
                command=spec.command, success=False, exit_code=exit_code,
                output="", error_output=error_output,
            )
        return CommandResult(
            command=spec.command, success=True, exit_code=0,
            output=f"Terraform {spec.subcommand} complete!\n",
        )


def client_error(operation: str, code: str = "AccessDenied") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{operation} failed"}}, operation)


def create_mock_s3(buckets=None, objects=None, failing_buckets=()):
    """
    Create a mock S3 client.

    buckets: names returned by list_buckets
    objects: bucket name -> list of object keys
    failing_buckets: buckets whose object listing raises ClientError
    """
    objects = objects or {}
    mock_client = MagicMock()
    mock_client.list_buckets.return_value = {"Buckets": [{"Name": name} for name in (buckets or [])]}

    def paginate(Bucket):
        if Bucket in failing_buckets:
            raise client_error("ListObjectsV2")
        keys = objects.get(Bucket, [])
        return [{"Contents": [{"Key": key} for key in keys]}] if keys else [{}]

    mock_client.get_paginator.return_value.paginate.side_effect = paginate
    return mock_client


@pytest.fixture
def template_source(tmp_path):
    """Source directory with two of the three seed files (no lock file)."""
    src = tmp_path / "source"
    src.mkdir()
    (src / "main.tf").write_text('resource "aws_s3_bucket" "temp" {\n  bucket = var.bucket_name\n}\n')
    (src / "terraform.tfvars").write_text('region = "us-east-1"\n')
    return src


@pytest.fixture
def workspace_root(tmp_path):
    return tmp_path / "workspaces"


@pytest.fixture
def workspaces(template_source, workspace_root):
    return WorkspaceManager(
        source_path=str(template_source),
        template_files=SEED_FILES,
        root=str(workspace_root),
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def s3_client():
    return create_mock_s3()


@pytest.fixture
def reconciler(s3_client):
    return BucketReconciler(s3_client=s3_client, prefix=PREFIX)


@pytest.fixture
def clock():
    ticks = itertools.count(1700000000000)
    return lambda: next(ticks)


@pytest.fixture
def service(workspaces, fake_runner, reconciler, clock):
    return TemplateLifecycleService(
        workspaces=workspaces,
        runner=fake_runner,
        reconciler=reconciler,
        terraform_binary="terraform",
        clock=clock,
    )


@pytest.fixture
def client(service):
    app.dependency_overrides[get_lifecycle_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
