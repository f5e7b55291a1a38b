"""Tests for the MinIO attachment backend against a stub client."""
import json

import pytest

from app.services import storage_minio


class RecordingMinio:
    """Stands in for minio.Minio and records bucket setup calls."""

    def __init__(self, endpoint, access_key=None, secret_key=None, secure=False):
        self.endpoint = endpoint
        self.buckets = set()
        self.policies = {}

    def bucket_exists(self, bucket):
        return bucket in self.buckets

    def make_bucket(self, bucket):
        self.buckets.add(bucket)

    def set_bucket_policy(self, bucket, policy):
        self.policies[bucket] = json.loads(policy)


@pytest.fixture
def backend(monkeypatch):
    monkeypatch.setattr(storage_minio, "Minio", RecordingMinio)
    return storage_minio.MinIOStorageBackend()


def test_attachment_prefixes_are_publicly_readable(backend):
    policy = backend.client.policies[backend.bucket]
    [statement] = policy["Statement"]

    assert backend.bucket in backend.client.buckets
    assert statement["Effect"] == "Allow"
    assert statement["Action"] == ["s3:GetObject"]
    assert statement["Principal"] == {"AWS": ["*"]}
    assert statement["Resource"] == [
        f"arn:aws:s3:::{backend.bucket}/attachments/*",
        f"arn:aws:s3:::{backend.bucket}/repairs/*",
    ]


def test_url_points_at_public_endpoint(backend):
    url = backend.get_url("attachments/20261018090000_01001.jpg")
    assert url.endswith(f"/{backend.bucket}/attachments/20261018090000_01001.jpg")
    assert url.startswith(("http://", "https://"))
