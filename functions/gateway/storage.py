"""
Storage abstraction for comment attachments: the comments project's storage
REST API, an S3-compatible endpoint, and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import parse_qs, quote, urlparse

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class StorageError(Exception):
    """Raised when the storage backend cannot issue a signed URL."""


@dataclass(frozen=True)
class UploadTicket:
    path: str
    token: str
    signed_url: str

    def as_dict(self) -> dict:
        return {"path": self.path, "token": self.token, "signedUrl": self.signed_url}


class StorageClient(Protocol):
    """Defines the operations the gateway needs from object storage."""

    def create_signed_upload_url(self, path: str) -> UploadTicket:
        ...

    def create_signed_url(self, path: str, expires_in: int = 600) -> str:
        ...


def _query_param(url: str, name: str) -> str:
    values = parse_qs(urlparse(url).query).get(name)
    return values[0] if values else ""


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    bucket: str = "comments-attachments"
    upload_requests: list = field(default_factory=list)
    download_requests: list = field(default_factory=list)

    def create_signed_upload_url(self, path: str) -> UploadTicket:
        self.upload_requests.append(path)
        token = uuid.uuid4().hex
        return UploadTicket(
            path=path,
            token=token,
            signed_url=f"{self.base_url}/upload/{self.bucket}/{path}?token={token}",
        )

    def create_signed_url(self, path: str, expires_in: int = 600) -> str:
        self.download_requests.append((path, expires_in))
        token = uuid.uuid4().hex
        return (
            f"{self.base_url}/sign/{self.bucket}/{path}"
            f"?token={token}&expires={expires_in}"
        )


@dataclass
class SupabaseStorageClient:
    """
    Storage REST client for the comments project, authenticated with the
    service-role key. Signing happens server side; we only relay the result.
    """

    base_url: str
    service_key: str
    bucket: str
    timeout: float | None = None

    @property
    def storage_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/storage/v1"

    def _post(self, endpoint: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.storage_url}/{endpoint}/{self.bucket}/{quote(path)}"
        try:
            response = requests.post(
                url,
                json=payload or {},
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise StorageError(f"{endpoint} {path}: {exc}") from exc

    def create_signed_upload_url(self, path: str) -> UploadTicket:
        data = self._post("object/upload/sign", path)
        relative = data.get("url")
        if not relative:
            raise StorageError(f"signed upload response for {path} has no url")
        signed_url = f"{self.storage_url}{relative}"
        token = _query_param(signed_url, "token")
        if not token:
            raise StorageError(f"signed upload url for {path} has no token")
        return UploadTicket(path=path, token=token, signed_url=signed_url)

    def create_signed_url(self, path: str, expires_in: int = 600) -> str:
        data = self._post("object/sign", path, {"expiresIn": expires_in})
        relative = data.get("signedURL") or data.get("signedUrl")
        if not relative:
            raise StorageError(f"signed url response for {path} has no url")
        return f"{self.storage_url}{relative}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client for the comments project bucket.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    upload_expires_in: int = 7200

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def create_signed_upload_url(self, path: str) -> UploadTicket:
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="put_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=self.upload_expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"presign put {path}: {exc}") from exc
        # The signature is the only per-upload secret in a presigned PUT.
        return UploadTicket(
            path=path, token=_query_param(url, "X-Amz-Signature"), signed_url=url
        )

    def create_signed_url(self, path: str, expires_in: int = 600) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"presign get {path}: {exc}") from exc
