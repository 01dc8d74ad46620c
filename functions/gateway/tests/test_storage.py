import unittest
from unittest.mock import MagicMock, patch

import requests

from gateway.storage import (
    InMemoryStorageClient,
    S3StorageClient,
    StorageError,
    SupabaseStorageClient,
)


def _response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(str(status_code))
    return response


class SupabaseStorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("gateway.storage.requests.post")
        self.http_post = patcher.start()
        self.addCleanup(patcher.stop)
        self.client = SupabaseStorageClient(
            base_url="https://proj.example.co",
            service_key="service-key",
            bucket="comments-attachments",
        )

    def test_signed_upload_url(self):
        self.http_post.return_value = _response(
            {"url": "/object/upload/sign/comments-attachments/req-1/a b.png?token=abc"}
        )
        ticket = self.client.create_signed_upload_url("req-1/a b.png")
        self.assertEqual(ticket.path, "req-1/a b.png")
        self.assertEqual(ticket.token, "abc")
        self.assertEqual(
            ticket.signed_url,
            "https://proj.example.co/storage/v1/object/upload/sign/"
            "comments-attachments/req-1/a b.png?token=abc",
        )
        args, kwargs = self.http_post.call_args
        self.assertEqual(
            args[0],
            "https://proj.example.co/storage/v1/object/upload/sign/"
            "comments-attachments/req-1/a%20b.png",
        )
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer service-key")
        self.assertEqual(kwargs["headers"]["apikey"], "service-key")

    def test_signed_download_url(self):
        self.http_post.return_value = _response(
            {"signedURL": "/object/sign/comments-attachments/req-1/a.png?token=xyz"}
        )
        url = self.client.create_signed_url("req-1/a.png", expires_in=600)
        self.assertEqual(
            url,
            "https://proj.example.co/storage/v1/object/sign/"
            "comments-attachments/req-1/a.png?token=xyz",
        )
        _, kwargs = self.http_post.call_args
        self.assertEqual(kwargs["json"], {"expiresIn": 600})

    def test_http_error_raises_storage_error(self):
        self.http_post.return_value = _response({"error": "nope"}, status_code=400)
        with self.assertRaises(StorageError):
            self.client.create_signed_url("req-1/a.png")

    def test_transport_error_raises_storage_error(self):
        self.http_post.side_effect = requests.ConnectionError("down")
        with self.assertRaises(StorageError):
            self.client.create_signed_upload_url("req-1/a.png")

    def test_response_without_token(self):
        self.http_post.return_value = _response({"url": "/object/upload/sign/x"})
        with self.assertRaises(StorageError):
            self.client.create_signed_upload_url("x")


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        self.client = S3StorageClient(
            bucket="comments-attachments",
            region="us-east-1",
            endpoint="https://s3.example.test",
            access_key_id="AKIDEXAMPLE",
            secret_access_key="secret",
            upload_expires_in=900,
        )

    def test_presigned_upload_carries_signature_token(self):
        ticket = self.client.create_signed_upload_url("req-1/u_a.png")
        self.assertIn("req-1/u_a.png", ticket.signed_url)
        self.assertIn("X-Amz-Expires=900", ticket.signed_url)
        self.assertTrue(ticket.token)
        self.assertIn(ticket.token, ticket.signed_url)

    def test_presigned_download(self):
        url = self.client.create_signed_url("req-1/u_a.png", expires_in=600)
        self.assertIn("X-Amz-Expires=600", url)


class InMemoryStorageClientTests(unittest.TestCase):
    def test_records_requests_and_issues_fresh_tokens(self):
        storage = InMemoryStorageClient()
        first = storage.create_signed_url("p", expires_in=10)
        second = storage.create_signed_url("p", expires_in=10)
        self.assertNotEqual(first, second)
        self.assertEqual(storage.download_requests, [("p", 10), ("p", 10)])

        ticket = storage.create_signed_upload_url("q")
        self.assertEqual(ticket.as_dict()["path"], "q")
        self.assertEqual(storage.upload_requests, ["q"])


if __name__ == "__main__":
    unittest.main()
