"""
Business operations behind each gateway endpoint.

Every operation runs only after the caller's main-project token has been
verified, and issues its dependent calls strictly one after another.
"""

from __future__ import annotations

import logging
import re
import uuid

from gateway import errors
from gateway.auth import CallerIdentity
from gateway.config import Settings
from gateway.db import AttachmentRecord, CommentRecord, DataStoreError, DbClient
from gateway.errors import DependencyFailure, Forbidden, ValidationFailed
from gateway.schemas import AddCommentRequest, UploadFileSpec, UploadPresignRequest
from gateway.storage import StorageClient, StorageError, UploadTicket

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class CommentWriter:
    """
    Creates a comment for the verified caller.

    The comment row is authoritative. Attachment descriptors are written
    afterwards on a best-effort basis: a failed descriptor is logged and
    skipped, never rolled back or reported, and ``attachments_count`` keeps
    the declared count. The caller receives the data store's public
    projection; if that read fails the request fails although the comment
    row is already committed.
    """

    def __init__(self, db: DbClient):
        self.db = db

    def add_comment(self, caller: CallerIdentity, request: AddCommentRequest) -> dict:
        comment = CommentRecord(
            requirement_id=request.requirement_id,
            content=request.content,
            author_external_id=caller.id,
            author_email=caller.email,
            parent_id=request.parent_id,
            attachments_count=len(request.attachments),
        )
        try:
            comment = self.db.insert_comment(comment)
        except DataStoreError as exc:
            logger.error("Insert comment failed for %s: %s", caller.id, exc)
            raise DependencyFailure(errors.ADD_COMMENT_FAILED) from exc

        failed = 0
        for attachment in request.attachments:
            record = AttachmentRecord(
                comment_id=comment.id,
                file_path=attachment.path,
                file_name=attachment.name,
                mime_type=attachment.type,
                size=attachment.size,
            )
            try:
                self.db.insert_attachment(record)
            except DataStoreError as exc:
                failed += 1
                logger.warning(
                    "Attachment %s for comment %s not recorded: %s",
                    attachment.path,
                    comment.id,
                    exc,
                )
        if failed:
            logger.warning(
                "Comment %s stored with %d of %d attachment descriptors",
                comment.id,
                len(request.attachments) - failed,
                len(request.attachments),
            )

        try:
            projection = self.db.get_public_comment(comment.id)
        except DataStoreError as exc:
            logger.error("Read back of comment %s failed: %s", comment.id, exc)
            raise DependencyFailure(errors.FETCH_COMMENT_FAILED) from exc
        if projection is None:
            logger.error("Comment %s missing from public projection", comment.id)
            raise DependencyFailure(errors.FETCH_COMMENT_FAILED)

        logger.info(
            "Comment %s added to requirement %s by %s",
            comment.id,
            comment.requirement_id,
            caller.id,
        )
        return projection


class CommentDeleter:
    """Deletes a comment, but only one authored by the caller."""

    def __init__(self, db: DbClient):
        self.db = db

    def delete_comment(self, caller: CallerIdentity, comment_id: str) -> None:
        if not comment_id:
            raise ValidationFailed(errors.MISSING_COMMENT_ID)
        try:
            existing = self.db.get_comment_for_author(comment_id, caller.id)
        except DataStoreError as exc:
            logger.error("Lookup of comment %s failed: %s", comment_id, exc)
            existing = None
        if existing is None:
            raise Forbidden(errors.DELETE_NOT_PERMITTED)

        try:
            self.db.delete_comment(comment_id, caller.id)
        except DataStoreError as exc:
            logger.error("Delete of comment %s failed: %s", comment_id, exc)
            raise DependencyFailure(errors.DELETE_COMMENT_FAILED) from exc
        logger.info("Comment %s deleted by %s", comment_id, caller.id)


def sanitize_file_name(name: str | None) -> str:
    name = re.sub(r"[\\/]+", "_", str(name or "file"))
    name = re.sub(r"\s+", "_", name)
    return name or "file"


def build_storage_path(requirement_id: str, file_name: str | None) -> str:
    return f"{requirement_id}/{uuid.uuid4()}_{sanitize_file_name(file_name)}"


class UploadPresigner:
    """Issues signed upload tickets for a batch of declared files."""

    def __init__(self, storage: StorageClient, settings: Settings):
        self.storage = storage
        self.image_max_mb = settings.image_max_mb
        self.file_max_mb = settings.file_max_mb

    def size_limit_mb(self, mime_type: str | None) -> int:
        if (mime_type or "").startswith("image/"):
            return self.image_max_mb
        return self.file_max_mb

    def check_size(self, spec: UploadFileSpec) -> None:
        max_mb = self.size_limit_mb(spec.type)
        if spec.size > max_mb * BYTES_PER_MB:
            raise ValidationFailed(
                errors.file_too_large(sanitize_file_name(spec.name), max_mb)
            )

    def presign_uploads(
        self, caller: CallerIdentity, request: UploadPresignRequest
    ) -> list[UploadTicket]:
        # Whole batch is rejected before any ticket is requested.
        for spec in request.files:
            self.check_size(spec)

        tickets: list[UploadTicket] = []
        for spec in request.files:
            path = build_storage_path(request.requirement_id, spec.name)
            try:
                tickets.append(self.storage.create_signed_upload_url(path))
            except StorageError as exc:
                logger.error("Signed upload url for %s failed: %s", path, exc)
                raise DependencyFailure(errors.UPLOAD_SIGN_FAILED) from exc

        logger.info(
            "Issued %d upload tickets on requirement %s for %s",
            len(tickets),
            request.requirement_id,
            caller.id,
        )
        return tickets


class DownloadPresigner:
    """
    Issues a short-lived download URL for a stored attachment.

    Any verified caller may request any path; there is no link between the
    caller and the comment that owns the file.
    """

    def __init__(self, storage: StorageClient, settings: Settings):
        self.storage = storage
        self.expires_in = settings.comments_fileurl_expires

    def presign_download(self, caller: CallerIdentity, path: str) -> str:
        if not path:
            raise ValidationFailed(errors.MISSING_PATH)
        try:
            url = self.storage.create_signed_url(path, expires_in=self.expires_in)
        except StorageError as exc:
            logger.error("Signed url for %s failed: %s", path, exc)
            raise DependencyFailure(errors.DOWNLOAD_SIGN_FAILED) from exc
        logger.info("Signed download url for %s issued to %s", path, caller.id)
        return url
