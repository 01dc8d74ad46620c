"""
Data-store access for comments: Postgres via SQLAlchemy, the comments project's
table REST API, and an in-memory test implementation.

The gateway only writes ``comments`` and ``comment_attachments`` rows and reads
back the ``comments_public`` projection. The projection (which author fields
are masked) is defined by the data store, not here.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

import requests
from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

PUBLIC_COMMENTS_VIEW = "comments_public"


class DataStoreError(Exception):
    """Raised when a data-store read or write fails."""


class DbClient(Protocol):
    """Interface for comment persistence."""

    def insert_comment(self, comment: "CommentRecord") -> "CommentRecord":
        ...

    def insert_attachment(self, attachment: "AttachmentRecord") -> None:
        ...

    def get_public_comment(self, comment_id: str) -> Optional[dict]:
        ...

    def get_comment_for_author(
        self, comment_id: str, author_external_id: str
    ) -> Optional["CommentRecord"]:
        ...

    def delete_comment(self, comment_id: str, author_external_id: str) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CommentRecord:
    requirement_id: str
    content: str
    author_external_id: str
    author_email: str
    parent_id: Optional[str] = None
    attachments_count: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "requirement_id": self.requirement_id,
            "content": self.content,
            "author_external_id": self.author_external_id,
            "author_email": self.author_email,
            "parent_id": self.parent_id,
            "attachments_count": self.attachments_count,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AttachmentRecord:
    comment_id: str
    file_path: str
    file_name: str
    mime_type: str
    size: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "comment_id": self.comment_id,
            "file_path": self.file_path,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "size": self.size,
        }


def mask_identifier(value: str, keep: int = 4) -> str:
    if not value:
        return ""
    return value[:keep] + "***"


def mask_email(value: str) -> str:
    if not value or "@" not in value:
        return mask_identifier(value, keep=2)
    local, _, domain = value.partition("@")
    return f"{local[:2]}***@{domain}"


def public_projection(comment: CommentRecord) -> dict:
    """Shape of a ``comments_public`` row for a comment with no raw author fields."""
    return {
        "id": comment.id,
        "requirement_id": comment.requirement_id,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "attachments_count": comment.attachments_count,
        "user_id_masked": mask_identifier(comment.author_external_id),
        "user_email_masked": mask_email(comment.author_email),
        "created_at": comment.created_at.isoformat(),
    }


class InMemoryDbClient:
    """Simple in-memory data store for development and tests."""

    def __init__(self):
        self.comments: Dict[str, CommentRecord] = {}
        self.attachments: list[AttachmentRecord] = []

    def insert_comment(self, comment: CommentRecord) -> CommentRecord:
        self.comments[comment.id] = comment
        return comment

    def insert_attachment(self, attachment: AttachmentRecord) -> None:
        if attachment.comment_id not in self.comments:
            raise DataStoreError(f"comment {attachment.comment_id} does not exist")
        self.attachments.append(attachment)

    def get_public_comment(self, comment_id: str) -> Optional[dict]:
        comment = self.comments.get(comment_id)
        return public_projection(comment) if comment else None

    def get_comment_for_author(
        self, comment_id: str, author_external_id: str
    ) -> Optional[CommentRecord]:
        comment = self.comments.get(comment_id)
        if comment and comment.author_external_id == author_external_id:
            return comment
        return None

    def delete_comment(self, comment_id: str, author_external_id: str) -> None:
        comment = self.get_comment_for_author(comment_id, author_external_id)
        if comment:
            del self.comments[comment_id]

    def attachments_for(self, comment_id: str) -> list[AttachmentRecord]:
        return [a for a in self.attachments if a.comment_id == comment_id]


def _record_from_row(row: dict) -> CommentRecord:
    created_at = row.get("created_at")
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    return CommentRecord(
        id=str(row["id"]),
        requirement_id=str(row["requirement_id"]),
        content=row["content"],
        author_external_id=row["author_external_id"],
        author_email=row.get("author_email") or "",
        parent_id=row.get("parent_id"),
        attachments_count=row.get("attachments_count") or 0,
        created_at=created_at or _utcnow(),
    )


@dataclass
class SupabaseRestDbClient:
    """
    Table REST client for the comments project, authenticated with the
    service-role key. Row filters use the ``column=eq.value`` query syntax.
    """

    base_url: str
    service_key: str
    timeout: float | None = None

    @property
    def rest_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/v1"

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict | None = None,
        payload: dict | None = None,
        prefer: str | None = None,
    ) -> list:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        if prefer:
            headers["Prefer"] = prefer
        try:
            response = requests.request(
                method,
                f"{self.rest_url}/{table}",
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if not response.content:
                return []
            rows = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DataStoreError(f"{method} {table}: {exc}") from exc
        return rows if isinstance(rows, list) else [rows]

    def insert_comment(self, comment: CommentRecord) -> CommentRecord:
        rows = self._request(
            "POST", "comments", payload=comment.as_dict(), prefer="return=representation"
        )
        if not rows:
            raise DataStoreError(f"insert of comment {comment.id} returned no row")
        try:
            return _record_from_row(rows[0])
        except (KeyError, ValueError) as exc:
            raise DataStoreError(f"unexpected comment row: {exc}") from exc

    def insert_attachment(self, attachment: AttachmentRecord) -> None:
        self._request(
            "POST",
            "comment_attachments",
            payload=attachment.as_dict(),
            prefer="return=minimal",
        )

    def get_public_comment(self, comment_id: str) -> Optional[dict]:
        rows = self._request(
            "GET",
            PUBLIC_COMMENTS_VIEW,
            params={"select": "*", "id": f"eq.{comment_id}"},
        )
        return rows[0] if rows else None

    def get_comment_for_author(
        self, comment_id: str, author_external_id: str
    ) -> Optional[CommentRecord]:
        rows = self._request(
            "GET",
            "comments",
            params={
                "select": "*",
                "id": f"eq.{comment_id}",
                "author_external_id": f"eq.{author_external_id}",
            },
        )
        if not rows:
            return None
        try:
            return _record_from_row(rows[0])
        except (KeyError, ValueError) as exc:
            raise DataStoreError(f"unexpected comment row: {exc}") from exc

    def delete_comment(self, comment_id: str, author_external_id: str) -> None:
        self._request(
            "DELETE",
            "comments",
            params={
                "id": f"eq.{comment_id}",
                "author_external_id": f"eq.{author_external_id}",
            },
        )


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, create_schema: bool = False):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        if create_schema:
            Base.metadata.create_all(self.engine)

    def _to_comment_record(self, row: "CommentRow") -> CommentRecord:
        return CommentRecord(
            id=row.id,
            requirement_id=row.requirement_id,
            content=row.content,
            author_external_id=row.author_external_id,
            author_email=row.author_email,
            parent_id=row.parent_id,
            attachments_count=row.attachments_count,
            created_at=row.created_at,
        )

    def insert_comment(self, comment: CommentRecord) -> CommentRecord:
        try:
            with self.Session() as session:
                row = CommentRow(
                    id=comment.id,
                    requirement_id=comment.requirement_id,
                    content=comment.content,
                    author_external_id=comment.author_external_id,
                    author_email=comment.author_email,
                    parent_id=comment.parent_id,
                    attachments_count=comment.attachments_count,
                    created_at=comment.created_at,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_comment_record(row)
        except SQLAlchemyError as exc:
            raise DataStoreError(f"insert comment failed: {exc}") from exc

    def insert_attachment(self, attachment: AttachmentRecord) -> None:
        try:
            with self.Session() as session:
                session.add(
                    AttachmentRow(
                        id=attachment.id,
                        comment_id=attachment.comment_id,
                        file_path=attachment.file_path,
                        file_name=attachment.file_name,
                        mime_type=attachment.mime_type,
                        size=attachment.size,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise DataStoreError(f"insert attachment failed: {exc}") from exc

    def get_public_comment(self, comment_id: str) -> Optional[dict]:
        stmt = text(f"SELECT * FROM {PUBLIC_COMMENTS_VIEW} WHERE id = :id")
        try:
            with self.Session() as session:
                row = session.execute(stmt, {"id": comment_id}).mappings().first()
                return dict(row) if row else None
        except SQLAlchemyError as exc:
            raise DataStoreError(f"read public comment failed: {exc}") from exc

    def get_comment_for_author(
        self, comment_id: str, author_external_id: str
    ) -> Optional[CommentRecord]:
        try:
            with self.Session() as session:
                row = (
                    session.query(CommentRow)
                    .filter(
                        CommentRow.id == comment_id,
                        CommentRow.author_external_id == author_external_id,
                    )
                    .one_or_none()
                )
                return self._to_comment_record(row) if row else None
        except SQLAlchemyError as exc:
            raise DataStoreError(f"read comment failed: {exc}") from exc

    def delete_comment(self, comment_id: str, author_external_id: str) -> None:
        try:
            with self.Session() as session:
                session.query(CommentRow).filter(
                    CommentRow.id == comment_id,
                    CommentRow.author_external_id == author_external_id,
                ).delete(synchronize_session=False)
                session.commit()
        except SQLAlchemyError as exc:
            raise DataStoreError(f"delete comment failed: {exc}") from exc


Base = declarative_base()


class CommentRow(Base):
    __tablename__ = "comments"

    id = Column(String, primary_key=True)
    requirement_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    author_external_id = Column(String, nullable=False, index=True)
    author_email = Column(String, nullable=False)
    parent_id = Column(String, nullable=True, index=True)
    attachments_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class AttachmentRow(Base):
    __tablename__ = "comment_attachments"

    id = Column(String, primary_key=True)
    comment_id = Column(String, nullable=False, index=True)
    file_path = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
