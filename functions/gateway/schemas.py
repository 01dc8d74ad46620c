"""
Pydantic schemas for the gateway request bodies and JSON responses.

Request models are lenient the way the browser client is: ``null`` in an
optional field means "use the default", and numeric ids are taken as strings.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def _truthy_as_str(value: Any) -> Any:
    # Numbers are ids too; falsy values are left for the field to reject.
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
        return str(value)
    return value


def _str_or_default(value: Any, default: str) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _zero_if_null(value: Any) -> Any:
    return 0 if value is None or value == "" else value


class AttachmentPayload(BaseModel):
    path: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: str = ""
    size: int = Field(default=0, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _type_default(cls, value: Any) -> Any:
        return _str_or_default(value, "")

    @field_validator("size", mode="before")
    @classmethod
    def _size_default(cls, value: Any) -> Any:
        return _zero_if_null(value)


class AddCommentRequest(BaseModel):
    requirement_id: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
    attachments: list[AttachmentPayload] = Field(default_factory=list)

    @field_validator("requirement_id", "parent_id", mode="before")
    @classmethod
    def _ids_as_str(cls, value: Any) -> Any:
        return _truthy_as_str(value)

    @field_validator("attachments", mode="before")
    @classmethod
    def _attachments_default(cls, value: Any) -> Any:
        return [] if value is None else value


class UploadFileSpec(BaseModel):
    name: str = "file"
    type: str = ""
    size: float = Field(default=0, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value: Any) -> Any:
        return _str_or_default(value, "file")

    @field_validator("type", mode="before")
    @classmethod
    def _type_default(cls, value: Any) -> Any:
        return _str_or_default(value, "")

    @field_validator("size", mode="before")
    @classmethod
    def _size_default(cls, value: Any) -> Any:
        return _zero_if_null(value)


class UploadPresignRequest(BaseModel):
    requirement_id: str = Field(..., min_length=1)
    files: list[UploadFileSpec] = Field(..., min_length=1)

    @field_validator("requirement_id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return _truthy_as_str(value)


class CommentResponse(BaseModel):
    success: Literal[True] = True
    data: dict


class UploadTicketPayload(BaseModel):
    path: str
    token: str
    signedUrl: str


class UploadPresignResponse(BaseModel):
    success: Literal[True] = True
    uploads: list[UploadTicketPayload]


class SignedUrlResponse(BaseModel):
    success: Literal[True] = True
    url: str


class DeleteCommentResponse(BaseModel):
    success: Literal[True] = True


class ErrorResponse(BaseModel):
    error: str
