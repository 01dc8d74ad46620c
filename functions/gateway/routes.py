"""
HTTP routes for the comments gateway.

Each path accepts every verb so that origin and method checks run in a fixed
order and always answer with JSON and CORS headers:

    OPTIONS preflight -> origin -> method -> access token -> operation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Type, TypeVar

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from gateway import errors
from gateway.auth import CallerIdentity, TokenVerifier
from gateway.config import Settings
from gateway.dependencies import GatewayServices
from gateway.errors import (
    GatewayError,
    MethodNotAllowed,
    OriginRejected,
    Unauthorized,
    ValidationFailed,
)
from gateway.handlers import (
    CommentDeleter,
    CommentWriter,
    DownloadPresigner,
    UploadPresigner,
)
from gateway.origin_policy import CorsConfig, OriginPolicy
from gateway.schemas import (
    AddCommentRequest,
    CommentResponse,
    DeleteCommentResponse,
    ErrorResponse,
    SignedUrlResponse,
    UploadPresignRequest,
    UploadPresignResponse,
    UploadTicketPayload,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "X-Main-Access-Token"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

ModelT = TypeVar("ModelT", bound=BaseModel)
Operation = Callable[[Request, CallerIdentity], Awaitable[BaseModel]]


async def read_body(request: Request, model: Type[ModelT]) -> ModelT:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailed(errors.MISSING_PARAMS)
    if not isinstance(body, dict):
        raise ValidationFailed(errors.MISSING_PARAMS)
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        logger.info("Rejected %s body: %s", model.__name__, exc.errors())
        raise ValidationFailed(errors.MISSING_PARAMS)


@dataclass
class Endpoint:
    """Request pipeline shared by every gateway path."""

    method: str
    origin_policy: OriginPolicy
    cors: CorsConfig
    verifier: TokenVerifier

    async def authenticate(self, request: Request) -> CallerIdentity:
        token = request.headers.get(ACCESS_TOKEN_HEADER, "")
        if not token:
            raise Unauthorized(errors.TOKEN_MISSING)
        caller = await run_in_threadpool(self.verifier.verify, token)
        if caller is None:
            raise Unauthorized(errors.TOKEN_INVALID)
        return caller

    async def handle(self, request: Request, operation: Operation) -> Response:
        origin = request.headers.get("origin")
        headers = self.cors.headers_for(origin)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        try:
            if not self.origin_policy.allows(origin):
                logger.warning("Rejected origin %r on %s", origin, request.url.path)
                raise OriginRejected()
            if request.method != self.method:
                raise MethodNotAllowed()
            caller = await self.authenticate(request)
            result = await operation(request, caller)
        except GatewayError as exc:
            return JSONResponse(
                ErrorResponse(error=exc.message).model_dump(),
                status_code=exc.status_code,
                headers=headers,
            )
        except Exception:
            logger.exception("Unhandled error on %s", request.url.path)
            return JSONResponse(
                ErrorResponse(error=errors.UNEXPECTED_ERROR).model_dump(),
                status_code=500,
                headers=headers,
            )
        return JSONResponse(
            jsonable_encoder(result.model_dump()), status_code=200, headers=headers
        )


def create_router(settings: Settings, services: GatewayServices) -> APIRouter:
    router = APIRouter()
    allow_list = settings.allowed_origin_list

    writer = CommentWriter(services.db)
    deleter = CommentDeleter(services.db)
    uploads = UploadPresigner(services.storage, settings)
    downloads = DownloadPresigner(services.storage, settings)

    add_endpoint = Endpoint(
        method="POST",
        origin_policy=OriginPolicy.from_allow_list(allow_list),
        cors=CorsConfig(methods=("POST", "OPTIONS"), max_age=86400),
        verifier=services.verifier,
    )
    delete_endpoint = Endpoint(
        method="DELETE",
        origin_policy=OriginPolicy.from_allow_list(allow_list),
        cors=CorsConfig(methods=("DELETE", "OPTIONS"), max_age=86400),
        verifier=services.verifier,
    )
    file_url_endpoint = Endpoint(
        method="GET",
        origin_policy=OriginPolicy.from_allow_list(allow_list, allow_local=True),
        cors=CorsConfig(methods=("GET", "OPTIONS")),
        verifier=services.verifier,
    )
    upload_endpoint = Endpoint(
        method="POST",
        origin_policy=OriginPolicy.from_allow_list(
            allow_list, patterns=settings.upload_origin_patterns
        ),
        cors=CorsConfig(
            methods=("POST", "OPTIONS"),
            headers=("Content-Type", ACCESS_TOKEN_HEADER, "Authorization"),
            allow_credentials=True,
        ),
        verifier=services.verifier,
    )

    @router.api_route("/comments-add", methods=ALL_METHODS)
    async def comments_add(request: Request):
        async def operation(request: Request, caller: CallerIdentity):
            payload = await read_body(request, AddCommentRequest)
            data = await run_in_threadpool(writer.add_comment, caller, payload)
            return CommentResponse(data=data)

        return await add_endpoint.handle(request, operation)

    @router.api_route("/comments-delete", methods=ALL_METHODS)
    async def comments_delete(request: Request):
        async def operation(request: Request, caller: CallerIdentity):
            comment_id = request.query_params.get("id", "")
            await run_in_threadpool(deleter.delete_comment, caller, comment_id)
            return DeleteCommentResponse()

        return await delete_endpoint.handle(request, operation)

    @router.api_route("/comments-file-url", methods=ALL_METHODS)
    async def comments_file_url(request: Request):
        async def operation(request: Request, caller: CallerIdentity):
            path = request.query_params.get("path", "")
            url = await run_in_threadpool(downloads.presign_download, caller, path)
            return SignedUrlResponse(url=url)

        return await file_url_endpoint.handle(request, operation)

    @router.api_route("/comments-upload-presign", methods=ALL_METHODS)
    async def comments_upload_presign(request: Request):
        async def operation(request: Request, caller: CallerIdentity):
            payload = await read_body(request, UploadPresignRequest)
            tickets = await run_in_threadpool(uploads.presign_uploads, caller, payload)
            return UploadPresignResponse(
                uploads=[UploadTicketPayload(**t.as_dict()) for t in tickets]
            )

        return await upload_endpoint.handle(request, operation)

    return router
