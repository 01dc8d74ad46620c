"""
Error types surfaced to callers as ``{"error": ...}`` JSON bodies.

Messages are the user-facing strings the comments front-end displays as-is.
"""

from __future__ import annotations

ORIGIN_REJECTED = "不允许的来源"
METHOD_NOT_ALLOWED = "方法不允许"
TOKEN_MISSING = "未提供主项目访问令牌"
TOKEN_INVALID = "主项目访问令牌无效"
MISSING_PARAMS = "缺少必要参数"
MISSING_PATH = "缺少 path 参数"
MISSING_COMMENT_ID = "缺少评论 ID"
ADD_COMMENT_FAILED = "添加评论失败"
FETCH_COMMENT_FAILED = "获取评论失败"
DELETE_NOT_PERMITTED = "评论不存在或您无权删除"
DELETE_COMMENT_FAILED = "删除评论失败"
UPLOAD_SIGN_FAILED = "生成上传令牌失败"
DOWNLOAD_SIGN_FAILED = "创建签名地址失败"
UNEXPECTED_ERROR = "处理请求时出错"


def file_too_large(name: str, max_mb: int) -> str:
    return f"{name} 超过大小限制 {max_mb}MB"


class GatewayError(Exception):
    """Base class for errors that map to a single HTTP response."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class OriginRejected(GatewayError):
    status_code = 403

    def __init__(self, message: str = ORIGIN_REJECTED):
        super().__init__(message)


class MethodNotAllowed(GatewayError):
    status_code = 405

    def __init__(self, message: str = METHOD_NOT_ALLOWED):
        super().__init__(message)


class Unauthorized(GatewayError):
    status_code = 401


class ValidationFailed(GatewayError):
    status_code = 400


class Forbidden(GatewayError):
    status_code = 403


class DependencyFailure(GatewayError):
    """A data-store or storage call failed; details stay in the server log."""

    status_code = 500
