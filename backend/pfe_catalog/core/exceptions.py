"""
exceptions.py
业务异常定义。

分类：
    - 输入校验错误（表单、邮箱、驳回意见、检查清单）：在任何数据库调用之前抛出，不重试。
    - 数据库 / 认证服务错误：统一转换为通用失败提示。
    - 权限错误：当前角色不可执行该操作。

所有异常都携带 status_code 与 code，由 main.py 中的异常处理器渲染为 ErrorResponse。
"""

from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """业务异常基类"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.extra = extra or {}


class FormValidationError(CatalogError):
    """提交表单未通过校验"""

    status_code = 400
    code = "FORM_INVALID"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, extra={"field": field} if field else None)
        self.field = field


class ChecklistIncompleteError(CatalogError):
    """验证检查清单未全部勾选"""

    status_code = 400
    code = "CHECKLIST_INCOMPLETE"

    def __init__(self, unmet: List[str], labels: Optional[List[str]] = None):
        super().__init__(
            "Veuillez cocher tous les critères de validation",
            detail=", ".join(labels or unmet),
            extra={"unmet": unmet},
        )
        self.unmet = unmet


class InvalidTransitionError(CatalogError):
    """报告当前状态不允许该操作（只有 pending 可以被验证或驳回）"""

    status_code = 409
    code = "INVALID_TRANSITION"


class AuthError(CatalogError):
    """登录、注册或会话解析失败"""

    status_code = 401
    code = "AUTH_FAILED"


class PermissionDeniedError(CatalogError):
    status_code = 403
    code = "PERMISSION_DENIED"


class NotFoundError(CatalogError):
    status_code = 404
    code = "NOT_FOUND"


class StoreError(CatalogError):
    """Supabase 请求失败（网络或 RLS 策略）"""

    status_code = 502
    code = "STORE_ERROR"
