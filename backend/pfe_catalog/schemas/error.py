from typing import Any, Dict, Optional
from pydantic import BaseModel

class ErrorResponse(BaseModel):
    """统一错误响应，由 main.py 的异常处理器生成"""
    error: str  # 异常类名，如 FormValidationError
    message: str  # 面向用户的提示（法语）
    detail: Optional[str] = None
    code: Optional[str] = None
    extra: Dict[str, Any] = {}
