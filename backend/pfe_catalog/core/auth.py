"""
认证模块

功能说明：
    提供后端 API 的用户身份认证与角色校验。
    所有需要用户身份的接口都通过此模块获取 SessionContext，并显式传给业务服务。

认证方式：
    - 生产模式：从 Authorization: Bearer <token>（或 Cookie access_token）读取 Supabase access token
                → 调用 Supabase Auth 获取用户 → 读取 users 表得到角色
    - 开发模式：直接使用环境变量中的 DEV_USER_ID

主要函数：
    - get_session_context(): 必须登录的接口使用
    - require_student() / require_validator() / require_admin(): 按角色限制
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, Request, status

from pfe_catalog.core.config import settings
from pfe_catalog.core.exceptions import AuthError, StoreError
from pfe_catalog.schemas.user import Role, SessionContext

logger = logging.getLogger(__name__)


def _extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get("access_token")


# ===================== 核心认证函数 =====================

def get_session_context(request: Request) -> SessionContext:
    """
    获取当前会话上下文（必须登录）。

    开发模式 (DEV_MODE=true):
        使用 DEV_USER_ID 对应的 users 记录

    生产模式:
        1. 读取 access token
        2. identity_service.resolve_session() 解析用户与角色

    Raises:
        HTTPException 401: 未登录或认证失败
    """
    from pfe_catalog.services.identity_service import identity_service

    try:
        if settings.DEV_MODE and settings.DEV_USER_ID:
            logger.debug(f"[Auth] 开发模式：使用固定 user_id = {settings.DEV_USER_ID}")
            return identity_service.context_for(settings.DEV_USER_ID)

        token = _extract_token(request)
        if not token:
            raise AuthError("Non authentifié")
        return identity_service.resolve_session(token)

    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except StoreError as e:
        logger.error(f"[Auth] 认证失败: {e.detail}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Impossible de vérifier la session")


def get_active_session(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
    """写操作使用：停用账户返回 403"""
    if not ctx.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Compte désactivé")
    return ctx


# ===================== 角色限制 =====================

def require_student(ctx: SessionContext = Depends(get_active_session)) -> SessionContext:
    if ctx.role != Role.STUDENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Réservé aux étudiants")
    return ctx


def require_validator(ctx: SessionContext = Depends(get_active_session)) -> SessionContext:
    if not ctx.is_validator:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Réservé aux enseignants et administrateurs")
    return ctx


def require_admin(ctx: SessionContext = Depends(get_active_session)) -> SessionContext:
    if ctx.role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Réservé aux administrateurs")
    return ctx
