from fastapi import APIRouter, Depends

from pfe_catalog.core.auth import get_session_context
from pfe_catalog.schemas.user import SessionContext, SignInRequest, SignUpRequest, User
from pfe_catalog.services.identity_service import identity_service
from pfe_catalog.services.submission_session import submission_sessions

router = APIRouter()


@router.post("/sign-in", response_model=SessionContext)
def sign_in(payload: SignInRequest):
    """
    登录 (Sign In)

    Returns:
        SessionContext: 包含 access_token，后续请求放在 Authorization: Bearer 头中。
    """
    return identity_service.sign_in(payload.email, payload.password)


@router.post("/sign-up", response_model=User)
def sign_up(payload: SignUpRequest):
    """注册新用户"""
    return identity_service.sign_up(payload)


@router.post("/sign-out")
def sign_out(ctx: SessionContext = Depends(get_session_context)):
    """
    退出登录。

    服务端无状态：客户端丢弃 token 即可。这里只关闭该用户的提交会话，移除自动保存任务。
    """
    submission_sessions.close(ctx)
    return {"success": True}


@router.get("/me", response_model=SessionContext)
def get_me(ctx: SessionContext = Depends(get_session_context)):
    """当前会话"""
    return ctx
