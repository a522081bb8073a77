"""
认证服务模块

功能说明：
  封装 Supabase Auth，并把认证用户映射到 users 表中的角色与资料。

主要功能：
  - sign_in() - 邮箱密码登录（先校验机构邮箱后缀），更新 last_login
  - sign_up() - 注册认证用户并创建同 id 的 users 记录
  - sign_out() / get_current_session() / on_session_change()
  - resolve_session() - 把 access token 解析为 SessionContext（供 API 依赖注入使用）
"""

import logging
from typing import Any, Callable, Optional

from pfe_catalog.core.config import settings
from pfe_catalog.core.database import DatabaseMixin, create_auth_client
from pfe_catalog.core.exceptions import AuthError, FormValidationError, StoreError
from pfe_catalog.core.utils import now_iso
from pfe_catalog.schemas.report import SPECIALTIES
from pfe_catalog.schemas.user import Role, SessionContext, SignUpRequest, User

logger = logging.getLogger(__name__)


def _error_message(e: Exception) -> str:
    return getattr(e, "message", None) or str(e)


class IdentityService(DatabaseMixin):
    """认证服务类"""

    def __init__(self, db=None, auth_client=None):
        self._db = db
        self._auth_client = auth_client

    @property
    def auth(self):
        """认证专用客户端的 auth 接口"""
        if self._auth_client is None:
            self._auth_client = create_auth_client()
        return self._auth_client.auth

    def check_institutional_email(self, email: str):
        """
        校验机构邮箱（在调用认证服务之前）。

        Raises:
            FormValidationError: 邮箱不以机构域名结尾
        """
        if not settings.is_institutional_email(email):
            raise FormValidationError(
                f"Utilisez votre email institutionnel {settings.INSTITUTION_EMAIL_DOMAIN}",
                field="email"
            )

    # ===================== users 表 =====================

    def get_user(self, user_id: str) -> Optional[User]:
        """
        根据 ID 获取 users 记录。

        Returns:
            Optional[User]: 用户对象，不存在时返回 None
        """
        try:
            response = self.db.table("users").select("*").eq("id", user_id).limit(1).execute()
        except Exception as e:
            logger.error(f"[认证] 读取用户 {user_id} 失败: {e}")
            raise StoreError("Erreur lors du chargement du profil", detail=str(e)) from e
        if response.data:
            return User(**response.data[0])
        return None

    def touch_last_login(self, user_id: str):
        """更新 last_login，失败只记录日志"""
        try:
            self.db.table("users").update({"last_login": now_iso()}).eq("id", user_id).execute()
        except Exception as e:
            logger.warning(f"[认证] 更新用户 {user_id} 的 last_login 失败: {e}")

    def context_for(self, user_id: str, access_token: Optional[str] = None) -> SessionContext:
        """
        根据 users 记录构造会话上下文（登录、token 解析与开发模式共用）。

        Raises:
            AuthError: users 表中没有该用户
        """
        user = self.get_user(user_id)
        if user is None:
            raise AuthError("Profil utilisateur introuvable", detail=user_id)
        return SessionContext.from_user(user, access_token=access_token)

    # ===================== 认证操作 =====================

    def sign_in(self, email: str, password: str) -> SessionContext:
        """
        邮箱密码登录。

        Args:
            email (str): 机构邮箱
            password (str): 密码

        Returns:
            SessionContext: 登录用户的会话上下文（包含 access_token）

        Raises:
            FormValidationError: 非机构邮箱（未调用认证服务）
            AuthError: 认证失败或 users 记录不存在
        """
        self.check_institutional_email(email)

        try:
            response = self.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.info(f"[认证] 登录失败 ({email}): {e}")
            raise AuthError(_error_message(e)) from e

        if not response.user or not response.session:
            raise AuthError("Connexion impossible")

        ctx = self.context_for(response.user.id, access_token=response.session.access_token)
        self.touch_last_login(ctx.user_id)
        logger.info(f"[认证] 用户 {ctx.user_id} 已登录 ({ctx.role.value})")
        return ctx

    def sign_up(self, request: SignUpRequest) -> User:
        """
        注册新用户。

        角色相关字段：学生必须填写专业与毕业年份，其他角色忽略这两个字段。

        Raises:
            FormValidationError: 非机构邮箱或缺少必填字段
            AuthError: 认证服务拒绝注册
            StoreError: 创建 users 记录失败
        """
        self.check_institutional_email(request.email)

        if not request.first_name.strip() or not request.last_name.strip():
            raise FormValidationError("Le prénom et le nom sont requis", field="first_name")

        specialty = request.specialty
        graduation_year = request.graduation_year
        if request.role == Role.STUDENT:
            if not specialty:
                raise FormValidationError("La spécialité est requise", field="specialty")
            if specialty not in SPECIALTIES:
                raise FormValidationError(f"Spécialité inconnue : {specialty}", field="specialty")
            if not graduation_year:
                raise FormValidationError("L'année de diplomation est requise", field="graduation_year")
        else:
            specialty = None
            graduation_year = None

        try:
            auth_response = self.auth.sign_up({"email": request.email, "password": request.password})
        except Exception as e:
            logger.info(f"[认证] 注册失败 ({request.email}): {e}")
            raise AuthError(_error_message(e)) from e

        if not auth_response.user:
            raise AuthError("Inscription impossible")

        row = {
            "id": auth_response.user.id,
            "email": request.email,
            "role": request.role.value,
            "first_name": request.first_name.strip(),
            "last_name": request.last_name.strip(),
            "specialty": specialty,
            "department": request.department or None,
            "graduation_year": graduation_year,
        }
        try:
            response = self.db.table("users").insert(row).execute()
        except Exception as e:
            logger.error(f"[认证] 创建用户记录失败 ({request.email}): {e}")
            raise StoreError("Erreur lors de la création du profil", detail=str(e)) from e

        logger.info(f"[认证] 新用户 {row['id']} 已注册 ({row['role']})")
        return User(**(response.data[0] if response.data else row))

    def sign_out(self):
        """退出登录（认证服务错误只记录日志）"""
        try:
            self.auth.sign_out()
        except Exception as e:
            logger.warning(f"[认证] 退出登录失败: {e}")

    def get_current_session(self) -> Optional[SessionContext]:
        """当前认证客户端持有的会话，没有会话时返回 None"""
        session = self.auth.get_session()
        if not session or not session.user:
            return None
        return self.context_for(session.user.id, access_token=session.access_token)

    def on_session_change(self, callback: Callable[[Optional[SessionContext]], None]) -> Any:
        """
        订阅会话变化。

        有会话时回调 SessionContext 并更新 last_login，会话结束时回调 None。

        Returns:
            认证服务返回的订阅对象（可调用 unsubscribe()）
        """
        def _handler(event, session):
            if session and session.user:
                try:
                    ctx = self.context_for(session.user.id, access_token=session.access_token)
                except (AuthError, StoreError) as e:
                    logger.error(f"[认证] 会话变化 ({event}) 时读取用户失败: {e.message}")
                    callback(None)
                    return
                self.touch_last_login(ctx.user_id)
                callback(ctx)
            else:
                callback(None)

        return self.auth.on_auth_state_change(_handler)

    def resolve_session(self, access_token: str) -> SessionContext:
        """
        把 Bearer token 解析为会话上下文。

        Raises:
            AuthError: token 无效或 users 记录不存在
        """
        try:
            response = self.auth.get_user(access_token)
        except Exception as e:
            raise AuthError("Session invalide ou expirée", detail=_error_message(e)) from e

        if not response or not response.user:
            raise AuthError("Session invalide ou expirée")
        return self.context_for(response.user.id, access_token=access_token)


identity_service = IdentityService()
