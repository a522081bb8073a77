from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class Role(str, Enum):
    """用户角色"""
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class User(BaseModel):
    """users 表记录，id 与 Supabase Auth 的用户 id 一一对应"""
    id: str
    email: str
    role: Role = Role.STUDENT
    first_name: str = ""
    last_name: str = ""
    specialty: Optional[str] = None  # 仅学生
    department: Optional[str] = None
    graduation_year: Optional[int] = None  # 仅学生
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionContext(BaseModel):
    """
    当前操作者的会话上下文。

    显式传入每个业务入口（草稿、提交、验证、目录），不使用全局“当前用户”。
    """
    user_id: str
    email: str = ""
    role: Role
    is_active: bool = True
    access_token: Optional[str] = None

    @property
    def is_validator(self) -> bool:
        return self.role in (Role.TEACHER, Role.ADMIN)

    @classmethod
    def from_user(cls, user: User, access_token: Optional[str] = None) -> "SessionContext":
        return cls(
            user_id=user.id,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            access_token=access_token,
        )


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    """注册请求模型"""
    email: str
    password: str
    first_name: str
    last_name: str
    role: Role = Role.STUDENT
    specialty: Optional[str] = None
    department: Optional[str] = None
    graduation_year: Optional[int] = None


class UserActivationUpdate(BaseModel):
    is_active: bool
