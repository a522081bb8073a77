"""
管理员服务模块

功能说明：
  管理员总览统计、用户启用 / 停用、删除报告。
  总览需要的 users 与 reports 两张表并发读取，全部返回后再计算统计。
"""

import asyncio
import logging
from typing import List

from pydantic import BaseModel

from pfe_catalog.core.database import DatabaseMixin
from pfe_catalog.core.exceptions import StoreError
from pfe_catalog.schemas.report import Report, ReportStatus
from pfe_catalog.schemas.user import User

logger = logging.getLogger(__name__)


class AdminStats(BaseModel):
    total_users: int = 0
    total_reports: int = 0
    validated_reports: int = 0
    pending_reports: int = 0
    rejected_reports: int = 0
    total_views: int = 0


class AdminOverview(BaseModel):
    stats: AdminStats
    users: List[User] = []
    reports: List[Report] = []


def compute_stats(users: List[User], reports: List[Report]) -> AdminStats:
    """根据完整的用户与报告列表计算统计数据"""
    return AdminStats(
        total_users=len(users),
        total_reports=len(reports),
        validated_reports=sum(1 for r in reports if r.status == ReportStatus.VALIDATED),
        pending_reports=sum(1 for r in reports if r.status == ReportStatus.PENDING),
        rejected_reports=sum(1 for r in reports if r.status == ReportStatus.REJECTED),
        total_views=sum(r.views_count for r in reports),
    )


class AdminService(DatabaseMixin):
    """管理员服务类"""

    def __init__(self, db=None):
        self._db = db

    def list_users(self) -> List[User]:
        try:
            response = self.db.table("users").select("*").execute()
        except Exception as e:
            logger.error(f"[管理] 读取用户列表失败: {e}")
            raise StoreError("Erreur lors du chargement des utilisateurs", detail=str(e)) from e
        return [User(**u) for u in (response.data or [])]

    def list_reports(self) -> List[Report]:
        try:
            response = self.db.table("reports").select("*").execute()
        except Exception as e:
            logger.error(f"[管理] 读取报告列表失败: {e}")
            raise StoreError("Erreur lors du chargement des rapports", detail=str(e)) from e
        return [Report(**r) for r in (response.data or [])]

    async def get_overview(self) -> AdminOverview:
        """
        管理员总览。

        Supabase 客户端是同步的，两次读取放到线程中并发执行，然后汇总。

        Returns:
            AdminOverview: 统计数据与完整列表
        """
        users, reports = await asyncio.gather(
            asyncio.to_thread(self.list_users),
            asyncio.to_thread(self.list_reports),
        )
        return AdminOverview(stats=compute_stats(users, reports), users=users, reports=reports)

    def set_user_active(self, user_id: str, is_active: bool) -> None:
        """启用 / 停用用户（停用后由数据库策略阻止其写操作）"""
        try:
            self.db.table("users").update({"is_active": is_active}).eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"[管理] 更新用户 {user_id} 状态失败: {e}")
            raise StoreError("Erreur lors de la mise à jour de l'utilisateur", detail=str(e)) from e
        logger.info(f"[管理] 用户 {user_id} is_active={is_active}")

    def delete_report(self, report_id: str) -> None:
        try:
            self.db.table("reports").delete().eq("id", report_id).execute()
        except Exception as e:
            logger.error(f"[管理] 删除报告 {report_id} 失败: {e}")
            raise StoreError("Erreur lors de la suppression du rapport", detail=str(e)) from e
        logger.info(f"[管理] 报告 {report_id} 已删除")


admin_service = AdminService()
