"""
草稿服务模块

功能说明：
  管理每个用户唯一的提交草稿（drafts 表）。

主要功能：
  - load_draft() - 读取用户最近一次保存的草稿
  - save_draft() - 保存表单快照（已知 id 时原地更新，否则按 user_id upsert）
  - delete_draft() - 提交成功后删除草稿
"""

import logging
from typing import Any, Dict, Optional, Union

from pfe_catalog.core.database import DatabaseMixin
from pfe_catalog.core.exceptions import StoreError
from pfe_catalog.core.utils import now_iso
from pfe_catalog.schemas.draft import Draft
from pfe_catalog.schemas.report import ReportForm

logger = logging.getLogger(__name__)


class DraftService(DatabaseMixin):
    """草稿服务类"""

    def __init__(self, db=None):
        self._db = db

    def load_draft(self, user_id: str) -> Optional[Draft]:
        """
        获取用户最近保存的草稿。

        Args:
            user_id (str): 用户 ID

        Returns:
            Optional[Draft]: 草稿对象，没有草稿时返回 None。

        Raises:
            StoreError: 数据库请求失败。
        """
        try:
            response = self.db.table("drafts")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("last_saved", desc=True)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"[草稿] 读取用户 {user_id} 的草稿失败: {e}")
            raise StoreError("Erreur lors du chargement du brouillon", detail=str(e)) from e

        if response.data:
            return Draft(**response.data[0])
        return None

    def save_draft(
        self,
        user_id: str,
        form_snapshot: Union[ReportForm, Dict[str, Any]],
        existing_draft_id: Optional[str] = None
    ) -> str:
        """
        保存草稿，对同一用户幂等。

        - 已知 existing_draft_id：更新 draft_data 与 last_saved
        - 未知：按 user_id 唯一约束 upsert，返回生成的 id 供后续保存使用

        Args:
            user_id (str): 草稿所属用户
            form_snapshot: 表单快照（ReportForm 或已序列化的 dict）
            existing_draft_id (Optional[str]): 已知的草稿 ID

        Returns:
            str: 草稿 ID

        Raises:
            StoreError: 数据库请求失败。
        """
        if isinstance(form_snapshot, ReportForm):
            draft_data = form_snapshot.to_draft_data()
        else:
            draft_data = dict(form_snapshot)

        saved_at = now_iso()

        try:
            if existing_draft_id:
                self.db.table("drafts").update({
                    "draft_data": draft_data,
                    "last_saved": saved_at
                }).eq("id", existing_draft_id).execute()
                return existing_draft_id

            response = self.db.table("drafts").upsert({
                "user_id": user_id,
                "draft_data": draft_data,
                "last_saved": saved_at
            }, on_conflict="user_id").execute()
        except Exception as e:
            logger.error(f"[草稿] 保存用户 {user_id} 的草稿失败: {e}")
            raise StoreError("Erreur lors de la sauvegarde du brouillon", detail=str(e)) from e

        if not response.data:
            raise StoreError("Erreur lors de la sauvegarde du brouillon", detail="upsert returned no row")

        draft_id = response.data[0]["id"]
        logger.info(f"[草稿] 已为用户 {user_id} 创建草稿 {draft_id}")
        return draft_id

    def delete_draft(self, draft_id: str) -> None:
        """
        删除草稿。

        Raises:
            StoreError: 数据库请求失败。
        """
        try:
            self.db.table("drafts").delete().eq("id", draft_id).execute()
        except Exception as e:
            logger.error(f"[草稿] 删除草稿 {draft_id} 失败: {e}")
            raise StoreError("Erreur lors de la suppression du brouillon", detail=str(e)) from e


draft_service = DraftService()
