"""
目录服务模块

功能说明：
  读取全部已通过（validated）的报告，在内存中完成搜索、筛选与排序，
  并维护当前用户的收藏集合。

主要功能：
  - filter_reports() / sort_reports() / query_catalog() - 纯函数，相同输入得到相同输出
  - academic_years() - 学年下拉框选项（倒序）
  - most_popular() - 浏览量前 10（侧栏展示前 5）
  - CatalogService - 数据读取与收藏切换
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from pfe_catalog.core.database import DatabaseMixin
from pfe_catalog.core.exceptions import StoreError
from pfe_catalog.core.utils import collation_key, to_instant
from pfe_catalog.schemas.report import CatalogFilters, Favorite, Report, ReportStatus, SortBy

logger = logging.getLogger(__name__)

POPULAR_LIMIT = 10
POPULAR_PANEL_SIZE = 5

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ===================== 纯函数 =====================

def matches_search(report: Report, term: str) -> bool:
    """标题、摘要或任一关键词包含搜索词（不区分大小写）"""
    term = term.lower()
    return (
        term in report.title.lower()
        or term in report.abstract.lower()
        or any(term in k.lower() for k in report.keywords)
    )


def filter_reports(reports: Iterable[Report], filters: CatalogFilters) -> List[Report]:
    """
    按学年、专业、搜索词过滤。

    三个条件是独立的谓词，应用顺序不影响结果。
    """
    filtered = list(reports)

    if filters.academic_year:
        filtered = [r for r in filtered if r.academic_year == filters.academic_year]

    if filters.specialty:
        filtered = [r for r in filtered if r.specialty == filters.specialty]

    if filters.search_term:
        filtered = [r for r in filtered if matches_search(r, filters.search_term)]

    return filtered


def _publication_instant(report: Report) -> datetime:
    # validated_at 缺失时退回 created_at
    return to_instant(report.validated_at) or to_instant(report.created_at) or _EPOCH


def sort_reports(reports: Iterable[Report], sort_by: SortBy) -> List[Report]:
    """
    稳定排序，相等元素保持原有相对顺序。

    - popular: 浏览量降序
    - title: 标题升序（忽略重音与大小写）
    - date_desc（默认）: validated_at（或 created_at）降序
    """
    if sort_by == SortBy.POPULAR:
        return sorted(reports, key=lambda r: r.views_count, reverse=True)
    if sort_by == SortBy.TITLE:
        return sorted(reports, key=lambda r: collation_key(r.title))
    return sorted(reports, key=_publication_instant, reverse=True)


def query_catalog(reports: Iterable[Report], filters: CatalogFilters) -> List[Report]:
    """过滤后排序，得到最终展示列表"""
    return sort_reports(filter_reports(reports, filters), filters.sort_by)


def academic_years(reports: Iterable[Report]) -> List[str]:
    """目录中出现过的学年（去重，倒序）"""
    return sorted({r.academic_year for r in reports if r.academic_year}, reverse=True)


def most_popular(reports: Iterable[Report], limit: int = POPULAR_LIMIT) -> List[Report]:
    """浏览量最高的报告"""
    return sort_reports(reports, SortBy.POPULAR)[:limit]


# ===================== 数据访问 =====================

class CatalogService(DatabaseMixin):
    """
    目录服务类

    主要功能：
    1. 读取已通过的报告
    2. 读取 / 切换用户收藏
    """

    def __init__(self, db=None):
        self._db = db

    def load_validated_reports(self) -> List[Report]:
        """
        读取全部 validated 报告。

        Raises:
            StoreError: 数据库请求失败。
        """
        try:
            response = self.db.table("reports")\
                .select("*")\
                .eq("status", ReportStatus.VALIDATED.value)\
                .order("validated_at", desc=True)\
                .execute()
        except Exception as e:
            logger.error(f"[目录] 读取报告失败: {e}")
            raise StoreError("Erreur lors du chargement des rapports", detail=str(e)) from e
        return [Report(**r) for r in (response.data or [])]

    def search(self, filters: CatalogFilters) -> List[Report]:
        """读取目录并按筛选条件返回展示列表"""
        return query_catalog(self.load_validated_reports(), filters)

    def load_favorites(self, user_id: str) -> Set[str]:
        """读取用户收藏的报告 ID 集合"""
        try:
            response = self.db.table("favorites")\
                .select("report_id")\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"[目录] 读取用户 {user_id} 的收藏失败: {e}")
            raise StoreError("Erreur lors du chargement des favoris", detail=str(e)) from e
        return {f["report_id"] for f in (response.data or [])}

    def toggle_favorite(self, user_id: str, report_id: str, favorites: Optional[Set[str]] = None) -> bool:
        """
        切换收藏状态，并在同一操作中更新本地集合。

        Args:
            user_id (str): 当前用户
            report_id (str): 报告 ID
            favorites (Optional[Set[str]]): 本地收藏集合，为 None 时从数据库读取

        Returns:
            bool: 切换后是否为已收藏

        Raises:
            StoreError: 数据库请求失败（本地集合保持不变）
        """
        if favorites is None:
            favorites = self.load_favorites(user_id)

        try:
            if report_id in favorites:
                self.db.table("favorites")\
                    .delete()\
                    .eq("user_id", user_id)\
                    .eq("report_id", report_id)\
                    .execute()
                favorites.discard(report_id)
                return False

            favorite = Favorite(user_id=user_id, report_id=report_id)
            self.db.table("favorites").insert(favorite.model_dump(exclude_none=True)).execute()
            favorites.add(report_id)
            return True
        except Exception as e:
            logger.error(f"[目录] 用户 {user_id} 切换收藏 {report_id} 失败: {e}")
            raise StoreError("Erreur lors de la mise à jour des favoris", detail=str(e)) from e


catalog_service = CatalogService()
