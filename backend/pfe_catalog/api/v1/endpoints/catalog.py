from typing import List
from fastapi import APIRouter, Depends

from pfe_catalog.core.auth import get_active_session, get_session_context
from pfe_catalog.schemas.report import CatalogFilters, Report, SortBy
from pfe_catalog.schemas.user import SessionContext
from pfe_catalog.services.catalog_service import (
    POPULAR_PANEL_SIZE,
    academic_years,
    catalog_service,
    most_popular,
)

router = APIRouter()


@router.get("/reports", response_model=List[Report])
def get_catalog(
    academic_year: str = "",
    specialty: str = "",
    sort_by: SortBy = SortBy.DATE_DESC,
    search: str = "",
    ctx: SessionContext = Depends(get_session_context)
):
    """
    目录列表 (Catalog)

    在内存中完成筛选与排序，空字符串表示不过滤。
    """
    filters = CatalogFilters(
        academic_year=academic_year,
        specialty=specialty,
        sort_by=sort_by,
        search_term=search,
    )
    return catalog_service.search(filters)


@router.get("/years", response_model=List[str])
def get_years(ctx: SessionContext = Depends(get_session_context)):
    """学年筛选项（倒序）"""
    return academic_years(catalog_service.load_validated_reports())


@router.get("/popular", response_model=List[Report])
def get_popular(ctx: SessionContext = Depends(get_session_context)):
    """侧栏“最受欢迎”：前 10 名中取前 5"""
    return most_popular(catalog_service.load_validated_reports())[:POPULAR_PANEL_SIZE]


@router.get("/favorites", response_model=List[str])
def get_favorites(ctx: SessionContext = Depends(get_session_context)):
    """当前用户收藏的报告 ID"""
    return sorted(catalog_service.load_favorites(ctx.user_id))


@router.post("/favorites/{report_id}")
def toggle_favorite(report_id: str, ctx: SessionContext = Depends(get_active_session)):
    """切换收藏"""
    is_favorite = catalog_service.toggle_favorite(ctx.user_id, report_id)
    return {"report_id": report_id, "favorite": is_favorite}
