from fastapi import APIRouter, Depends

from pfe_catalog.core.auth import require_admin
from pfe_catalog.schemas.user import SessionContext, UserActivationUpdate
from pfe_catalog.services.admin_service import AdminOverview, admin_service

router = APIRouter()


@router.get("/overview", response_model=AdminOverview)
async def get_overview(ctx: SessionContext = Depends(require_admin)):
    """
    管理员总览：用户数、报告数（按状态）、总浏览量，以及完整列表。
    """
    return await admin_service.get_overview()


@router.patch("/users/{user_id}/active")
def set_user_active(user_id: str, payload: UserActivationUpdate, ctx: SessionContext = Depends(require_admin)):
    """启用 / 停用用户"""
    admin_service.set_user_active(user_id, payload.is_active)
    return {"success": True, "user_id": user_id, "is_active": payload.is_active}


@router.delete("/reports/{report_id}")
def delete_report(report_id: str, ctx: SessionContext = Depends(require_admin)):
    admin_service.delete_report(report_id)
    return {"success": True}
