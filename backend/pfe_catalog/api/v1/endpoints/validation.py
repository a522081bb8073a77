from typing import List
from fastapi import APIRouter, Depends

from pfe_catalog.core.auth import require_validator
from pfe_catalog.schemas.report import RejectRequest, Report, ValidateRequest, ValidationHistory
from pfe_catalog.schemas.user import SessionContext
from pfe_catalog.services.validation_service import validation_service

router = APIRouter()


@router.get("/reports", response_model=List[Report])
def list_reports(status: str = "pending", search: str = "", ctx: SessionContext = Depends(require_validator)):
    """
    审核列表 (Review Queue)

    Args:
        status (str): "pending"（默认）或 "all"
        search (str): 按标题或作者姓名搜索
    """
    return validation_service.list_for_review(status, search)


@router.get("/reports/{report_id}/history", response_model=List[ValidationHistory])
def get_history(report_id: str, ctx: SessionContext = Depends(require_validator)):
    return validation_service.get_history(report_id)


@router.post("/reports/{report_id}/validate")
def validate_report(report_id: str, payload: ValidateRequest, ctx: SessionContext = Depends(require_validator)):
    """
    通过报告（检查清单五项必须全部勾选）。

    Returns:
        dict: 更新后的报告与历史记录是否写入成功
    """
    outcome = validation_service.validate_by_id(report_id, ctx, payload.checklist, payload.comments)
    return {
        "report": outcome.report,
        "history_recorded": outcome.history_recorded,
    }


@router.post("/reports/{report_id}/reject")
def reject_report(report_id: str, payload: RejectRequest, ctx: SessionContext = Depends(require_validator)):
    """驳回报告（必须填写理由）"""
    outcome = validation_service.reject_by_id(report_id, ctx, payload.comments)
    return {
        "report": outcome.report,
        "history_recorded": outcome.history_recorded,
    }
