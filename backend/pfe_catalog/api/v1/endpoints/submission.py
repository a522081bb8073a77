from fastapi import APIRouter, Depends

from pfe_catalog.core.auth import require_student
from pfe_catalog.schemas.draft import SubmissionSessionView
from pfe_catalog.schemas.report import Report, ReportForm
from pfe_catalog.schemas.user import SessionContext
from pfe_catalog.services.submission_session import submission_sessions

router = APIRouter()


@router.post("/session", response_model=SubmissionSessionView)
def open_session(ctx: SessionContext = Depends(require_student)):
    """
    进入提交页面：打开会话并用最近的草稿预填表单，同时启动自动保存。
    """
    return submission_sessions.open(ctx).view()


@router.get("/session", response_model=SubmissionSessionView)
def get_session(ctx: SessionContext = Depends(require_student)):
    """当前表单状态（过期提示会被清除）"""
    return submission_sessions.get(ctx).view()


@router.put("/session/form", response_model=SubmissionSessionView)
def update_form(form: ReportForm, ctx: SessionContext = Depends(require_student)):
    """整体替换表单内容（自动保存计时重新开始）"""
    return submission_sessions.update_form(ctx, form).view()


@router.post("/session/authors", response_model=SubmissionSessionView)
def add_author(ctx: SessionContext = Depends(require_student)):
    return submission_sessions.add_author(ctx).view()


@router.delete("/session/authors/{index}", response_model=SubmissionSessionView)
def remove_author(index: int, ctx: SessionContext = Depends(require_student)):
    return submission_sessions.remove_author(ctx, index).view()


@router.post("/session/keywords", response_model=SubmissionSessionView)
def add_keyword(ctx: SessionContext = Depends(require_student)):
    return submission_sessions.add_keyword(ctx).view()


@router.post("/session/draft", response_model=SubmissionSessionView)
def save_draft(ctx: SessionContext = Depends(require_student)):
    """
    手动保存草稿。

    保存失败时仍返回 200，notice.type 为 error，表单保持不变。
    """
    return submission_sessions.save_draft(ctx).view()


@router.post("/session/submit", response_model=Report)
def submit_report(ctx: SessionContext = Depends(require_student)):
    """
    提交当前表单，返回新建的 pending 报告。

    Raises:
        FormValidationError (400): 表单校验失败
        StoreError (502): 写入失败
    """
    return submission_sessions.submit(ctx).report


@router.delete("/session")
def close_session(ctx: SessionContext = Depends(require_student)):
    """离开提交页面：移除自动保存任务"""
    submission_sessions.close(ctx)
    return {"success": True}
