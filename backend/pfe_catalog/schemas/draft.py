from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel

from pfe_catalog.schemas.report import ReportForm


class Draft(BaseModel):
    """drafts 表记录，每个用户最多一条（user_id 唯一）"""
    id: str
    user_id: str
    draft_data: Dict[str, Any] = {}
    last_saved: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_form(self) -> ReportForm:
        """把 draft_data 还原为表单"""
        return ReportForm.model_validate(self.draft_data or {})


class Notice(BaseModel):
    """一次性提示消息，expires_at 之后不再展示"""
    type: Literal["success", "error"]
    text: str
    expires_at: Optional[datetime] = None


class SubmissionSessionView(BaseModel):
    """提交页面状态（返回给前端）"""
    form: ReportForm
    draft_id: Optional[str] = None
    notice: Optional[Notice] = None
    last_saved: Optional[datetime] = None
