"""
提交服务模块

功能说明：
  校验学生填写的 PFE 报告表单，并将其写入 reports 表（状态 pending）。

处理流程：
  1. 表单校验（任何数据库调用之前，失败即中止）
  2. 插入 Report（status=pending, submitted_by, submitted_at）
  3. 删除该用户的草稿（如果存在）

说明：
  第 2、3 步不在同一事务中。插入成功而删除草稿失败时，报告依然有效，
  草稿只是变成过期数据，下次保存会覆盖它。
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pfe_catalog.core.database import DatabaseMixin
from pfe_catalog.core.exceptions import FormValidationError, StoreError
from pfe_catalog.core.utils import now_iso
from pfe_catalog.schemas.report import (
    ABSTRACT_MAX_LENGTH,
    ABSTRACT_MIN_LENGTH,
    DEPARTMENTS,
    MAX_AUTHORS,
    MAX_KEYWORDS,
    MIN_KEYWORDS,
    SPECIALTIES,
    Report,
    ReportForm,
    ReportStatus,
)
from pfe_catalog.schemas.user import SessionContext
from pfe_catalog.services.draft_service import DraftService, draft_service as default_draft_service

logger = logging.getLogger(__name__)


# ===================== 数据模型 =====================

@dataclass
class SubmissionResult:
    """
    提交结果。

    Attributes:
        report: 新建的报告（pending）
        draft_deleted: 草稿是否已删除；没有草稿或删除失败时为 False
    """
    report: Report
    draft_deleted: bool = False


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    """可选字段为空时存为 NULL 而不是空字符串"""
    if value is None:
        return None
    value = value.strip()
    return value or None


class SubmissionService(DatabaseMixin):
    """报告提交服务"""

    def __init__(self, db=None, drafts: Optional[DraftService] = None):
        self._db = db
        self.drafts = drafts or default_draft_service

    def clean_keywords(self, keywords: List[str]) -> List[str]:
        """去掉首尾空白并丢弃空关键词"""
        return [k.strip() for k in keywords if k and k.strip()]

    def validate_form(self, form: ReportForm) -> Dict[str, Any]:
        """
        校验表单并生成待插入的 reports 行。

        Args:
            form (ReportForm): 提交表单

        Returns:
            Dict[str, Any]: 清洗后的字段（不含 submitted_by / status / submitted_at）

        Raises:
            FormValidationError: 任一规则不满足时抛出，message 为面向用户的提示。
        """
        if not form.title.strip():
            raise FormValidationError("Le titre du PFE est requis", field="title")

        # 作者：最多 3 个，只保留姓名和邮箱都填写的
        if len(form.authors) > MAX_AUTHORS:
            raise FormValidationError(f"Maximum {MAX_AUTHORS} auteurs", field="authors")
        authors = [
            {"name": a.name.strip(), "email": a.email.strip()}
            for a in form.authors
            if a.name.strip() and a.email.strip()
        ]
        if not authors:
            raise FormValidationError("Au moins un auteur (nom et email) est requis", field="authors")

        if not form.academic_supervisor.strip():
            raise FormValidationError("L'encadrant académique est requis", field="academicSupervisor")
        if not form.academic_year.strip():
            raise FormValidationError("L'année universitaire est requise", field="academicYear")

        if not form.specialty:
            raise FormValidationError("La spécialité est requise", field="specialty")
        if form.specialty not in SPECIALTIES:
            raise FormValidationError(f"Spécialité inconnue : {form.specialty}", field="specialty")
        if not form.department:
            raise FormValidationError("Le département est requis", field="department")
        if form.department not in DEPARTMENTS:
            raise FormValidationError(f"Département inconnu : {form.department}", field="department")

        # 关键词：最多 10 个输入框，空框忽略
        if len(form.keywords) > MAX_KEYWORDS:
            raise FormValidationError(f"Maximum {MAX_KEYWORDS} mots-clés", field="keywords")
        keywords = self.clean_keywords(form.keywords)
        if len(keywords) < MIN_KEYWORDS:
            raise FormValidationError(f"Minimum {MIN_KEYWORDS} mots-clés requis", field="keywords")

        if not form.abstract.strip():
            raise FormValidationError("Le résumé est requis", field="abstract")
        if not ABSTRACT_MIN_LENGTH <= len(form.abstract) <= ABSTRACT_MAX_LENGTH:
            raise FormValidationError(
                f"Le résumé doit contenir entre {ABSTRACT_MIN_LENGTH} et {ABSTRACT_MAX_LENGTH} caractères",
                field="abstract"
            )

        return {
            "title": form.title.strip(),
            "authors": authors,
            "academic_supervisor": form.academic_supervisor.strip(),
            "industrial_supervisor": _blank_to_none(form.industrial_supervisor),
            "academic_year": form.academic_year.strip(),
            "specialty": form.specialty,
            "department": form.department,
            "keywords": keywords,
            "abstract": form.abstract,
            "defense_date": _blank_to_none(form.defense_date),
            "company": _blank_to_none(form.company),
            "video_url": _blank_to_none(form.video_url),
        }

    def submit(self, form: ReportForm, ctx: SessionContext, draft_id: Optional[str] = None) -> SubmissionResult:
        """
        提交报告。

        Args:
            form (ReportForm): 提交表单
            ctx (SessionContext): 提交者会话
            draft_id (Optional[str]): 需要在提交成功后删除的草稿 ID

        Returns:
            SubmissionResult: 新建报告与草稿删除情况

        Raises:
            FormValidationError: 表单校验失败（不会写数据库）
            StoreError: 插入报告失败
        """
        # 1. 校验
        row = self.validate_form(form)

        # 2. 插入报告
        row.update({
            "submitted_by": ctx.user_id,
            "status": ReportStatus.PENDING.value,
            "submitted_at": now_iso(),
        })
        try:
            response = self.db.table("reports").insert(row).execute()
        except Exception as e:
            logger.error(f"[提交] 用户 {ctx.user_id} 提交报告失败: {e}")
            raise StoreError("Erreur lors de la soumission", detail=str(e)) from e

        if not response.data:
            raise StoreError("Erreur lors de la soumission", detail="insert returned no row")
        report = Report(**response.data[0])
        logger.info(f"[提交] 报告 {report.id} 已提交 (用户: {ctx.user_id})")

        # 3. 删除草稿（失败不影响已创建的报告）
        draft_deleted = False
        if draft_id:
            try:
                self.drafts.delete_draft(draft_id)
                draft_deleted = True
            except StoreError as e:
                logger.warning(f"[提交] 报告 {report.id} 已创建，但草稿 {draft_id} 删除失败: {e.detail}")

        return SubmissionResult(report=report, draft_deleted=draft_deleted)


submission_service = SubmissionService()
