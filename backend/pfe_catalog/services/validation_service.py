"""
验证服务模块

功能说明：
  教师 / 管理员审核 pending 报告：通过（需要五项检查清单全部勾选）或驳回（需要填写意见），
  并在 validation_history 中追加一条不可修改的记录。

状态机：
  pending -> validated（终态）
  pending -> rejected （终态）

说明：
  - 先更新 reports，再追加 validation_history，两次写入互相独立。
    第一次成功、第二次失败时报告保持新状态，只缺少审计记录（不回滚）。
  - 没有分配或加锁机制，多个审核人同时操作时以最后一次写入为准。
  - ValidationAction.MODIFICATION_REQUESTED 为保留值，没有对应的迁移。
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from pfe_catalog.core.database import DatabaseMixin
from pfe_catalog.core.exceptions import (
    ChecklistIncompleteError,
    FormValidationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
)
from pfe_catalog.core.utils import now_iso, to_instant
from pfe_catalog.schemas.report import (
    CHECKLIST_LABELS,
    Checklist,
    Report,
    ReportStatus,
    ValidationAction,
    ValidationHistory,
)
from pfe_catalog.schemas.user import SessionContext

logger = logging.getLogger(__name__)


@dataclass
class ValidationOutcome:
    """
    审核结果。

    Attributes:
        report: 状态更新后的报告
        history: 追加的历史记录；写入失败时为 None
    """
    report: Report
    history: Optional[ValidationHistory] = None

    @property
    def history_recorded(self) -> bool:
        return self.history is not None


class ValidationService(DatabaseMixin):
    """报告审核服务"""

    def __init__(self, db=None):
        self._db = db

    # ===================== 查询 =====================

    def get_report(self, report_id: str) -> Report:
        """
        按 ID 获取报告。

        Raises:
            NotFoundError: 报告不存在
            StoreError: 数据库请求失败
        """
        try:
            response = self.db.table("reports").select("*").eq("id", report_id).limit(1).execute()
        except Exception as e:
            logger.error(f"[审核] 读取报告 {report_id} 失败: {e}")
            raise StoreError("Erreur lors du chargement du rapport", detail=str(e)) from e

        if not response.data:
            raise NotFoundError("Rapport introuvable", detail=report_id)
        return Report(**response.data[0])

    def list_for_review(self, status_filter: str = "pending", search: str = "") -> List[Report]:
        """
        审核列表：按提交时间倒序，可按状态与关键字过滤。

        Args:
            status_filter (str): "pending"（默认）或 "all"，也接受其他状态值
            search (str): 不区分大小写，匹配标题或任一作者姓名

        Returns:
            List[Report]: 过滤后的报告
        """
        try:
            response = self.db.table("reports")\
                .select("*")\
                .order("submitted_at", desc=True)\
                .execute()
        except Exception as e:
            logger.error(f"[审核] 读取报告列表失败: {e}")
            raise StoreError("Erreur lors du chargement des rapports", detail=str(e)) from e

        reports = [Report(**r) for r in (response.data or [])]

        if status_filter and status_filter != "all":
            reports = [r for r in reports if r.status.value == status_filter]

        if search:
            term = search.lower()
            reports = [
                r for r in reports
                if term in r.title.lower() or any(term in a.name.lower() for a in r.authors)
            ]

        return reports

    def get_history(self, report_id: str) -> List[ValidationHistory]:
        """获取报告的审核历史（最新在前）"""
        try:
            response = self.db.table("validation_history")\
                .select("*")\
                .eq("report_id", report_id)\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            logger.error(f"[审核] 读取报告 {report_id} 的历史失败: {e}")
            raise StoreError("Erreur lors du chargement de l'historique", detail=str(e)) from e
        return [ValidationHistory(**h) for h in (response.data or [])]

    # ===================== 状态迁移 =====================

    def _ensure_validator(self, ctx: SessionContext):
        if not ctx.is_validator:
            raise PermissionDeniedError("Seuls les enseignants et administrateurs peuvent valider des rapports")

    def _ensure_pending(self, report: Report):
        if report.status != ReportStatus.PENDING:
            raise InvalidTransitionError(
                "Ce rapport a déjà été traité",
                detail=f"{report.id}: {report.status.value}"
            )

    def _ensure_checklist(self, checklist: Checklist):
        unmet = checklist.unmet()
        if unmet:
            raise ChecklistIncompleteError(unmet, labels=[CHECKLIST_LABELS[k] for k in unmet])

    def _append_history(self, entry: dict) -> Optional[ValidationHistory]:
        """追加历史记录，失败时只记录日志"""
        try:
            response = self.db.table("validation_history").insert(entry).execute()
        except Exception as e:
            logger.error(f"[审核] 报告 {entry['report_id']} 状态已更新，但历史记录写入失败: {e}")
            return None
        if response.data:
            return ValidationHistory(**response.data[0])
        return ValidationHistory(**entry)

    def validate(
        self,
        report: Report,
        ctx: SessionContext,
        checklist: Checklist,
        comments: Optional[str] = None
    ) -> ValidationOutcome:
        """
        通过报告。

        Args:
            report (Report): 待审核报告（必须为 pending）
            ctx (SessionContext): 审核人会话
            checklist (Checklist): 五项检查清单，必须全部为 True
            comments (Optional[str]): 可选意见

        Returns:
            ValidationOutcome: 更新后的报告与历史记录

        Raises:
            PermissionDeniedError: 非教师 / 管理员
            InvalidTransitionError: 报告不是 pending
            ChecklistIncompleteError: 检查清单未全部勾选（不写数据库）
            StoreError: 更新报告失败
        """
        self._ensure_validator(ctx)
        self._ensure_pending(report)

        self._ensure_checklist(checklist)

        # 1. 更新报告状态
        validated_at = now_iso()
        try:
            self.db.table("reports").update({
                "status": ReportStatus.VALIDATED.value,
                "validated_by": ctx.user_id,
                "validated_at": validated_at
            }).eq("id", report.id).execute()
        except Exception as e:
            logger.error(f"[审核] 通过报告 {report.id} 失败: {e}")
            raise StoreError("Erreur lors de la validation", detail=str(e)) from e

        updated = report.model_copy(update={
            "status": ReportStatus.VALIDATED,
            "validated_by": ctx.user_id,
            "validated_at": to_instant(validated_at),
        })
        logger.info(f"[审核] 报告 {report.id} 已通过 (审核人: {ctx.user_id})")

        # 2. 追加历史
        history = self._append_history({
            "report_id": report.id,
            "validator_id": ctx.user_id,
            "action": ValidationAction.VALIDATED.value,
            "comments": (comments or "").strip() or None,
            "checklist": checklist.snapshot(),
        })
        return ValidationOutcome(report=updated, history=history)

    def reject(self, report: Report, ctx: SessionContext, comments: str) -> ValidationOutcome:
        """
        驳回报告。

        Args:
            report (Report): 待审核报告（必须为 pending）
            ctx (SessionContext): 审核人会话
            comments (str): 驳回理由，不能为空

        Raises:
            FormValidationError: 未填写驳回理由（不写数据库）
            PermissionDeniedError: 非教师 / 管理员
            InvalidTransitionError: 报告不是 pending
            StoreError: 更新报告失败
        """
        if not comments or not comments.strip():
            raise FormValidationError("Veuillez fournir un commentaire expliquant le rejet", field="comments")

        self._ensure_validator(ctx)
        self._ensure_pending(report)

        # 1. 更新报告状态（validated_at 保持为空）
        try:
            self.db.table("reports").update({
                "status": ReportStatus.REJECTED.value,
                "rejection_reason": comments,
                "validated_by": ctx.user_id
            }).eq("id", report.id).execute()
        except Exception as e:
            logger.error(f"[审核] 驳回报告 {report.id} 失败: {e}")
            raise StoreError("Erreur lors du rejet", detail=str(e)) from e

        updated = report.model_copy(update={
            "status": ReportStatus.REJECTED,
            "rejection_reason": comments,
            "validated_by": ctx.user_id,
        })
        logger.info(f"[审核] 报告 {report.id} 已驳回 (审核人: {ctx.user_id})")

        # 2. 追加历史
        history = self._append_history({
            "report_id": report.id,
            "validator_id": ctx.user_id,
            "action": ValidationAction.REJECTED.value,
            "comments": comments,
        })
        return ValidationOutcome(report=updated, history=history)

    # ===================== 按 ID 操作（API 使用） =====================

    def validate_by_id(
        self,
        report_id: str,
        ctx: SessionContext,
        checklist: Checklist,
        comments: Optional[str] = None
    ) -> ValidationOutcome:
        """先做本地校验，再读取报告并通过"""
        self._ensure_validator(ctx)
        self._ensure_checklist(checklist)
        return self.validate(self.get_report(report_id), ctx, checklist, comments)

    def reject_by_id(self, report_id: str, ctx: SessionContext, comments: str) -> ValidationOutcome:
        """先检查驳回理由，再读取报告并驳回"""
        if not comments or not comments.strip():
            raise FormValidationError("Veuillez fournir un commentaire expliquant le rejet", field="comments")
        self._ensure_validator(ctx)
        return self.reject(self.get_report(report_id), ctx, comments)


validation_service = ValidationService()
