"""
submission_session.py
提交页面的服务端状态。

每个学生在提交页面期间持有一个 SubmissionSession：
  - 打开时用最近的草稿预填表单
  - 表单每次变化都重新安排自动保存
  - 手动保存会产生 3 秒后消失的提示
  - 提交成功后重置为空表单并清除草稿引用
  - 离开页面（close）时移除自动保存任务
  - 空闲超过 SUBMISSION_SESSION_IDLE_SECONDS 的会话在下一次自动保存后被回收

加锁规则：
  管理器锁只保护 _sessions 字典的查找 / 插入 / 删除；
  数据库读写只在单个会话的锁内进行，不同学生之间互不阻塞。
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from pydantic import ValidationError

from pfe_catalog.core.config import settings
from pfe_catalog.core.exceptions import FormValidationError, StoreError
from pfe_catalog.schemas.draft import Notice, SubmissionSessionView
from pfe_catalog.schemas.report import MAX_AUTHORS, MAX_KEYWORDS, Author, ReportForm
from pfe_catalog.schemas.user import SessionContext
from pfe_catalog.services.autosave import DraftAutosaver, draft_autosaver as default_autosaver
from pfe_catalog.services.draft_service import DraftService, draft_service as default_draft_service
from pfe_catalog.services.submission_service import (
    SubmissionResult,
    SubmissionService,
    submission_service as default_submission_service,
)

logger = logging.getLogger(__name__)

DRAFT_SAVED_TEXT = "Brouillon sauvegardé"
DRAFT_SAVE_FAILED_TEXT = "Erreur lors de la sauvegarde du brouillon"
SUBMITTED_TEXT = "Rapport soumis avec succès ! Il sera validé par un enseignant."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubmissionSession:
    """单个用户的提交表单状态"""
    user_id: str
    form: ReportForm = field(default_factory=ReportForm)
    draft_id: Optional[str] = None
    last_saved: Optional[datetime] = None
    notice: Optional[Notice] = None
    last_activity: datetime = field(default_factory=_utcnow)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def touch(self):
        """记录用户操作时间（自动保存不算）"""
        self.last_activity = _utcnow()

    def idle_for(self, now: Optional[datetime] = None) -> float:
        return ((now or _utcnow()) - self.last_activity).total_seconds()

    def current_notice(self, now: Optional[datetime] = None) -> Optional[Notice]:
        """返回仍在有效期内的提示，过期后清除"""
        if self.notice is None:
            return None
        now = now or _utcnow()
        if self.notice.expires_at is not None and now >= self.notice.expires_at:
            self.notice = None
        return self.notice

    def view(self) -> SubmissionSessionView:
        with self.lock:
            return SubmissionSessionView(
                form=self.form,
                draft_id=self.draft_id,
                notice=self.current_notice(),
                last_saved=self.last_saved,
            )


class SubmissionSessionManager:
    """
    提交会话管理器

    主要功能：
    1. 打开 / 关闭提交会话（绑定自动保存任务的生命周期）
    2. 表单编辑（整体替换、增删作者、增加关键词输入框）
    3. 手动保存与静默自动保存
    4. 提交报告
    5. 回收空闲会话
    """

    def __init__(
        self,
        drafts: Optional[DraftService] = None,
        submissions: Optional[SubmissionService] = None,
        autosaver: Optional[DraftAutosaver] = None,
        notice_ttl_seconds: Optional[float] = None,
        idle_timeout_seconds: Optional[float] = None
    ):
        self.drafts = drafts or default_draft_service
        self.submissions = submissions or default_submission_service
        self.autosaver = autosaver or default_autosaver
        self.notice_ttl_seconds = notice_ttl_seconds if notice_ttl_seconds is not None else settings.NOTICE_TTL_SECONDS
        self.idle_timeout_seconds = (
            idle_timeout_seconds if idle_timeout_seconds is not None else settings.SUBMISSION_SESSION_IDLE_SECONDS
        )
        self._sessions: Dict[str, SubmissionSession] = {}
        self._lock = threading.Lock()

    # ===================== 生命周期 =====================

    def open(self, ctx: SessionContext) -> SubmissionSession:
        """
        打开提交会话。已打开时直接返回现有会话。

        新会话会读取用户最近的草稿预填表单；读取失败或草稿内容无法解析时使用空表单。
        """
        with self._lock:
            session = self._sessions.get(ctx.user_id)
            if session is None:
                session = SubmissionSession(user_id=ctx.user_id)
                # 新会话在插入前先上锁，其他线程拿到它时预填已经完成
                session.lock.acquire()
                self._sessions[ctx.user_id] = session
                created = True
            else:
                created = False

        if not created:
            session.touch()
            return session

        try:
            self._prefill(session)
            self._rearm(ctx.user_id)
        finally:
            session.lock.release()
        return session

    def _prefill(self, session: SubmissionSession):
        try:
            draft = self.drafts.load_draft(session.user_id)
        except StoreError as e:
            logger.warning(f"[提交会话] 用户 {session.user_id} 草稿读取失败，使用空表单: {e.detail}")
            return

        if draft is None:
            return

        try:
            session.form = draft.to_form()
        except ValidationError as e:
            logger.warning(f"[提交会话] 用户 {session.user_id} 的草稿 {draft.id} 无法解析，使用空表单: {e}")
            session.form = ReportForm()
        session.draft_id = draft.id
        session.last_saved = draft.last_saved

    def get(self, ctx: SessionContext) -> SubmissionSession:
        """获取会话，不存在时自动打开"""
        with self._lock:
            session = self._sessions.get(ctx.user_id)
        if session is None:
            return self.open(ctx)
        session.touch()
        return session

    def close(self, ctx: SessionContext):
        """关闭会话并移除自动保存任务"""
        self._discard(ctx.user_id)

    def _discard(self, user_id: str):
        with self._lock:
            self._sessions.pop(user_id, None)
        self.autosaver.disarm(user_id)

    def _rearm(self, user_id: str):
        self.autosaver.arm(user_id, self.autosave)

    def is_open(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._sessions

    # ===================== 表单编辑 =====================

    def update_form(self, ctx: SessionContext, form: ReportForm) -> SubmissionSession:
        session = self.get(ctx)
        with session.lock:
            session.form = form
            self._rearm(ctx.user_id)
        return session

    def add_author(self, ctx: SessionContext) -> SubmissionSession:
        """增加一个作者输入行（最多 3 个）"""
        session = self.get(ctx)
        with session.lock:
            if len(session.form.authors) < MAX_AUTHORS:
                session.form.authors.append(Author())
                self._rearm(ctx.user_id)
        return session

    def remove_author(self, ctx: SessionContext, index: int) -> SubmissionSession:
        """删除作者输入行（至少保留 1 个）"""
        session = self.get(ctx)
        with session.lock:
            if len(session.form.authors) > 1 and 0 <= index < len(session.form.authors):
                session.form.authors.pop(index)
                self._rearm(ctx.user_id)
        return session

    def add_keyword(self, ctx: SessionContext) -> SubmissionSession:
        """增加一个关键词输入框（最多 10 个）"""
        session = self.get(ctx)
        with session.lock:
            if len(session.form.keywords) < MAX_KEYWORDS:
                session.form.keywords.append("")
                self._rearm(ctx.user_id)
        return session

    # ===================== 保存 =====================

    def _persist(self, session: SubmissionSession):
        session.draft_id = self.drafts.save_draft(session.user_id, session.form, session.draft_id)
        session.last_saved = _utcnow()

    def _transient_notice(self, type_: str, text: str) -> Notice:
        return Notice(
            type=type_,
            text=text,
            expires_at=_utcnow() + timedelta(seconds=self.notice_ttl_seconds)
        )

    def save_draft(self, ctx: SessionContext) -> SubmissionSession:
        """
        手动保存草稿。

        成功与失败都会设置一个短暂提示；失败时表单保留在内存中不丢失。
        """
        session = self.get(ctx)
        with session.lock:
            try:
                self._persist(session)
                session.notice = self._transient_notice("success", DRAFT_SAVED_TEXT)
            except StoreError as e:
                logger.error(f"[提交会话] 用户 {ctx.user_id} 手动保存失败: {e.detail}")
                session.notice = self._transient_notice("error", DRAFT_SAVE_FAILED_TEXT)
        return session

    def autosave(self, user_id: str):
        """
        定时任务回调：静默保存，不产生提示，错误只记录日志。

        尚未保存过的空白表单不写入，避免提交后生成空草稿。
        保存完成后若会话已空闲超时，则关闭会话并移除任务；保存失败时保留会话，下次重试。
        """
        with self._lock:
            session = self._sessions.get(user_id)
        if session is None:
            return

        with session.lock:
            if session.draft_id is not None or session.form != ReportForm():
                try:
                    self._persist(session)
                    logger.debug(f"[自动保存] 用户 {user_id} 草稿已保存")
                except Exception as e:
                    logger.error(f"[自动保存] 用户 {user_id} 草稿保存失败: {e}")
                    return
            idle = session.idle_for()

        if idle >= self.idle_timeout_seconds:
            logger.info(f"[提交会话] 用户 {user_id} 空闲 {int(idle)} 秒，关闭会话")
            self._discard(user_id)

    # ===================== 提交 =====================

    def submit(self, ctx: SessionContext) -> SubmissionResult:
        """
        提交当前表单。

        Raises:
            FormValidationError: 表单校验失败（提示同时写入会话）
            StoreError: 插入报告失败（提示同时写入会话）
        """
        session = self.get(ctx)
        with session.lock:
            try:
                result = self.submissions.submit(session.form, ctx, session.draft_id)
            except (FormValidationError, StoreError) as e:
                session.notice = Notice(type="error", text=e.message)
                raise

            session.form = ReportForm()
            session.draft_id = None
            session.last_saved = None
            session.notice = Notice(type="success", text=SUBMITTED_TEXT)
            self._rearm(ctx.user_id)
        return result


submission_sessions = SubmissionSessionManager()
