import logging
from typing import Callable, Optional
from apscheduler.schedulers.background import BackgroundScheduler

from pfe_catalog.core.config import settings

logger = logging.getLogger(__name__)


class DraftAutosaver:
    """
    草稿自动保存调度器

    每个正在编辑的用户对应一个 interval 任务（默认每 120 秒）。
    表单每次变化都会重新 add_job（replace_existing=True），计时随之重新开始；
    离开提交页面时移除任务，不留下孤立的定时器。
    """

    def __init__(self, interval_seconds: Optional[int] = None, scheduler: Optional[BackgroundScheduler] = None):
        self.interval_seconds = interval_seconds or settings.DRAFT_AUTOSAVE_INTERVAL_SECONDS
        self.scheduler = scheduler or BackgroundScheduler()

    @staticmethod
    def job_id(user_id: str) -> str:
        return f"draft-autosave:{user_id}"

    def start(self):
        """启动后台调度器"""
        if self.scheduler.running:
            logger.info("草稿自动保存调度器已在运行中。")
            return
        self.scheduler.start()
        logger.info(f"草稿自动保存调度器已启动，间隔 {self.interval_seconds} 秒。")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("草稿自动保存调度器已关闭。")

    def arm(self, user_id: str, callback: Callable[[str], None]):
        """
        为用户（重新）安排自动保存任务。

        Args:
            user_id (str): 用户 ID，同时作为任务参数传给 callback
            callback: 到点执行的保存函数
        """
        self.scheduler.add_job(
            callback,
            'interval',
            seconds=self.interval_seconds,
            args=[user_id],
            id=self.job_id(user_id),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def disarm(self, user_id: str):
        """移除用户的自动保存任务（不存在时忽略）"""
        if self.scheduler.get_job(self.job_id(user_id)):
            self.scheduler.remove_job(self.job_id(user_id))

    def is_armed(self, user_id: str) -> bool:
        return self.scheduler.get_job(self.job_id(user_id)) is not None


draft_autosaver = DraftAutosaver()
