"""
utils.py
通用工具函数模块。
"""

from datetime import datetime, timezone
from typing import Optional, Union
import logging
import unicodedata

logger = logging.getLogger(__name__)


def now_iso() -> str:
    """返回当前 UTC 时间的 ISO 字符串，用于写入 timestamptz 字段"""
    return datetime.now(timezone.utc).isoformat()


def to_instant(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    将数据库返回的时间值统一转换为带时区的 datetime。

    支持格式：
    1. datetime 对象（无时区时视为 UTC）
    2. ISO 字符串，包括以 'Z' 结尾的格式

    Args:
        value: 时间字符串或 datetime

    Returns:
        Optional[datetime]: 带 UTC 时区的 datetime，无法解析时返回 None
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"无法解析时间 '{value}'")
            return None

    # 确保有时区信息
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def strip_accents(text: str) -> str:
    """去掉重音符号：'Étude' -> 'Etude'"""
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def collation_key(text: str) -> tuple:
    """
    标题排序键（近似 localeCompare）。

    第一级忽略重音与大小写，第二级区分重音，完全相同的标题键相同，
    配合稳定排序保持原有相对顺序。
    """
    text = text or ""
    return (strip_accents(text).casefold(), text.casefold())
