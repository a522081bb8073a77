from typing import Optional
from supabase import create_client, Client
from pfe_catalog.core.config import settings

_client: Optional[Client] = None


def get_db() -> Client:
    """
    获取全局 Supabase 客户端（首次调用时创建）。

    Raises:
        ValueError: 未设置 SUPABASE_URL 或 Key 时抛出。
    """
    global _client
    if _client is None:
        url = settings.SUPABASE_URL
        key = settings.get_supabase_key()
        if not url or not key:
            raise ValueError("必须在环境变量中设置 Supabase URL 和 Key")
        _client = create_client(url, key)
    return _client


def create_auth_client() -> Client:
    """
    创建仅用于认证的 Supabase 客户端（使用 Anon Key）。

    登录会改变客户端持有的会话，因此不能与 get_db() 的数据客户端共用。
    """
    url = settings.SUPABASE_URL
    key = settings.SUPABASE_KEY or settings.get_supabase_key()
    if not url or not key:
        raise ValueError("必须在环境变量中设置 Supabase URL 和 Key")
    return create_client(url, key)


class DatabaseMixin:
    """
    为服务类提供延迟绑定的 db 属性。

    服务单例在模块导入时创建，此时不连接数据库；
    第一次访问 self.db 时才调用 get_db()。测试中可以直接赋值 service.db = mock。
    """

    _db: Optional[Client] = None

    @property
    def db(self) -> Client:
        if self._db is None:
            self._db = get_db()
        return self._db

    @db.setter
    def db(self, value: Client):
        self._db = value
