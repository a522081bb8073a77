import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    PROJECT_NAME: str = "Bibliothèque PFE ESPRIM"
    API_V1_STR: str = "/api/v1"

    # 服务器配置
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", 8000))
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # Supabase配置
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # 机构邮箱后缀，登录/注册前在客户端校验
    INSTITUTION_EMAIL_DOMAIN: str = os.getenv("INSTITUTION_EMAIL_DOMAIN", "@esprim.tn")

    # 草稿自动保存间隔（秒）
    DRAFT_AUTOSAVE_INTERVAL_SECONDS: int = int(os.getenv("DRAFT_AUTOSAVE_INTERVAL_SECONDS", "120"))
    # 提示消息自动消失时间（秒）
    NOTICE_TTL_SECONDS: float = float(os.getenv("NOTICE_TTL_SECONDS", "3"))
    # 提交会话空闲多久后回收（秒），需大于自动保存间隔
    SUBMISSION_SESSION_IDLE_SECONDS: int = int(os.getenv("SUBMISSION_SESSION_IDLE_SECONDS", "1800"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # 开发模式：跳过 token 校验，直接使用固定 user_id
    DEV_MODE: bool = os.getenv("DEV_MODE", "false").lower() == "true"
    DEV_USER_ID: str = os.getenv("DEV_USER_ID", "")

    def get_supabase_key(self) -> str:
        """
        获取 Supabase Key。

        优先使用 Service Key (Bypass RLS)，否则使用 Anon Key。

        Returns:
            str: Supabase API Key，未配置时返回空字符串。
        """
        return self.SUPABASE_SERVICE_KEY or self.SUPABASE_KEY

    def is_institutional_email(self, email: str) -> bool:
        """检查邮箱是否属于本校域名"""
        return bool(email) and email.strip().lower().endswith(self.INSTITUTION_EMAIL_DOMAIN.lower())


settings = Settings()
