from datetime import timedelta
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ---------- 服务 ----------
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    #跨域
    CORS_ORIGINS: str = "*"

    @property
    def CORS_ORIGINS_LIST(self) -> List[str]:
        return [orig.strip() for orig in self.CORS_ORIGINS.split(",") if orig.strip()]

    # ---------- 家庭组 ----------
    GROUP_MAX_AGE_HOURS: float = 24
    CLEANUP_INTERVAL_MINUTES: float = 60
    MAX_MEMBERS_PER_GROUP: int = 50
    MAX_GROUPS: int = 10000
    MAX_NAME_LENGTH: int = 50
    MAX_MESSAGE_LENGTH: int = 1000

    @property
    def group_max_age(self) -> timedelta:
        return timedelta(hours=self.GROUP_MAX_AGE_HOURS)

    @property
    def cleanup_interval(self) -> timedelta:
        return timedelta(minutes=self.CLEANUP_INTERVAL_MINUTES)

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
