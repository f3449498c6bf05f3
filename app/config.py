from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- DB 設定 ---
    DATABASE_URL: Optional[str] = None   # 有設定就直接用（測試用 sqlite）
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "pe_selection"

    # 搶課時等 course row lock 最多等多久，超過就整筆 rollback
    DB_LOCK_TIMEOUT_MS: int = 3000
    DB_STATEMENT_TIMEOUT_MS: int = 10000

    # --- JWT 設定 ---
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- 選課設定 ---
    CURRENT_SEMESTER: str = "2026春"
    CURRENT_ACADEMIC_YEAR: str = "2025-2026"
    DEFAULT_CREDIT_LIMIT: int = 4
    EXPIRED_WAITING_DAYS: int = 30

    # 設定檔配置
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

settings = Settings()
