from __future__ import annotations

from pathlib import Path
import shlex
import shutil
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_ENV: str = "production"
    ALLOWED_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    LOG_LEVEL: str = "INFO"

    STATE_DB_PATH: str = "./workspace/state.db"
    RESULTS_DIR: str = "./workspace/execution-results"
    REPORTS_ROOT: str = "./workspace/execution-reports"
    INDEX_DIR: str = ""
    REPORT_URL_PREFIX: str = "/execution-reports"

    REPORT_TOOL_COMMAND: str = "allure"
    REPORT_TOOL_TIMEOUT_SEC: int = 300
    STDERR_CAP_CHARS: int = 2000

    RUN_WAIT_ATTEMPTS: int = 30
    RUN_WAIT_INTERVAL_SEC: float = 1.0
    REPORT_RETENTION_DAYS: int = 7

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def state_db_path(self) -> Path:
        return Path(self.STATE_DB_PATH).expanduser().resolve()

    @property
    def results_dir_path(self) -> Path:
        return Path(self.RESULTS_DIR).expanduser().resolve()

    @property
    def reports_root_path(self) -> Path:
        return Path(self.REPORTS_ROOT).expanduser().resolve()

    @property
    def index_dir_path(self) -> Path:
        # Ledgers live beside the artifacts unless configured elsewhere.
        if str(self.INDEX_DIR or "").strip():
            return Path(self.INDEX_DIR).expanduser().resolve()
        return self.reports_root_path / "by-project"

    @property
    def report_url_prefix(self) -> str:
        prefix = "/" + str(self.REPORT_URL_PREFIX or "/execution-reports").strip().strip("/")
        return prefix

    @property
    def report_tool_available(self) -> bool:
        parts = shlex.split(self.REPORT_TOOL_COMMAND or "")
        return bool(parts) and shutil.which(parts[0]) is not None


settings = Settings()
