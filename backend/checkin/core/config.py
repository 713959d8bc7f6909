from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Event Check-In"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Google Sheets (system of record)
    GOOGLE_SHEET_ID: Optional[str] = None
    GOOGLE_SHEET_RANGE: str = "Sheet1!A:Z"
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None  # JSON string or key file path
    DEFAULT_CREDENTIALS_FILE: str = "./credentials.json"
    GRID_VALUE_RENDER_OPTION: str = "FORMATTED_VALUE"

    # Check-in columns
    DISABLE_CHECKIN_TIME_LOGGING: bool = False
    STRICT_HEADER_MATCHING: bool = False  # exact label match before fuzzy
    EMPTY_COLUMN_SAMPLE_ROWS: int = 10

    # Retry policy
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0

    # Search
    SEARCH_RESULT_LIMIT: int = 20

    # HTTP
    CORS_ALLOW_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "app.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def time_logging_enabled(self) -> bool:
        return not self.DISABLE_CHECKIN_TIME_LOGGING

settings = Settings()
