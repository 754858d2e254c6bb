from pydantic import model_validator
from pydantic_settings import BaseSettings

SCORING_RULESETS = ("standard", "legacy")


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./data/claims.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"  # "text" | "json"

    # HTTP
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"
    default_page_size: int = 20
    max_page_size: int = 100
    max_upload_mb: int = 50

    # Scoring
    scoring_ruleset: str = "standard"

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _validate(self):
        if self.scoring_ruleset not in SCORING_RULESETS:
            raise ValueError(
                f"SCORING_RULESET must be one of {', '.join(SCORING_RULESETS)}"
            )
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError(
                "DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE"
            )
        if self.environment == "production" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production must not use the bundled SQLite database"
            )
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
