"""Engine settings loaded from the environment (prefix ADAPTIVE_QUIZ_)."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ADAPTIVE_QUIZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_path: str = Field(
        default=str(Path.home() / ".adaptive_quiz" / "quiz.db"),
        description="SQLite database file",
    )
    log_level: str = Field(default="WARNING", description="Console log level")
    user_id: int = Field(default=1, ge=1, description="Learner id used by the terminal front end")

    # Session sizing
    quick_question_count: int = Field(default=10, ge=1)
    default_question_count: int = Field(default=20, ge=1)

    # Spaced repetition composition
    due_card_ratio: float = Field(default=0.7, ge=0.0, le=1.0)
    due_card_limit: int = Field(default=20, ge=1)
    new_card_limit: int = Field(default=10, ge=1)

    # Adaptive mode
    adaptive_step: float = Field(default=0.5, gt=0.0)
    recent_answer_window_hours: int = Field(default=24, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
