import sys

from pydantic_settings import BaseSettings

_ENV_FILE = None if "pytest" in sys.modules else ".env"


class Settings(BaseSettings):
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    OPENAI_API_KEY: str = ""
    OPENAI_ENDPOINT: str = ""
    OPENAI_API_VERSION: str = "2024-10-21"
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"

    LLM_MAX_ATTEMPTS: int = 3
    LLM_RETRY_DELAY_SECONDS: float = 1.0
    EMPLOYEE_ANALYSIS_TIMEOUT_SECONDS: float = 30.0
    DEPARTMENT_ANALYSIS_TIMEOUT_SECONDS: float = 30.0
    CANDIDATE_SEARCH_TIMEOUT_SECONDS: float = 60.0
    REASONING_TIMEOUT_SECONDS: float = 30.0

    ANALYSIS_CONCURRENCY: int = 3
    ANALYSIS_DEADLINE_SECONDS: float = 600.0

    CONVERSATION_MAX_SESSIONS: int = 100
    CONVERSATION_IDLE_TTL_SECONDS: float = 3600.0

    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: str = ""

    model_config = {
        "env_file": _ENV_FILE,
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


settings = Settings()
