from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    # App Settings
    APP_ENV: str = "local" # local, development, production
    LOG_LEVEL: str = "INFO"
    
    # LLM Settings
    LLM_PROVIDER: str = "deepseek" # deepseek, openai
    LLM_MODEL_ID: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    LLM_TIMEOUT_SECONDS: float = 60.0
    
    # GitHub Settings
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    BASE_BRANCH: str = "main"
    RESOLVE_DEFAULT_BRANCH: bool = False
    
    # Working Copy Settings
    PUSH_BRANCHES: bool = True
    GIT_REMOTE: str = "origin"
    GIT_TIMEOUT_SECONDS: float = 120.0
    COMMIT_AUTHOR_NAME: str = "Security Autofix"
    COMMIT_AUTHOR_EMAIL: str = "security-autofix@users.noreply.github.com"
    MANIFEST_FILE: str = "package.json"
    
    # Batch Settings
    BATCH_DELAY_SECONDS: float = 1.0 # Spacing between items, keeps us under hosting API rate limits
    BATCH_DEADLINE_SECONDS: Optional[float] = None
    
    model_config = SettingsConfigDict(env_file=[".env", "../.env"], env_ignore_empty=True, extra="ignore")

settings = Settings()
