from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


ROOT = Path(__file__).resolve().parent.parent


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Extraction(Enum):
    greedy = "greedy"
    balanced = "balanced"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    log_level: str = "INFO"
    html_dir: Path = ROOT / "assets" / "html"
    openai_model: str = "gpt-4o-mini"
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""
    session_secret: str = "change-me"
    site_url: str = "http://localhost:8000"
    feed_limit: int = 6
    extraction: Extraction = Extraction.greedy
    validate_generated: bool = False
