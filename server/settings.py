from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

API_NAME = 'WLWV Life Calendar API'
API_VERSION = '3.0.0'

DEV_ORIGINS = [
    'http://localhost:3000',
    'http://localhost:8080',
    'http://localhost:5000',
    'http://127.0.0.1:3000',
    'http://127.0.0.1:8080',
]
PROD_ORIGINS = [
    'https://www.wlwvlife.org',
    'https://wlwv-calendar.vercel.app',
    'https://wlwv-calendar-api.vercel.app',
]
PROD_ORIGIN_REGEX = r'https://.*\.(vercel|netlify)\.app'

DEFAULT_STORAGE_PATH = Path(__file__).parent / 'storage.json'


class Settings(BaseModel):
    """Runtime configuration; aliases are the environment variable names."""

    model_config = ConfigDict(populate_by_name=True)

    database_url: Optional[str] = Field(default=None, validation_alias='DATABASE_URL')
    port: int = Field(default=3000, validation_alias='PORT')
    environment: str = 'development'
    cors_origins: List[str] = Field(default_factory=list)
    pool_min_size: int = Field(default=2, ge=0, validation_alias='DB_POOL_MIN')
    pool_max_size: int = Field(default=20, ge=1, validation_alias='DB_POOL_MAX')
    pool_timeout: float = Field(default=15.0, gt=0, validation_alias='DB_POOL_TIMEOUT')
    storage_path: Path = Field(default=DEFAULT_STORAGE_PATH, validation_alias='CALENDAR_STORAGE_PATH')

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def cors_origin_regex(self) -> Optional[str]:
        return PROD_ORIGIN_REGEX if self.is_production else None


ENV_VARIABLES = ('DATABASE_URL', 'PORT', 'DB_POOL_MIN', 'DB_POOL_MAX', 'DB_POOL_TIMEOUT', 'CALENDAR_STORAGE_PATH')


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


def load_settings() -> Settings:
    environment = os.getenv('APP_ENV') or os.getenv('NODE_ENV') or 'development'
    origins = _split_origins(os.getenv('CORS_ORIGINS'))
    if not origins:
        origins = PROD_ORIGINS if environment == 'production' else DEV_ORIGINS
    # Raw strings go to pydantic so a bad value is reported under its variable name.
    raw = {name: os.environ[name] for name in ENV_VARIABLES if os.environ.get(name)}
    return Settings.model_validate({**raw, 'environment': environment, 'cors_origins': origins})
