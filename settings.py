"""Environment configuration for the Quicket ingestor."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from scheduler.ticker import CronTicker

MIN_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 100


class ConfigError(ValueError):
    """A required setting is missing or invalid."""


@dataclass
class AppConfig:
    """Settings for one ingestor process."""
    quicket_api_key: str
    supabase_url: str
    supabase_service_role_key: str
    system_business_id: str
    system_user_id: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    run_on_start: bool = False
    schedule: str = CronTicker.DEFAULT_SCHEDULE
    timeout_seconds: int = 30
    log_level: str = 'INFO'
    target_city: str = 'Cape Town'
    target_country: str = 'South Africa'


def parse_bool(raw: Optional[str]) -> bool:
    if raw is None:
        return False
    return raw.strip().lower() in ('1', 'true')


def parse_page_size(raw: Optional[str]) -> int:
    """Parse PAGE_SIZE, clamped to 20-200; unparseable values use the default."""
    try:
        value = int(raw) if raw else DEFAULT_PAGE_SIZE
    except ValueError:
        value = DEFAULT_PAGE_SIZE
    return min(max(value, MIN_PAGE_SIZE), MAX_PAGE_SIZE)


def _require(env: Mapping[str, str], *names: str) -> str:
    for name in names:
        value = (env.get(name) or '').strip()
        if value:
            return value
    raise ConfigError(f"Missing {names[0]}")


def load_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Read configuration from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Returns:
        AppConfig object

    Raises:
        ConfigError: If a required variable is missing or invalid
    """
    env = os.environ if env is None else env

    try:
        timeout_seconds = int(env.get('TIMEOUT_SECONDS', '30'))
    except ValueError as e:
        raise ConfigError(f"Invalid TIMEOUT_SECONDS: {env.get('TIMEOUT_SECONDS')}") from e

    return AppConfig(
        quicket_api_key=_require(env, 'QUICKET_API_KEY'),
        supabase_url=_require(env, 'SUPABASE_URL', 'NEXT_PUBLIC_SUPABASE_URL'),
        supabase_service_role_key=_require(env, 'SUPABASE_SERVICE_ROLE_KEY'),
        system_business_id=_require(env, 'SYSTEM_BUSINESS_ID'),
        system_user_id=(env.get('SYSTEM_USER_ID') or '').strip() or None,
        page_size=parse_page_size(env.get('PAGE_SIZE')),
        run_on_start=parse_bool(env.get('RUN_ON_START')),
        schedule=env.get('INGEST_SCHEDULE') or CronTicker.DEFAULT_SCHEDULE,
        timeout_seconds=timeout_seconds,
        log_level=env.get('LOG_LEVEL', 'INFO')
    )
