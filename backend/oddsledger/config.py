from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import URL, make_url


class Settings(BaseSettings):
    app_name: str = "OddsLedger"
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/oddsledger"
    log_level: str = "INFO"

    odds_api_key: str = ""
    odds_api_base_url: str = "https://api.sportsgameodds.com/v2"
    odds_api_timeout_seconds: float = 20.0
    odds_api_page_limit: int = 50
    odds_api_max_pages: int = 20
    odds_leagues: str = "NFL,NBA,WNBA,MLB,NHL,NCAAF,NCAAB,MLS,UEFA_CHAMPIONS_LEAGUE"
    include_alt_lines: bool = True
    ingest_window_days: int = 7
    ingest_concurrency: int = 4

    settlement_lookback_days: int = 2
    settlement_concurrency: int = 4
    error_sample_size: int = 10

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def leagues(self) -> list[str]:
        return [league.strip() for league in self.odds_leagues.split(",") if league.strip()]


settings = Settings()


def get_database_url() -> str:
    return settings.database_url


def get_database_identity() -> tuple[str, str]:
    parsed: URL = make_url(get_database_url())
    return parsed.host or "<unknown>", parsed.database or "<unknown>"
