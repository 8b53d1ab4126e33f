from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    horizon_url: str = "https://horizon.stellar.org"
    coingecko_api_key: str = ""
    database_url: str = "sqlite+aiosqlite:///price_cache.db"
    output_dir: str = "."
    http_rate_per_second: float = 2.0
    coingecko_rate_per_second: float = 0.5  # public API allows ~30 calls/min
    xlm_days_back: int = 60  # CoinGecko hydration window around a missing day
    xlm_days_forward: int = 30
    debug: bool = False

    class Config:
        env_file = ".env"
        env_prefix = "STELLARTAX_"


settings = Settings()
