from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardScience"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///cardscience.db"

    gatherer_base_url: str = "http://gatherer.wizards.com"
    user_agent: str = "CardScience/1.0"

    # Legality filter passed through to the search page untouched
    gatherer_format: str = '["Standard"]'

    request_timeout: float = 30.0

    # Bounded retry for page fetches; backoff doubles after each attempt
    fetch_retries: int = 3
    fetch_backoff: float = 1.0

    # Politeness delay between result pages
    page_delay: float = 0.5

    # Hard stop for runaway pagination
    max_pages: int = 500


settings = Settings()
