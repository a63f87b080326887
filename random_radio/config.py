from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "RADIO_"}

    api_host: str = "0.0.0.0"
    api_port: int = 5006
    log_level: str = "INFO"
    log_json: bool = False
    settings_path: str = "data/settings.json"
    settle_delay: float = 0.5  # seconds before toggling native auto radio
    wait_timeout: float | None = None  # None keeps pending waits forever
    poll_interval: float = 1.0
    discovery_interval: int = 30
    browse_page_size: int = 100
    rng_seed: int | None = None


settings = Settings()
