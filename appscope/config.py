from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./appscope.db"
    database_pool_size: int = 5

    write_key: str = "wk_default_key"
    read_key: str = "rk_default_key"

    redis_host: str = "localhost"
    redis_port: int = 6379

    rate_limit_enabled: bool = False
    rate_limit_per_minute: int = 1000

    host: str = "0.0.0.0"
    port: int = 3001

    cors_origins: str = "*"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def cors_origins_list(self) -> list:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
