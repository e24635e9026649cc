from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    redis_url: str = "redis://localhost:6379/0"
    store_ready_timeout: float = 3.0  # seconds a request waits for the store before 503
    store_retries: int = 3  # redis-py retries per command on connection errors

    admin_password: str = "admin123"
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
