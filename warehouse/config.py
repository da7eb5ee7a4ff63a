import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./warehouse.db"

    secret_key: str = "dev_secret"
    access_token_expire_minutes: int = 120

    # 首次启动时若没有任何 Admin，则用这组账号创建
    admin_username: str = "admin"
    admin_password: str = "password"
    admin_name: str = "Alice Durand"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
