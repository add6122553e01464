from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./groupledger.db"

    # Tokens are issued by the identity provider; we only verify them.
    SECRET_KEY: str = "change_me_in_env"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24h

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    INVITE_CODE_BYTES: int = 24
    # True: transaction_created goes out before the splits are written
    BROADCAST_BEFORE_SPLITS: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

settings = Settings()
