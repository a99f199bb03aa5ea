from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment or .env file."""
    APP_NAME: str = "hookbin"
    VERSION: str = "1.0.0"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 18800
    LOG_LEVEL: str = "INFO"

    # Storage
    DATA_DIR: str = "./data"
    NAMESPACES: str = ""  # comma-separated, e.g. "stripe,github"
    FSYNC_WRITES: bool = False

    # Capture limits
    MAX_BODY_BYTES: int = 100 * 1024 * 1024  # 100MB
    TRUST_PROXY: bool = True

    # Real-time channel
    SUBSCRIBER_QUEUE_SIZE: int = 1000

    # Optional UI bundle, mounted at / when the directory exists
    STATIC_DIR: str = "public"

    class Config:
        env_file = ".env"

    @property
    def namespace_list(self) -> List[str]:
        """Configured namespaces in declaration order, blanks and repeats removed."""
        names: List[str] = []
        for part in self.NAMESPACES.split(","):
            name = part.strip()
            if name and name not in names:
                names.append(name)
        return names


@lru_cache()
def get_settings() -> Settings:
    return Settings()
