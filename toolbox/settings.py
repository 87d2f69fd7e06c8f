import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_MONGO_URI = "mongodb://localhost:27017"
DEFAULT_MONGO_DB_NAME = "test"
DEFAULT_COURSES_API_URL = "https://example.com/api/courses"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration read from the environment."""

    mongo_uri: str = DEFAULT_MONGO_URI
    mongo_db_name: str = DEFAULT_MONGO_DB_NAME
    courses_api_url: str = DEFAULT_COURSES_API_URL
    api_key: str = ""
    log_dir: str = "logs"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        # Empty values fall back to the defaults, same as an unset variable
        return cls(
            mongo_uri=env.get("MONGO_URI") or DEFAULT_MONGO_URI,
            mongo_db_name=env.get("MONGO_DB_NAME") or DEFAULT_MONGO_DB_NAME,
            courses_api_url=env.get("COURSES_API_URL") or DEFAULT_COURSES_API_URL,
            api_key=env.get("API_KEY") or "",
            log_dir=env.get("LOG_DIR") or "logs",
        )
