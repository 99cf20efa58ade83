"""Server settings using pydantic-settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Settings for running the HTTP front door.

    All settings can be configured via environment variables with the
    EVENTIDE_ prefix, e.g. EVENTIDE_PORT=9000 or EVENTIDE_BACKEND=memory.
    MongoDB itself is configured through MongoConfiguration.

    Attributes:
        host: Interface to bind.
        port: Port to listen on.
        backend: "mongodb" for the durable store, "memory" for a
            throwaway in-process store.
        verbosity: Log verbosity from 0 (off) to 5 (trace).
    """

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    backend: Literal["mongodb", "memory"] = "mongodb"
    verbosity: int = Field(default=3, ge=0, le=5)

    model_config = SettingsConfigDict(env_prefix="EVENTIDE_")
