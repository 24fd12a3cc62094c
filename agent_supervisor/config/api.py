"""HTTP API configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """HTTP listener and static file settings."""

    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    static_path: str = Field(default="./static")
    enable_docs: bool = Field(default=True)

    class Config:
        env_prefix = ""
        extra = "ignore"
