"""Container runtime connection configuration."""

from pathlib import Path
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings


class DockerConfig(BaseSettings):
    """Docker daemon connection and container lifecycle settings."""

    docker_host: str = Field(default="unix:///var/run/docker.sock")
    docker_tls: bool = Field(default=False)
    docker_cert_path: Optional[str] = Field(default=None)
    docker_timeout: int = Field(default=60, ge=1, le=600)

    container_stop_timeout: int = Field(default=5, ge=0, le=300)
    container_remove_on_release: bool = Field(default=True)

    registry_url: str = Field(default="https://index.docker.io")
    default_tag: str = Field(default="latest")

    def get_tls_files(self) -> Tuple[str, str, str]:
        """Return the (cert, key, ca) paths under the certificate directory."""
        base = Path(self.docker_cert_path or ".")
        return (
            str(base / "cert.pem"),
            str(base / "key.pem"),
            str(base / "ca.pem"),
        )

    class Config:
        env_prefix = ""
        extra = "ignore"
