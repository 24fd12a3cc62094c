"""Container handle models.

A handle is owned by exactly one validation call. Its endpoint stays unset
until the runtime confirms the service port has a single host mapping.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple, Optional


class Endpoint(NamedTuple):
    """Host-side address of a published container port."""

    host: str
    port: int

    def url(self, path: str = "/") -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}{path}"


@dataclass
class ContainerHandle:
    """One agent container created for a single validation."""

    container_id: str
    image: str
    service_port: str = "3423/tcp"
    container: Optional[Any] = field(default=None, repr=False)
    endpoint: Optional[Endpoint] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started: bool = False
    released: bool = False
    teardown_error: Optional[Exception] = None

    @property
    def short_id(self) -> str:
        return self.container_id[:12]
