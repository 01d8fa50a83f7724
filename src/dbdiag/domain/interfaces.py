from typing import Optional, Protocol, runtime_checkable
from .models import Target, TrustPolicy
from ..deadline import Deadline


@runtime_checkable
class DatabaseBackend(Protocol):
    """
    Contract shared by every engine kind.

    State machine: Unconnected -> connect() -> Connected -> release() -> Unconnected.
    probe() and verify() are only valid while Connected. release() is idempotent,
    safe after a failed connect(), and returns the close error instead of raising.
    """

    @property
    def connected(self) -> bool:
        ...

    def connect(self, target: Target, secret: str, policy: TrustPolicy, deadline: Deadline) -> None:
        ...

    def probe(self, deadline: Deadline) -> None:
        ...

    def verify(self, query: str, deadline: Deadline) -> None:
        ...

    def release(self) -> Optional[Exception]:
        ...
