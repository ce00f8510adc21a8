"""Abstract base class for target-engine adapters."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from querydesk.models import ColumnDescriptor, ConnectionProfile, EngineKind, TableInfo


@dataclass
class RawResult:
    """What one driver returned, before canonicalization."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[ColumnDescriptor] = field(default_factory=list)
    # Set for statements without a result set
    affected_rows: Optional[int] = None

    @property
    def has_result_set(self) -> bool:
        return self.affected_rows is None


class EngineAdapter(ABC):
    """One adapter per engine kind.

    Every method opens its own connection and closes it before returning,
    whether the call succeeds or raises. Driver exceptions propagate
    unchanged; the executor translates them.
    """

    kind: EngineKind

    def __init__(self, connect_timeout: int = 10):
        self.connect_timeout = connect_timeout

    @abstractmethod
    async def ping(self, profile: ConnectionProfile) -> None:
        """Connect, check liveness and disconnect. Raises on any failure."""

    @abstractmethod
    async def run(self, profile: ConnectionProfile, sql: str) -> RawResult:
        """Execute ``sql`` on a fresh connection."""

    @abstractmethod
    async def list_tables(self, profile: ConnectionProfile) -> list[TableInfo]:
        """Return tables of the profile's database with approximate row counts."""
