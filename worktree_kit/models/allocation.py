"""Resource allocation models."""

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class NamedRange:
    """A named block of ports starting at ``base`` and ``size`` slots wide."""

    name: str
    base: int
    size: int = 30

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"Range '{self.name}' must have a positive size, got {self.size}")
        if not 0 < self.base <= 65535 - self.size:
            raise ValueError(f"Range '{self.name}' does not fit in the port space: {self.base}+{self.size}")


@dataclass
class ResourceAllocation:
    """Deterministic resources derived from a single worktree identity."""

    branch_name: str
    hash: str  # Short hex digest for display
    safe_name: str
    offset: int
    ports: Dict[str, int]
    docker: Dict[str, str] = field(default_factory=dict)
    aws: Dict[str, str] = field(default_factory=dict)
    environment: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize with the key names used in the metadata record."""
        return {
            "branchName": self.branch_name,
            "safeName": self.safe_name,
            "hash": self.hash,
            "offset": self.offset,
            "ports": dict(self.ports),
            "docker": dict(self.docker),
            "aws": dict(self.aws),
            "environment": dict(self.environment),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResourceAllocation":
        """Rebuild an allocation from a cached metadata record."""
        return cls(
            branch_name=data["branchName"],
            hash=data["hash"],
            safe_name=data["safeName"],
            offset=data["offset"],
            ports=dict(data.get("ports", {})),
            docker=dict(data.get("docker", {})),
            aws=dict(data.get("aws", {})),
            environment=dict(data.get("environment", {})),
        )
