"""
Update model - canonical, normalized representation of an app update.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union


UNKNOWN_SEQUENCE_LABEL = 'Unknown'


@dataclass(frozen=True)
class SubresourceChange:
    """A depot listed in the app's depot section."""

    id: str
    name: Optional[str] = None
    size: Optional[str] = None

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'size': self.size}


@dataclass(frozen=True)
class BranchInfo:
    """A branch (beta) of the app and its current build."""

    name: str
    build_marker: Optional[str] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'build_marker': self.build_marker,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Update:
    """
    A normalized app update.

    ``sequence`` is the upstream changenumber, or None when upstream did
    not provide one (rendered as ``Unknown``).
    """

    resource_id: Union[int, str]
    sequence: Optional[int] = None
    label: str = ''
    build_marker: Optional[str] = None
    changed_subresources: List[SubresourceChange] = field(default_factory=list)
    branches: List[BranchInfo] = field(default_factory=list)
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    missing_token: bool = False

    def __post_init__(self):
        if self.sequence is not None:
            if isinstance(self.sequence, bool) or not isinstance(self.sequence, int) or self.sequence < 0:
                raise ValueError(f"sequence must be a non-negative integer, got {self.sequence!r}")
        if self.updated_at is None:
            self.updated_at = self.observed_at

    def __str__(self) -> str:
        return (
            f"[{self.label}] changelist #{self.sequence_label}, "
            f"build {self.build_marker or 'unknown'}, "
            f"{self.subresource_count} depot(s)"
        )

    @property
    def has_sequence(self) -> bool:
        """Whether the update carries a changenumber usable for ordering."""
        return self.sequence is not None

    @property
    def sequence_label(self) -> str:
        return str(self.sequence) if self.has_sequence else UNKNOWN_SEQUENCE_LABEL

    @property
    def subresource_count(self) -> int:
        return len(self.changed_subresources)

    def get_branch(self, name: str) -> Optional[BranchInfo]:
        """Find a branch by name."""
        for branch in self.branches:
            if branch.name == name:
                return branch
        return None

    def format_change_summary(self, branch_name: str = 'public') -> str:
        """
        Build a short human-readable summary of what changed.

        Args:
            branch_name: Branch whose build is reported

        Returns:
            Summary such as ``Depots (571, 572) — public, build 123``
        """
        parts = []

        if self.changed_subresources:
            depot_ids = ', '.join(d.id for d in self.changed_subresources)
            parts.append(f"Depots ({depot_ids})")

        branch = self.get_branch(branch_name)
        if branch and branch.build_marker:
            parts.append(f"{branch.name}, build {branch.build_marker}")

        if not parts:
            parts.append('App info updated')

        return ' — '.join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'resource_id': self.resource_id,
            'sequence': self.sequence if self.has_sequence else UNKNOWN_SEQUENCE_LABEL,
            'label': self.label,
            'build_marker': self.build_marker,
            'changed_subresources': [d.to_dict() for d in self.changed_subresources],
            'branches': [b.to_dict() for b in self.branches],
            'observed_at': self.observed_at.isoformat(),
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'missing_token': self.missing_token,
        }
