"""
Cursor model - the persisted deduplication high-water mark.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class Cursor:
    """Highest changenumber ever forwarded for a tracked app."""

    last_sequence: int
    resource_id: Optional[Union[int, str]] = None
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        return {
            'lastSequence': self.last_sequence,
            'resourceId': self.resource_id,
            'lastUpdated': self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['Cursor']:
        """
        Parse a stored cursor record.

        Accepts the current format as well as the older
        ``lastChangenumber``/``appId`` format.

        Args:
            data: Decoded JSON object

        Returns:
            Cursor, or None if the record holds no usable sequence

        Raises:
            ValueError: If the sequence is present but not a non-negative integer
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        sequence = data.get('lastSequence', data.get('lastChangenumber'))
        if sequence is None:
            return None
        if isinstance(sequence, bool) or not isinstance(sequence, int) or sequence < 0:
            raise ValueError(f"Invalid stored sequence: {sequence!r}")

        resource_id = data.get('resourceId', data.get('appId'))

        last_updated = datetime.now(timezone.utc)
        raw_updated = data.get('lastUpdated')
        if isinstance(raw_updated, str):
            try:
                last_updated = datetime.fromisoformat(raw_updated.replace('Z', '+00:00'))
            except ValueError:
                pass

        return cls(last_sequence=sequence, resource_id=resource_id, last_updated=last_updated)
