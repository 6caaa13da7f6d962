"""
Raw change event model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union


@dataclass
class RawChangeEvent:
    """A change notification for the tracked app, as received from upstream."""

    resource_id: Union[int, str]
    sequence: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_push(
        cls,
        resource_id: Union[int, str],
        data: Any,
        fallback_sequence: Optional[int] = None
    ) -> 'RawChangeEvent':
        """
        Build an event from an upstream data blob.

        The blob's own ``changenumber`` wins over the fallback, which is
        the changenumber of the changelist push that triggered a fetch.

        Args:
            resource_id: Tracked app id
            data: Product info blob, possibly not a dict at all
            fallback_sequence: Changenumber to use if the blob has none

        Returns:
            RawChangeEvent
        """
        blob = data if isinstance(data, dict) else {}
        sequence = blob.get('changenumber')
        if sequence is None:
            sequence = fallback_sequence
        return cls(resource_id=resource_id, sequence=sequence, data=blob)
