"""
Update Normalizer - Turns raw PICS product info into canonical Update records.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.raw_event import RawChangeEvent
from models.update import Update, SubresourceChange, BranchInfo


# Keys in the depots section that are not depots
NON_DEPOT_KEYS = frozenset([
    'branches',
    'maxsize',
    'depotfromapp',
    'baselanguages',
    'overridescddb',
    'workshopdepot',
    'hasdepotsindlc',
    'privatebranches',
])

DIGITS_PATTERN = re.compile(r'[0-9]+')


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def coerce_sequence(value: Any) -> Optional[int]:
    """
    Convert a changenumber to a non-negative int.

    Args:
        value: Raw changenumber (int, numeric string or anything else)

    Returns:
        int, or None if the value is missing or unusable
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and DIGITS_PATTERN.fullmatch(value.strip()):
        return int(value.strip())
    return None


def parse_unix_time(value: Any) -> Optional[datetime]:
    """Parse a unix timestamp in seconds (int or numeric string) to an aware UTC datetime."""
    seconds = coerce_sequence(value)
    if seconds is None or seconds == 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class UpdateNormalizer:
    """Pure transformation from RawChangeEvent to Update."""

    def __init__(self, default_label: str = 'Dota 2', default_branch: str = 'public'):
        """
        Args:
            default_label: App name used when upstream provides none
            default_branch: Branch whose build id becomes the build marker
        """
        self.default_label = default_label
        self.default_branch = default_branch

    def normalize(self, event: RawChangeEvent, observed_at: datetime = None) -> Update:
        """
        Normalize a raw change event.

        Missing or malformed nested fields fall back to defaults; this
        method does not raise on bad upstream data.

        Args:
            event: Raw event from the session manager
            observed_at: Time the pipeline saw the event (defaults to now)

        Returns:
            Update
        """
        if observed_at is None:
            observed_at = datetime.now(timezone.utc)

        data = _as_dict(event.data)
        appinfo = _as_dict(data.get('appinfo')) or data
        common = _as_dict(appinfo.get('common'))
        depots = _as_dict(appinfo.get('depots'))
        branches = _as_dict(depots.get('branches'))
        primary_branch = _as_dict(branches.get(self.default_branch))

        sequence = coerce_sequence(event.sequence)
        if sequence is None:
            sequence = coerce_sequence(data.get('changenumber'))

        return Update(
            resource_id=event.resource_id,
            sequence=sequence,
            label=_as_text(common.get('name')) or self.default_label,
            build_marker=_as_text(primary_branch.get('buildid')),
            changed_subresources=self.extract_subresources(depots),
            branches=self.extract_branches(branches),
            observed_at=observed_at,
            updated_at=parse_unix_time(primary_branch.get('timeupdated')) or observed_at,
            missing_token=bool(data.get('missingToken', False)),
        )

    @staticmethod
    def extract_subresources(depots: Dict[str, Any]) -> List[SubresourceChange]:
        """
        Extract depots from the depots section.

        Reserved keys are skipped, and so is any key that is not an
        all-digit depot id or whose value is not a mapping.
        """
        result = []

        for key, value in depots.items():
            key = str(key)
            if key in NON_DEPOT_KEYS or not isinstance(value, dict):
                continue
            if not DIGITS_PATTERN.fullmatch(key):
                continue

            result.append(SubresourceChange(
                id=key,
                name=_as_text(value.get('name')),
                size=_as_text(value.get('maxsize')),
            ))

        return result

    @staticmethod
    def extract_branches(branches: Dict[str, Any]) -> List[BranchInfo]:
        """Extract branch name, build id and update time for every branch."""
        result = []
        for name, info in branches.items():
            info = _as_dict(info)
            result.append(BranchInfo(
                name=str(name),
                build_marker=_as_text(info.get('buildid')),
                updated_at=parse_unix_time(info.get('timeupdated')),
            ))
        return result


def normalize(event: RawChangeEvent, observed_at: datetime = None) -> Update:
    """Normalize an event with the default label and branch."""
    return UpdateNormalizer().normalize(event, observed_at)
