"""Version comparison with a known-broken override"""

import logging
import re
from typing import List, Optional

from extupdate.core.updates.interfaces import ExtensionRegistryProtocol
from extupdate.core.updates.models import ExtensionDescriptor

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[.\-_ ]+")


def _split(version: str) -> List[str]:
    return [part for part in _SEPARATORS.split(version.strip()) if part]


def _compare_parts(a: str, b: str) -> int:
    a_numeric = a.isdigit()
    b_numeric = b.isdigit()
    if a_numeric and b_numeric:
        x, y = int(a), int(b)
    elif a_numeric != b_numeric:
        # a release number outranks a qualifier such as "beta"
        return 1 if a_numeric else -1
    else:
        x, y = a.lower(), b.lower()
    if x == y:
        return 0
    return -1 if x < y else 1


def compare_version_numbers(v1: Optional[str], v2: Optional[str]) -> int:
    """
    Compare two dotted version strings numerically

    Segments are compared left to right, as integers where both are numeric.
    The shorter version is padded with ``0`` segments. ``None`` ranks below
    every version.

    Returns:
        Negative, zero or positive like a classic comparator (-1, 0, 1)
    """
    if v1 is None and v2 is None:
        return 0
    if v1 is None:
        return -1
    if v2 is None:
        return 1

    left = _split(v1)
    right = _split(v2)
    size = max(len(left), len(right))
    left += ["0"] * (size - len(left))
    right += ["0"] * (size - len(right))

    for a, b in zip(left, right):
        result = _compare_parts(a, b)
        if result != 0:
            return result
    return 0


class VersionArbiter:
    """Decides whether a candidate version supersedes an installed extension"""

    def __init__(self, registry: ExtensionRegistryProtocol):
        self.registry = registry

    def compare(self, candidate_version: Optional[str], installed: ExtensionDescriptor) -> int:
        """
        Compare a candidate version with an installed descriptor

        A known-broken installed release is always considered older than the
        candidate, so users can be moved off it even by a downgrade.

        Args:
            candidate_version: Version offered by the repository or the artifact
            installed: Descriptor of the installed extension

        Returns:
            > 0 if the candidate is newer, 0 if equal, < 0 if older
        """
        state = compare_version_numbers(candidate_version, installed.version)
        if state <= 0 and self.registry.is_known_broken(installed):
            logger.info(
                f"Extension {installed.id} {installed.version} is known to be broken, "
                f"forcing update to {candidate_version}"
            )
            state = 1
        return state
