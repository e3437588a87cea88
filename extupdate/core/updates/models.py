"""Data models for the update subsystem"""

import functools
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanStatus(str, Enum):
    """Lifecycle status of an update plan"""
    FRESH = "FRESH"
    STAGED = "STAGED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class RejectionReason(str, Enum):
    """Why a plan ended with nothing to do"""
    INCOMPATIBLE_VERSION = "incompatible_version"
    INCOMPATIBLE_PLATFORM = "incompatible_platform"
    ALREADY_PROCESSED = "already_processed"
    DISCARDED = "discarded"


# Matches the product code prefix of "IC-139.1234"
_PRODUCT_CODE = re.compile(r"^([A-Za-z]+)-(.+)$")


@functools.total_ordering
@dataclass(frozen=True)
class BuildNumber:
    """Host build identifier, e.g. ``HB-3.12.1`` or ``3.12``.

    The product code is informational only. Components compare numerically,
    missing components count as zero, and ``*``/``SNAPSHOT`` components act as
    a wildcard that is larger than any concrete number.
    """
    product_code: str
    components: Tuple[int, ...]

    WILDCARD = 2 ** 31 - 1

    @classmethod
    def parse(cls, text: str) -> "BuildNumber":
        """Parse a build string.

        Raises:
            ValueError: If a component is neither numeric nor a wildcard
        """
        if text is None or not text.strip():
            raise ValueError("Build number cannot be empty")

        value = text.strip()
        product_code = ""
        match = _PRODUCT_CODE.match(value)
        if match:
            product_code, value = match.group(1), match.group(2)

        components = []
        for part in value.split("."):
            if part in ("*", "SNAPSHOT"):
                components.append(cls.WILDCARD)
            elif part.isdigit():
                components.append(int(part))
            else:
                raise ValueError(f"Invalid build number component '{part}' in '{text}'")
        return cls(product_code=product_code, components=tuple(components))

    def as_string(self) -> str:
        parts = ["*" if c == self.WILDCARD else str(c) for c in self.components]
        body = ".".join(parts)
        return f"{self.product_code}-{body}" if self.product_code else body

    def _compare(self, other: "BuildNumber") -> int:
        size = max(len(self.components), len(other.components))
        mine = self.components + (0,) * (size - len(self.components))
        theirs = other.components + (0,) * (size - len(other.components))
        for a, b in zip(mine, theirs):
            if a != b:
                return -1 if a < b else 1
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BuildNumber):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: "BuildNumber") -> bool:
        if not isinstance(other, BuildNumber):
            return NotImplemented
        return self._compare(other) < 0

    def __hash__(self) -> int:
        trimmed = list(self.components)
        while trimmed and trimmed[-1] == 0:
            trimmed.pop()
        return hash(tuple(trimmed))

    def __str__(self) -> str:
        return self.as_string()


class ExtensionDescriptor(BaseModel):
    """Metadata of an extension, read from its manifest.json or a catalog entry"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(description="Unique extension identifier (e.g., 'tools.postman')")
    name: Optional[str] = Field(default=None, description="Human-readable extension name")
    version: Optional[str] = Field(default=None, description="Dotted version string")
    description: Optional[str] = Field(default=None, description="Brief description")
    vendor: Optional[str] = Field(default=None, description="Extension vendor")
    depends: List[str] = Field(default_factory=list, description="Ids of required extensions")
    since_build: Optional[str] = Field(default=None, alias="sinceBuild", description="Oldest compatible host build")
    until_build: Optional[str] = Field(default=None, alias="untilBuild", description="Newest compatible host build")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl", description="Catalog download URL")
    repository: Optional[str] = Field(default=None, description="Repository host the entry came from")
    path: Optional[Path] = Field(default=None, description="On-disk location when installed")

    @field_validator('id')
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate extension ID format"""
        if not v or not v.strip():
            raise ValueError("Extension ID cannot be empty")
        if not all(c.isalnum() or c in '._-' for c in v):
            raise ValueError("Extension ID can only contain alphanumeric characters, dots, underscores, and hyphens")
        return v

    @property
    def display_name(self) -> str:
        return self.name or self.id

    def compatibility_range(self) -> str:
        """Human readable since/until range used in diagnostics"""
        return f"since:{self.since_build or '-'} until:{self.until_build or '-'}"
