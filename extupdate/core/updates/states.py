"""Update plan states.

Each state is a separate immutable value so that a plan can only hold the
data its current state allows: a ``Staged`` plan always owns a file, a
``Fresh`` plan never does.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Optional, Union

from extupdate.core.updates.exceptions import UpdateError
from extupdate.core.updates.models import ExtensionDescriptor, PlanStatus, RejectionReason


@dataclass(frozen=True)
class Fresh:
    """Nothing downloaded yet"""
    status: ClassVar[PlanStatus] = PlanStatus.FRESH


@dataclass(frozen=True)
class Staged:
    """A validated artifact is waiting for commit"""
    file: Path
    superseded_path: Optional[Path] = None
    descriptor: Optional[ExtensionDescriptor] = None
    status: ClassVar[PlanStatus] = PlanStatus.STAGED


@dataclass(frozen=True)
class Accepted:
    """The artifact was handed to the installer"""
    file: Path
    descriptor: Optional[ExtensionDescriptor] = None
    status: ClassVar[PlanStatus] = PlanStatus.ACCEPTED


@dataclass(frozen=True)
class Rejected:
    """Nothing to do; not an error"""
    reason: RejectionReason
    message: str
    status: ClassVar[PlanStatus] = PlanStatus.REJECTED


@dataclass(frozen=True)
class Failed:
    """Download or inspection failed before staging"""
    error: UpdateError
    user_message: str
    status: ClassVar[PlanStatus] = PlanStatus.FAILED

    @property
    def kind(self) -> str:
        return type(self.error).__name__


PlanState = Union[Fresh, Staged, Accepted, Rejected, Failed]
