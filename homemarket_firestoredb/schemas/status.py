from enum import Enum
from typing import Dict, FrozenSet, Optional


class ProjectStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ProjectStatus":
        """Accept legacy spellings ("in_progress", "canceled", lowercase) found in older documents."""
        if isinstance(value, ProjectStatus):
            return value
        key = (value or "").strip().lower().replace("_", " ").replace("-", " ")
        aliases = {
            "pending": cls.PENDING,
            "in progress": cls.IN_PROGRESS,
            "completed": cls.COMPLETED,
            "complete": cls.COMPLETED,
            "cancelled": cls.CANCELLED,
            "canceled": cls.CANCELLED,
        }
        if key not in aliases:
            raise ValueError(f"Unknown project status: {value!r}")
        return aliases[key]


# Forward-only workflow. The current status is always offered so a form can render it selected.
ALLOWED_TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
    ProjectStatus.PENDING: frozenset({ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS, ProjectStatus.CANCELLED}),
    ProjectStatus.IN_PROGRESS: frozenset({ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}),
    ProjectStatus.COMPLETED: frozenset({ProjectStatus.COMPLETED}),
    ProjectStatus.CANCELLED: frozenset({ProjectStatus.CANCELLED}),
}

_DISPLAY_ORDER = [ProjectStatus.PENDING, ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED]


def allowed_next_statuses(current) -> list:
    """Statuses a form may offer for a record currently in `current`, in workflow order."""
    allowed = ALLOWED_TRANSITIONS[ProjectStatus.parse(current)]
    return [status for status in _DISPLAY_ORDER if status in allowed]


def is_transition_allowed(current, target) -> bool:
    return ProjectStatus.parse(target) in ALLOWED_TRANSITIONS[ProjectStatus.parse(current)]
