"""Event models shared between the watcher and the batching loop."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class ChangeKind(str, Enum):
    """Kinds of filesystem change reported by the watcher."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    MOVE = "move"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed under the watched root.

    ``path`` is relative to the root and always uses forward slashes.
    """

    path: str
    kind: ChangeKind
    observed_at: float = field(default_factory=time.time)
