"""
Kernel pool: a named-variable store with change tracking.

Each variable carries an update counter. A Watcher remembers the counter
value it last saw, so consumers holding derived data (composed frame
rotations, for instance) can ask whether that data went stale instead of
registering callbacks.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..exceptions import InvalidArgumentError
from .text_kernel_parser import parse_text_kernel

logger = logging.getLogger(__name__)

NUMERIC = "N"
TEXTUAL = "C"
DATA_KINDS = (NUMERIC, TEXTUAL)

PoolValue = Union[float, str]


@dataclass(frozen=True)
class PoolEntry:
    """A pool variable's (name, kind) pair. Order matters for equality."""
    name: str
    kind: str

    def __post_init__(self):
        if not self.name:
            raise InvalidArgumentError("Pool entry requires a name")
        if not self.kind:
            raise InvalidArgumentError(f"Pool entry '{self.name}' requires a data kind")


@dataclass(eq=False)
class Watcher:
    """
    Subscriber on one pool variable.

    Equality and hash depend on the watched name only.
    """
    name: str
    last_seen: int = 0
    pool: Optional["KernelPool"] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.name:
            raise InvalidArgumentError("Watcher requires a variable name")

    def has_changed(self) -> bool:
        if self.pool is None:
            raise InvalidArgumentError(f"Watcher '{self.name}' is not attached to a pool")
        return self.pool.has_changed(self)

    def __eq__(self, other):
        if not isinstance(other, Watcher):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)


class KernelPool:
    """
    Store of kernel variables, numeric or textual.

    Every mutating operation holds the pool lock, so update counters and
    watcher bookmarks stay consistent when several threads share one pool.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._lock = threading.RLock()
        self._entries: Dict[str, PoolEntry] = {}
        self._values: Dict[str, List[PoolValue]] = {}
        self._versions: Dict[str, int] = {}
        self._watchers: Dict[Tuple[Optional[str], str], Watcher] = {}

    def _bump(self, name: str):
        self._versions[name] = self._versions.get(name, 0) + 1

    @staticmethod
    def _coerce(name: str, kind: str, values) -> List[PoolValue]:
        if isinstance(values, (str, bytes)) or not hasattr(values, "__iter__"):
            values = [values]
        if kind == NUMERIC:
            try:
                return [float(v) for v in values]
            except (TypeError, ValueError) as e:
                raise InvalidArgumentError(f"Numeric pool variable '{name}' got non-numeric values") from e
        return [str(v) for v in values]

    def set(self, name: str, kind: str, values, append: bool = False):
        """
        Insert or replace a variable.

        Args:
            name: Variable name.
            kind: NUMERIC ("N") or TEXTUAL ("C").
            values: A single value or a sequence of values.
            append: Extend an existing variable of the same kind instead of replacing it.
        """
        entry = PoolEntry(name, kind)
        if kind not in DATA_KINDS:
            raise InvalidArgumentError(f"Unknown pool data kind {kind!r} for '{name}'")
        coerced = self._coerce(name, kind, values)

        with self._lock:
            if append and self._entries.get(name) == entry:
                self._values[name].extend(coerced)
            else:
                self._entries[name] = entry
                self._values[name] = coerced
            self._bump(name)
        self.logger.debug(f"Pool variable '{name}' ({kind}) set to {len(coerced)} value(s)")

    def get(self, name: str) -> Optional[List[PoolValue]]:
        """Values of ``name``, or None if the variable is not in the pool."""
        with self._lock:
            values = self._values.get(name)
            return list(values) if values is not None else None

    def get_entry(self, name: str) -> Optional[PoolEntry]:
        with self._lock:
            return self._entries.get(name)

    def get_numbers(self, name: str) -> Optional[List[float]]:
        entry = self.get_entry(name)
        if entry is None or entry.kind != NUMERIC:
            return None
        return self.get(name)

    def get_strings(self, name: str) -> Optional[List[str]]:
        entry = self.get_entry(name)
        if entry is None or entry.kind != TEXTUAL:
            return None
        return self.get(name)

    def delete(self, name: str):
        with self._lock:
            if name in self._entries:
                del self._entries[name]
                del self._values[name]
                self._bump(name)
                self.logger.debug(f"Pool variable '{name}' deleted")

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def version(self, name: str) -> int:
        with self._lock:
            return self._versions.get(name, 0)

    def watch(self, name: str, owner: Optional[str] = None) -> Watcher:
        """
        Watcher on ``name``.

        Repeated calls with the same ``owner`` return the same watcher. Each
        owner keeps its own bookmark, so consumers polling the same variable
        do not take changes from each other.
        """
        key = (owner, name)
        with self._lock:
            watcher = self._watchers.get(key)
            if watcher is None:
                watcher = Watcher(name, self._versions.get(name, 0), self)
                self._watchers[key] = watcher
                self.logger.debug(f"Watching pool variable '{name}' (owner {owner})")
            return watcher

    def has_changed(self, watcher: Watcher) -> bool:
        """True once per change of the watched variable since the watcher last looked."""
        with self._lock:
            current = self._versions.get(watcher.name, 0)
            if current != watcher.last_seen:
                watcher.last_seen = current
                return True
            return False

    def load_text_kernel(self, path: Union[str, Path]) -> List[str]:
        """
        Load the data blocks of a text kernel into the pool.

        Returns:
            Names of the variables assigned by the kernel, in order of first assignment.
        """
        path = Path(path)
        text = path.read_text(encoding="ascii", errors="replace")
        assigned: List[str] = []
        for assignment in parse_text_kernel(text, source=str(path)):
            self.set(assignment.name, assignment.kind, assignment.values, append=assignment.append)
            if assignment.name not in assigned:
                assigned.append(assignment.name)
        self.logger.info(f"Loaded text kernel {path}: {len(assigned)} variable(s)")
        return assigned

    def clear(self):
        """Remove every variable; watchers of removed variables see a change."""
        with self._lock:
            for name in list(self._entries):
                self._bump(name)
            self._entries.clear()
            self._values.clear()
        self.logger.info("Kernel pool cleared")
