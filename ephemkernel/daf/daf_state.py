"""Read cursor over the linked summary records of an open DAF file."""

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass
class DafState:
    """
    Position of an array search in one DAF file.

    The cursor buffers the current summary record (and lazily its name
    record) and remembers which summary within it is current. Summary
    indices are 1-based; 0 means "before the first" and
    ``summary_count + 1`` means "after the last".
    """
    handle: int = 0
    current_record: int = 0
    next_record: int = 0
    previous_record: int = 0
    summary_count: int = 0
    summary_index: int = 0
    summary_record: Tuple[float, ...] = ()
    name_record: str = ""
    buffered: bool = False

    def set_handle(self, handle: int):
        self.handle = handle

    def set_summary_index(self, index: int):
        self.summary_index = index

    def load_summary_record(self, record: int, words: Sequence[float]):
        """Take over a freshly read summary record; its name record is not buffered yet."""
        self.summary_record = tuple(float(w) for w in words)
        self.current_record = record
        self.next_record = int(self.summary_record[0])
        self.previous_record = int(self.summary_record[1])
        self.summary_count = int(self.summary_record[2])
        self.name_record = ""
        self.buffered = False

    def set_name_record(self, text: str):
        self.name_record = text
        self.buffered = True

    @property
    def has_current(self) -> bool:
        return 0 < self.summary_index <= self.summary_count
