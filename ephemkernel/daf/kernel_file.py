"""
Kernel file identification and DAF array access.

Provides:
- identify_architecture: map a file's leading id word to (architecture, type)
- read_file_info: cheap identification of any file as a KernelFileInfo
- DafFile: an open DAF with forward/backward summary search and word reads
"""

import itertools
import logging
import math
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import numpy as np

from ..exceptions import InvalidArgumentError, KernelError, KernelFormatError
from .addressing import (
    BYTE_ORDERS,
    CHARS_PER_RECORD,
    ID_WORD_LENGTH,
    INTERNAL_NAME_LENGTH,
    RECORD_LENGTH,
    WORDS_PER_RECORD,
    address_to_byte_offset,
    record_to_byte_offset,
    record_word_to_address,
    summary_size,
)
from .daf_state import DafState

logger = logging.getLogger(__name__)

UNKNOWN_ARCHITECTURE = ("?", "?")

# Exact id words (first blank-delimited word of the first 8 bytes) -> (architecture, type)
ID_WORD_TABLE = {
    "DAF/SPK": ("DAF", "SPK"),
    "DAF/CK": ("DAF", "CK"),
    "DAF/PCK": ("DAF", "PCK"),
    "DAF/EK": ("DAF", "EK"),
    "NAIF/DAF": ("DAF", "?"),
    "DAS/EK": ("DAS", "EK"),
    "DAS/DSK": ("DAS", "DSK"),
    "DAS/PCK": ("DAS", "PCK"),
    "NAIF/DAS": ("DAS", "?"),
    "KPL/LSK": ("KPL", "LSK"),
    "KPL/FK": ("KPL", "FK"),
    "KPL/IK": ("KPL", "IK"),
    "KPL/PCK": ("KPL", "PCK"),
    "KPL/SCLK": ("KPL", "SCLK"),
    "KPL/MK": ("KPL", "MK"),
}

# Largest ND/NI a single 128-word summary record can hold
MAX_ND = 124
MAX_NI = 250


def identify_architecture(id_word: Union[bytes, str]) -> Tuple[str, str]:
    """
    Classify a file from its leading identification word.

    Args:
        id_word: The first bytes (or characters) of the file.

    Returns:
        (architecture, type), or ("?", "?") if the word is not recognized.
    """
    if isinstance(id_word, bytes):
        id_word = id_word[:ID_WORD_LENGTH].decode("ascii", errors="replace")
    words = id_word[:ID_WORD_LENGTH].replace("\x00", " ").split()
    key = words[0] if words else ""
    return ID_WORD_TABLE.get(key, UNKNOWN_ARCHITECTURE)


@dataclass(frozen=True)
class KernelFileInfo:
    """Identification of one kernel file."""
    path: str
    architecture: str
    kernel_type: str
    record_count: int = 0
    summary_word_count: int = 0

    def __post_init__(self):
        if not self.path:
            raise InvalidArgumentError("KernelFileInfo requires a path")
        if not self.kernel_type:
            raise InvalidArgumentError(f"KernelFileInfo for {self.path} requires a type")
        if not self.architecture:
            raise InvalidArgumentError(f"KernelFileInfo for {self.path} requires an architecture")

    @property
    def is_known(self) -> bool:
        return (self.architecture, self.kernel_type) != UNKNOWN_ARCHITECTURE


@dataclass(frozen=True)
class DafFileRecord:
    """Decoded first record of a DAF file."""
    id_word: str
    nd: int
    ni: int
    internal_name: str
    forward: int
    backward: int
    free: int
    byte_order: str

    @property
    def summary_size(self) -> int:
        return summary_size(self.nd, self.ni)

    @property
    def name_size(self) -> int:
        return 8 * self.summary_size


def _plausible_format(nd: int, ni: int) -> bool:
    return 0 <= nd <= MAX_ND and 2 <= ni <= MAX_NI


def parse_file_record(data: bytes) -> DafFileRecord:
    """
    Decode a DAF file record.

    The binary format tag at byte 88 selects the byte order. Files written
    before the tag existed have blanks there; their byte order is sniffed
    from ND/NI.

    Raises:
        KernelFormatError: If the record is truncated or inconsistent.
    """
    if len(data) < 96:
        raise KernelFormatError(f"DAF file record truncated to {len(data)} bytes")

    tag = data[88:96].decode("ascii", errors="replace")
    byte_order = BYTE_ORDERS.get(tag)
    if byte_order is None:
        for candidate in ("<", ">"):
            nd, ni = struct.unpack(candidate + "2i", data[8:16])
            if _plausible_format(nd, ni):
                byte_order = candidate
                break
        else:
            raise KernelFormatError(f"Cannot determine byte order of DAF (format tag {tag!r})")

    nd, ni = struct.unpack(byte_order + "2i", data[8:16])
    if not _plausible_format(nd, ni):
        raise KernelFormatError(f"Implausible DAF summary format ND={nd} NI={ni}")
    forward, backward, free = struct.unpack(byte_order + "3i", data[76:88])

    return DafFileRecord(
        id_word=data[:ID_WORD_LENGTH].decode("ascii", errors="replace"),
        nd=nd,
        ni=ni,
        internal_name=data[16:16 + INTERNAL_NAME_LENGTH].decode("ascii", errors="replace").rstrip(),
        forward=forward,
        backward=backward,
        free=free,
        byte_order=byte_order,
    )


def read_file_info(path: Union[str, Path]) -> KernelFileInfo:
    """
    Identify a kernel file without keeping it open.

    Unrecognized id words give architecture and type "?" instead of an
    error, so the caller decides whether that is fatal.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    path = Path(path)
    with open(path, "rb") as f:
        head = f.read(RECORD_LENGTH)
    size = path.stat().st_size

    architecture, kernel_type = identify_architecture(head)
    record_count = math.ceil(size / RECORD_LENGTH)
    summary_word_count = 0

    if architecture == "DAF":
        try:
            summary_word_count = parse_file_record(head).summary_size
        except KernelFormatError as e:
            logger.warning(f"DAF header of {path} is unreadable: {e}")
    elif architecture == "?":
        logger.warning(f"Unrecognized kernel id word in {path}: {head[:ID_WORD_LENGTH]!r}")

    info = KernelFileInfo(str(path), architecture, kernel_type, record_count, summary_word_count)
    logger.debug(f"Identified {path} as {architecture}/{kernel_type} ({record_count} records)")
    return info


def unpack_summary(summary: np.ndarray, nd: int, ni: int, byte_order: str) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Split a packed array summary into its double and integer components.

    The integers are stored two per word in the file's byte order, after
    the ``nd`` doubles.
    """
    summary = np.asarray(summary, dtype=np.float64)
    doubles = summary[:nd].copy()
    packed = summary[nd:nd + (ni + 1) // 2].astype(byte_order + "f8").tobytes()
    integers = struct.unpack(f"{byte_order}{ni}i", packed[:4 * ni])
    return doubles, integers


class DafFile:
    """
    Read-only handle on a DAF kernel file.

    Each instance owns its file descriptor and a DafState cursor; neither is
    shared. Use as a context manager, or call close() explicitly.
    """

    _handles = itertools.count(1)

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.info = read_file_info(self.path)
        if self.info.architecture != "DAF":
            raise KernelFormatError(
                f"{self.path} is not a DAF file "
                f"(architecture '{self.info.architecture}', type '{self.info.kernel_type}')"
            )

        self._file = open(self.path, "rb")
        try:
            self.file_record = parse_file_record(self._file.read(RECORD_LENGTH))
        except BaseException:
            self._file.close()
            raise

        self.handle = next(DafFile._handles)
        self.state = DafState(handle=self.handle)
        self.logger.info(
            f"Opened DAF {self.path} (handle {self.handle}, type {self.info.kernel_type}, "
            f"ND={self.file_record.nd} NI={self.file_record.ni})"
        )

    @property
    def kernel_type(self) -> str:
        return self.info.kernel_type

    @property
    def byte_order(self) -> str:
        return self.file_record.byte_order

    @property
    def closed(self) -> bool:
        return self._file.closed

    def _check_open(self):
        if self._file.closed:
            raise KernelError(f"DAF {self.path} (handle {self.handle}) is closed")

    def _read_bytes(self, offset: int, count: int) -> bytes:
        self._check_open()
        self._file.seek(offset)
        data = self._file.read(count)
        if len(data) != count:
            raise KernelFormatError(
                f"Short read in {self.path}: wanted {count} bytes at offset {offset}, got {len(data)}"
            )
        return data

    def read_words(self, first: int, last: int) -> np.ndarray:
        """Doubles stored at word addresses first..last inclusive."""
        if last < first:
            raise InvalidArgumentError(f"Empty address range {first}..{last}")
        data = self._read_bytes(address_to_byte_offset(first), (last - first + 1) * 8)
        return np.frombuffer(data, dtype=self.byte_order + "f8").astype(np.float64)

    def read_character_record(self, record: int) -> str:
        data = self._read_bytes(record_to_byte_offset(record), CHARS_PER_RECORD)
        return data.decode("ascii", errors="replace")

    def _load_summary_record(self, record: int):
        if record <= 0:
            raise KernelFormatError(f"Invalid summary record pointer {record} in {self.path}")
        first = record_word_to_address(record, 1)
        words = self.read_words(first, first + WORDS_PER_RECORD - 1)
        self.state.load_summary_record(record, words)

        capacity = (WORDS_PER_RECORD - 3) // max(self.file_record.summary_size, 1)
        if not 0 <= self.state.summary_count <= capacity:
            raise KernelFormatError(
                f"Summary record {record} of {self.path} claims {self.state.summary_count} summaries"
            )

    def begin_forward_search(self):
        """Position the cursor before the first array of the file."""
        self._load_summary_record(self.file_record.forward)
        self.state.set_summary_index(0)

    def begin_backward_search(self):
        """Position the cursor after the last array of the file."""
        self._load_summary_record(self.file_record.backward)
        self.state.set_summary_index(self.state.summary_count + 1)

    def find_next_array(self) -> bool:
        """Advance to the next array; False once the search is exhausted."""
        state = self.state
        state.set_summary_index(state.summary_index + 1)
        while state.summary_index > state.summary_count:
            if state.next_record == 0:
                state.set_summary_index(state.summary_count + 1)
                return False
            self._load_summary_record(state.next_record)
            state.set_summary_index(1)
        return True

    def find_previous_array(self) -> bool:
        """Step back to the previous array; False once the search is exhausted."""
        state = self.state
        state.set_summary_index(state.summary_index - 1)
        while state.summary_index <= 0:
            if state.previous_record == 0:
                state.set_summary_index(0)
                return False
            self._load_summary_record(state.previous_record)
            state.set_summary_index(state.summary_count)
        return True

    def _check_current(self):
        if not self.state.has_current:
            raise KernelError(
                f"No current array in {self.path} (summary {self.state.summary_index} "
                f"of {self.state.summary_count})"
            )

    def get_summary(self) -> np.ndarray:
        """Packed summary of the current array."""
        self._check_current()
        size = self.file_record.summary_size
        offset = 3 + (self.state.summary_index - 1) * size
        return np.array(self.state.summary_record[offset:offset + size])

    def get_name(self) -> str:
        """Name of the current array, trailing blanks removed."""
        self._check_current()
        if not self.state.buffered:
            self.state.set_name_record(self.read_character_record(self.state.current_record + 1))
        size = self.file_record.name_size
        offset = (self.state.summary_index - 1) * size
        return self.state.name_record[offset:offset + size].rstrip(" \x00")

    def unpack_summary(self, summary: np.ndarray) -> Tuple[np.ndarray, Tuple[int, ...]]:
        return unpack_summary(summary, self.file_record.nd, self.file_record.ni, self.byte_order)

    def iter_arrays(self, backward: bool = False) -> Iterator[Tuple[np.ndarray, str]]:
        """Yield (summary, name) for every array, in file or reverse order."""
        if backward:
            self.begin_backward_search()
            step = self.find_previous_array
        else:
            self.begin_forward_search()
            step = self.find_next_array
        while step():
            yield self.get_summary(), self.get_name()

    def close(self):
        if not self._file.closed:
            self._file.close()
            self.state = DafState()
            self.logger.info(f"Closed DAF {self.path} (handle {self.handle})")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"DafFile({str(self.path)!r}, handle={self.handle})"


def open_kernel_file(path: Union[str, Path], kernel_type: Optional[str] = None) -> DafFile:
    """
    Open a DAF kernel, optionally insisting on its type.

    Raises:
        KernelFormatError: If the file is not a DAF, or not of ``kernel_type``.
    """
    daf = DafFile(path)
    if kernel_type is not None and daf.kernel_type != kernel_type:
        daf.close()
        raise KernelFormatError(f"{path} is a DAF/{daf.kernel_type} file, expected DAF/{kernel_type}")
    return daf
