"""
Reference frame catalog and rotation resolver.

Built-in frames are the classical inertial frames, each defined by a
sequence of rotations (in arcseconds) from a base frame, numbered 1..21
with J2000 as the root. Frames defined as TK frames in the kernel pool are
numbered after the built-ins, in the order they are first resolved.

Any rotation is composed through the root: R(from -> to) =
R(root -> to) @ R(root -> from).T.
"""

import functools
import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..exceptions import InvalidArgumentError, KernelFormatError, UnknownFrameError
from ..pool.kernel_pool import KernelPool, Watcher
from ..utils.geometry_utils import ARCSECONDS_TO_RADIANS, euler_rotation, is_rotation_matrix

logger = logging.getLogger(__name__)

ROOT_FRAME = "J2000"
ROOT_FRAME_NUMBER = 1
UNKNOWN_FRAME_NUMBER = 0

# (name, base frame, rotations from base as "angle axis ..." with angles in arcseconds)
BUILTIN_INERTIAL_FRAMES: Tuple[Tuple[str, str, str], ...] = (
    ("J2000", "J2000", "0.0 3"),
    ("B1950", "J2000", "1152.84248596724 3 -1002.26108439117 2 1153.04066200330 3"),
    ("FK4", "B1950", "0.525 3"),
    ("DE-118", "B1950", "0.53155 3"),
    ("DE-96", "B1950", "0.4107 3"),
    ("DE-102", "B1950", "0.1193 3"),
    ("DE-108", "B1950", "0.4371 3"),
    ("DE-111", "B1950", "0.5165 3"),
    ("DE-114", "B1950", "0.4631 3"),
    ("DE-122", "B1950", "0.5316 3"),
    ("DE-125", "B1950", "0.4520 3"),
    ("DE-130", "B1950", "0.4624 3"),
    ("GALACTIC", "FK4", "1177200.0 3 225360.0 1 1016100.0 3"),
    ("DE-200", "J2000", "0.0 3"),
    ("DE-202", "J2000", "0.0 3"),
    ("MARSIAU", "J2000", "324000.0D0 3 133610.4D0 2 -152348.4D0 3"),
    ("ECLIPJ2000", "J2000", "84381.448 1"),
    ("ECLIPB1950", "B1950", "84404.836 1"),
    ("DE-140", "J2000", "1152.71013777252 3 -1002.25042010533 2 1153.75719739988 3"),
    ("DE-142", "J2000", "1153.03919093833 3 -1002.24822382286 2 1153.42900222357 3"),
    ("DE-143", "J2000", "1153.04269249376 3 -1002.24720387312 2 1153.41632787151 3"),
)
BUILTIN_FRAME_COUNT = len(BUILTIN_INERTIAL_FRAMES)
_BUILTIN_BY_NAME = {name: (base, definition) for name, base, definition in BUILTIN_INERTIAL_FRAMES}

TK_FRAME_CLASS = 4
MATRIX_TOLERANCE = 1e-4

ANGLE_UNITS = {
    "RADIANS": 1.0,
    "DEGREES": np.pi / 180.0,
    "ARCMINUTES": np.pi / (180.0 * 60.0),
    "ARCSECONDS": np.pi / (180.0 * 3600.0),
    "HOURANGLE": np.pi / 12.0,
    "MINUTEANGLE": np.pi / (12.0 * 60.0),
    "SECONDANGLE": np.pi / (12.0 * 3600.0),
}


def _normalize(name: str) -> str:
    return name.strip().upper()


def parse_rotation_definition(definition: str) -> Tuple[List[float], List[int]]:
    """Split an "angle axis angle axis ..." string into arcsecond angles and axes."""
    words = [w for w in re.split(r"[\s,]+", definition.strip()) if w]
    if not words or len(words) % 2:
        raise InvalidArgumentError(f"Malformed rotation definition {definition!r}")
    try:
        angles = [float(w.upper().replace("D", "E")) for w in words[0::2]]
        axes = [int(w) for w in words[1::2]]
    except ValueError as e:
        raise InvalidArgumentError(f"Malformed rotation definition {definition!r}") from e
    return angles, axes


@dataclass(eq=False)
class InertialFrameDef:
    """
    An inertial frame defined by rotations from a base frame.

    Constructed with a name alone, the base and definition come from the
    built-in table. Equality and hash use the name only.
    """
    name: str
    base: Optional[str] = None
    definition: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise InvalidArgumentError("Inertial frame requires a name")
        self.name = _normalize(self.name)
        if self.base is None or self.definition is None:
            builtin = _BUILTIN_BY_NAME.get(self.name)
            if builtin is None:
                raise InvalidArgumentError(f"'{self.name}' is not a built-in inertial frame")
            self.base = self.base if self.base is not None else builtin[0]
            self.definition = self.definition if self.definition is not None else builtin[1]
        self.base = _normalize(self.base)
        parse_rotation_definition(self.definition)

    def rotation_from_base(self) -> np.ndarray:
        """
        Matrix taking vectors from the base frame to this frame.

        A definition "a1 i1 a2 i2 a3 i3" stands for [a1]_i1 [a2]_i2 [a3]_i3,
        so the last pair is applied first.
        """
        angles, axes = parse_rotation_definition(self.definition)
        return euler_rotation([a * ARCSECONDS_TO_RADIANS for a in reversed(angles)], list(reversed(axes)))

    def __eq__(self, other):
        if not isinstance(other, InertialFrameDef):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)


@functools.lru_cache(maxsize=None)
def _builtin_rotations_from_root() -> Tuple[np.ndarray, ...]:
    """Root-to-frame matrix of every built-in frame, indexed by number - 1."""
    numbers = {name: i + 1 for i, (name, _, _) in enumerate(BUILTIN_INERTIAL_FRAMES)}
    rotations: Dict[int, np.ndarray] = {}
    for name, _, _ in BUILTIN_INERTIAL_FRAMES:
        frame = InertialFrameDef(name)
        if frame.name == ROOT_FRAME:
            rotations[numbers[name]] = np.eye(3)
            continue
        # The table lists bases before the frames built on them
        rotations[numbers[name]] = frame.rotation_from_base() @ rotations[numbers[frame.base]]
    result = tuple(rotations[i + 1] for i in range(BUILTIN_FRAME_COUNT))
    for matrix in result:
        matrix.setflags(write=False)
    return result


@dataclass
class KernelFrame:
    """A TK frame read from the kernel pool, with its cached local rotation."""
    number: int
    name: str
    code: Optional[int] = None
    relative: Optional[str] = None
    rotation_from_relative: Optional[np.ndarray] = field(default=None, repr=False)
    watchers: List[Watcher] = field(default_factory=list, repr=False)

    def is_stale(self) -> bool:
        # Every watcher must be polled so all bookmarks advance
        changed = [watcher.has_changed() for watcher in self.watchers]
        return any(changed)


class FrameResolver:
    """
    Resolves frame names to catalog numbers and computes rotations.

    Kernel-defined frames are re-read from the pool whenever one of the
    variables defining them has changed since they were last read.
    Each resolver watches the pool under its own owner name, so resolvers
    sharing a pool all see every change.
    """

    _instances = itertools.count(1)

    def __init__(self, pool: Optional[KernelPool] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.pool = pool
        self.watch_owner = f"{self.__class__.__name__}-{next(FrameResolver._instances)}"
        self._builtin_numbers = {name: i + 1 for i, (name, _, _) in enumerate(BUILTIN_INERTIAL_FRAMES)}
        self._kernel_frames: Dict[int, KernelFrame] = {}
        self._kernel_numbers: Dict[str, int] = {}

    @property
    def highest_frame_number(self) -> int:
        return BUILTIN_FRAME_COUNT + len(self._kernel_frames)

    def frame_number_of(self, name: str) -> int:
        """
        Catalog number of frame ``name``; 0 if no such frame is known.

        A name defined in the kernel pool (``FRAME_<NAME>``) gets the next
        free number the first time it is asked for.
        """
        key = _normalize(name)
        number = self._builtin_numbers.get(key) or self._kernel_numbers.get(key)
        if number is not None:
            return number
        if self.pool is None or self._pool_code(key) is None:
            self.logger.debug(f"Frame '{name}' is not known")
            return UNKNOWN_FRAME_NUMBER

        number = self.highest_frame_number + 1
        self._kernel_frames[number] = KernelFrame(number, key)
        self._kernel_numbers[key] = number
        self.logger.info(f"Kernel frame '{key}' assigned catalog number {number}")
        return number

    def frame_number_for_code(self, code: int) -> int:
        """Catalog number of the frame with NAIF frame code ``code``; 0 if unknown."""
        if 1 <= code <= BUILTIN_FRAME_COUNT:
            return code
        if self.pool is None:
            return UNKNOWN_FRAME_NUMBER
        names = self.pool.get_strings(f"FRAME_{code}_NAME")
        if not names or len(names) != 1:
            return UNKNOWN_FRAME_NUMBER
        return self.frame_number_of(names[0])

    def frame_name_of(self, number: int) -> Optional[str]:
        if 1 <= number <= BUILTIN_FRAME_COUNT:
            return BUILTIN_INERTIAL_FRAMES[number - 1][0]
        frame = self._kernel_frames.get(number)
        return frame.name if frame is not None else None

    def _check_number(self, number: int):
        if isinstance(number, bool) or not isinstance(number, (int, np.integer)):
            raise UnknownFrameError(f"Frame number must be an integer, got {number!r}")
        if not 1 <= number <= self.highest_frame_number:
            raise UnknownFrameError(
                f"Frame number {number} is outside the catalog (1..{self.highest_frame_number})"
            )

    def rotation_between(self, from_number: int, to_number: int) -> np.ndarray:
        """
        Matrix taking vectors from frame ``from_number`` to frame ``to_number``.

        Raises:
            UnknownFrameError: If either number is outside the catalog or a
                kernel frame can no longer be resolved.
        """
        self._check_number(from_number)
        self._check_number(to_number)
        if from_number == to_number:
            return np.eye(3)
        return self._rotation_from_root(to_number) @ self._rotation_from_root(from_number).T

    def rotation_between_names(self, from_name: str, to_name: str) -> np.ndarray:
        numbers = []
        for name in (from_name, to_name):
            number = self.frame_number_of(name)
            if number == UNKNOWN_FRAME_NUMBER:
                raise UnknownFrameError(f"Frame '{name}' is not known")
            numbers.append(number)
        return self.rotation_between(*numbers)

    def _rotation_from_root(self, number: int, visiting: Tuple[int, ...] = ()) -> np.ndarray:
        if number <= BUILTIN_FRAME_COUNT:
            return _builtin_rotations_from_root()[number - 1]
        if number in visiting:
            names = [self._kernel_frames[n].name for n in visiting]
            raise UnknownFrameError(f"Circular frame definition: {' -> '.join(names)}")

        frame = self._kernel_frames[number]
        stale = frame.is_stale()
        if stale or frame.rotation_from_relative is None:
            if stale:
                self.logger.debug(f"Kernel frame '{frame.name}' changed in the pool, re-reading")
            self._load_kernel_frame(frame)

        relative_number = self.frame_number_of(frame.relative)
        if relative_number == UNKNOWN_FRAME_NUMBER:
            raise UnknownFrameError(f"Frame '{frame.name}' is relative to unknown frame '{frame.relative}'")
        return frame.rotation_from_relative @ self._rotation_from_root(relative_number, visiting + (number,))

    def _pool_code(self, key: str) -> Optional[int]:
        codes = self.pool.get_numbers(f"FRAME_{key}")
        if not codes or len(codes) != 1:
            return None
        return int(codes[0])

    def _tk_value(self, frame: KernelFrame, suffix: str, numeric: bool):
        getter = self.pool.get_numbers if numeric else self.pool.get_strings
        for prefix in (frame.code, frame.name):
            values = getter(f"TKFRAME_{prefix}_{suffix}")
            if values is not None:
                return values
        return None

    def _watch_definition(self, frame: KernelFrame):
        names = [f"FRAME_{frame.name}"]
        if frame.code is not None:
            names.append(f"FRAME_{frame.code}_CLASS")
            for suffix in ("RELATIVE", "SPEC", "MATRIX", "ANGLES", "AXES", "UNITS"):
                names.append(f"TKFRAME_{frame.code}_{suffix}")
                names.append(f"TKFRAME_{frame.name}_{suffix}")
        frame.watchers = [self.pool.watch(n, owner=self.watch_owner) for n in names]
        # Bookmarks now reflect the definition about to be read
        frame.is_stale()

    def _load_kernel_frame(self, frame: KernelFrame):
        frame.rotation_from_relative = None
        frame.code = None
        code = self._pool_code(frame.name)
        frame.code = code
        self._watch_definition(frame)
        if code is None:
            raise UnknownFrameError(f"Frame '{frame.name}' is no longer defined in the kernel pool")

        frame_class = self.pool.get_numbers(f"FRAME_{code}_CLASS")
        if not frame_class or int(frame_class[0]) != TK_FRAME_CLASS:
            raise KernelFormatError(f"Frame '{frame.name}' ({code}) is not a TK frame (class {frame_class})")

        relative = self._tk_value(frame, "RELATIVE", numeric=False)
        if not relative or len(relative) != 1:
            raise KernelFormatError(f"TK frame '{frame.name}' needs exactly one RELATIVE frame")
        spec = self._tk_value(frame, "SPEC", numeric=False)
        spec = _normalize(spec[0]) if spec else ""

        if spec == "MATRIX":
            values = self._tk_value(frame, "MATRIX", numeric=True)
            if not values or len(values) != 9:
                raise KernelFormatError(f"TK frame '{frame.name}' MATRIX must hold 9 values")
            # Stored column by column; it maps TK-frame vectors into the relative frame
            to_relative = np.array(values).reshape((3, 3), order="F")
            if not is_rotation_matrix(to_relative, tolerance=MATRIX_TOLERANCE):
                raise KernelFormatError(f"TK frame '{frame.name}' MATRIX is not a rotation matrix")
            rotation = to_relative.T
        elif spec == "ANGLES":
            angles = self._tk_value(frame, "ANGLES", numeric=True)
            axes = self._tk_value(frame, "AXES", numeric=True)
            units = self._tk_value(frame, "UNITS", numeric=False)
            if not angles or not axes or len(angles) != len(axes):
                raise KernelFormatError(f"TK frame '{frame.name}' needs matching ANGLES and AXES")
            if not units or _normalize(units[0]) not in ANGLE_UNITS:
                raise KernelFormatError(f"TK frame '{frame.name}' has missing or unknown UNITS {units}")
            scale = ANGLE_UNITS[_normalize(units[0])]
            # ANGLES give TK -> relative as [a1] [a2] [a3]; its inverse negates every angle
            try:
                rotation = euler_rotation([-a * scale for a in angles], [int(a) for a in axes])
            except InvalidArgumentError as e:
                raise KernelFormatError(f"TK frame '{frame.name}': {e}") from e
        else:
            raise KernelFormatError(f"TK frame '{frame.name}' has unsupported SPEC {spec!r}")

        frame.relative = _normalize(relative[0])
        frame.rotation_from_relative = rotation
        self.logger.debug(f"Kernel frame '{frame.name}' ({code}) read from pool, relative to {frame.relative}")
