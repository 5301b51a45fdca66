"""
Kernel session: one loaded kernel set and the stores built from it.

The session dispatches each kernel by its id word: SPK files go to the
segment registry, text kernels to the kernel pool. Leapseconds kernels are
also furnished to SPICE so UTC strings can be converted to ephemeris time.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import numpy as np
import spiceypy

from ..config.engine_config_manager import EngineConfigManager
from ..daf.kernel_file import read_file_info
from ..exceptions import InvalidArgumentError, KernelFormatError, UnknownFrameError
from ..frames.frame_catalog import UNKNOWN_FRAME_NUMBER, FrameResolver
from ..pool.kernel_pool import KernelPool
from ..spk.segment_registry import SegmentRegistry
from ..spk.segments import ExpensePolicy, SpkSegment
from ..spk.spk_reader import ChebyshevRecord, SpkReader

Epoch = Union[float, int, str, datetime]
StateEvaluator = Callable[[ChebyshevRecord, float], np.ndarray]

SOLAR_SYSTEM_BARYCENTER = 0
MAX_CHAIN_LENGTH = 100


def _add_states(first: np.ndarray, second: np.ndarray) -> np.ndarray:
    """Sum of two states; a position-only operand drops the velocity."""
    size = min(len(first), len(second))
    return first[:size] + second[:size]


@dataclass(frozen=True)
class SpiceKernelInfo:
    """Which loaded file supplies data, and in which load order."""
    file: str
    kernel_type: str
    handle: int = 0
    sequence: int = 0

    def __post_init__(self):
        if not self.file:
            raise InvalidArgumentError("SpiceKernelInfo requires a file name")
        if not self.kernel_type:
            raise InvalidArgumentError(f"SpiceKernelInfo for {self.file} requires a type")


class KernelSession:
    """
    Loads kernels into a private pool, registry and frame resolver.

    Sessions are independent of each other, except for leapseconds kernels,
    which live in the process-wide SPICE pool used for time conversion.
    """

    def __init__(self, expense_policy: Optional[ExpensePolicy] = None, pool: Optional[KernelPool] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.pool = pool if pool is not None else KernelPool()
        self.registry = SegmentRegistry(expense_policy)
        self.spk_reader = SpkReader(self.registry)
        self.frames = FrameResolver(self.pool)
        self._loaded_kernels: Dict[str, SpiceKernelInfo] = {}
        self._furnished: List[str] = []
        self._sequence = itertools.count(1)
        self.logger.info("KernelSession instance initialized.")

    @classmethod
    def from_config(cls, config_path: Union[str, Path]) -> "KernelSession":
        """Build a session from a YAML configuration and load its kernels."""
        manager = EngineConfigManager()
        config = manager.load_config(config_path)
        session = cls(expense_policy=manager.build_expense_policy(config))
        session.load_kernel(config.kernels)
        return session

    def load_kernel(self, kernel_path: Union[str, Path, List[Union[str, Path]]]):
        """Load individual kernel(s)."""
        if isinstance(kernel_path, (str, Path)):
            kernel_paths = [kernel_path]
        else:
            kernel_paths = kernel_path

        for path in kernel_paths:
            key = str(Path(path).resolve())
            if key in self._loaded_kernels:
                self.logger.debug(f"Kernel already loaded, skipping: {path}")
                continue

            info = read_file_info(path)
            handle = 0
            if (info.architecture, info.kernel_type) == ("DAF", "SPK"):
                handle = self.spk_reader.load(path)
            elif info.architecture == "KPL":
                self.pool.load_text_kernel(path)
                if info.kernel_type == "LSK":
                    self._furnish(key)
            else:
                raise KernelFormatError(
                    f"Unsupported kernel {path}: architecture '{info.architecture}', type '{info.kernel_type}'"
                )

            self._loaded_kernels[key] = SpiceKernelInfo(key, info.kernel_type, handle, next(self._sequence))
            self.logger.info(f"Loaded {info.architecture}/{info.kernel_type} kernel: {path}")

    def _furnish(self, path: str):
        try:
            spiceypy.furnsh(path)
            self._furnished.append(path)
        except spiceypy.utils.exceptions.SpiceyError as e:
            self.logger.error(f"SPICE error loading leapseconds kernel {path}: {e}")
            raise

    def _unfurnish(self, path: str):
        try:
            spiceypy.unload(path)
            self._furnished.remove(path)
        except spiceypy.utils.exceptions.SpiceyError as e:
            self.logger.error(f"SPICE error unloading leapseconds kernel {path}: {e}")
            raise

    def unload_kernel(self, kernel_path: Union[str, Path]):
        """
        Unload a specific kernel.

        Unloading a text kernel clears the pool and reloads the remaining
        text kernels in their original order.
        """
        key = str(Path(kernel_path).resolve())
        info = self._loaded_kernels.pop(key, None)
        if info is None:
            self.logger.warning(f"Attempted to unload kernel not in loaded set: {kernel_path}")
            return

        if info.handle:
            self.spk_reader.unload(info.handle)
        else:
            if key in self._furnished:
                self._unfurnish(key)
            self.pool.clear()
            for remaining in self.loaded_kernels():
                if not remaining.handle:
                    self.pool.load_text_kernel(remaining.file)
        self.logger.info(f"Unloaded kernel: {kernel_path}")

    def unload_all_kernels(self):
        """Clear all loaded kernels."""
        self.spk_reader.unload_all()
        self.pool.clear()
        for path in list(self._furnished):
            self._unfurnish(path)
        self._loaded_kernels.clear()
        self.logger.info("All kernels unloaded and pool cleared.")

    def loaded_kernels(self) -> List[SpiceKernelInfo]:
        return sorted(self._loaded_kernels.values(), key=lambda k: k.sequence)

    def utc_to_et(self, utc_time_str: str) -> float:
        """Convert UTC time string to ephemeris time. Needs a loaded leapseconds kernel."""
        try:
            et = spiceypy.utc2et(utc_time_str)
            self.logger.debug(f"Converted UTC '{utc_time_str}' to ET {et}.")
            return et
        except spiceypy.utils.exceptions.SpiceyError as e:
            self.logger.error(f"SPICE error converting UTC '{utc_time_str}' to ET: {e}")
            raise

    def et_to_utc(self, et: float, time_format: str = "ISOC", precision: int = 3) -> str:
        """Convert ephemeris time to UTC string."""
        try:
            utc_str = spiceypy.et2utc(et, time_format, precision)
            self.logger.debug(f"Converted ET {et} to UTC '{utc_str}'.")
            return utc_str
        except spiceypy.utils.exceptions.SpiceyError as e:
            self.logger.error(f"SPICE error converting ET {et} to UTC: {e}")
            raise

    def to_et(self, epoch: Epoch) -> float:
        """Ephemeris time of ``epoch``: numbers pass through, strings and datetimes are UTC."""
        if isinstance(epoch, datetime):
            return self.utc_to_et(epoch.strftime("%Y-%m-%dT%H:%M:%S.%f"))
        if isinstance(epoch, str):
            return self.utc_to_et(epoch)
        return float(epoch)

    def get_segments(self, body_id: int) -> Optional[List[SpkSegment]]:
        return self.registry.segments_for(body_id)

    def get_coefficients(self, body_id: int, epoch: Epoch) -> Optional[ChebyshevRecord]:
        """Chebyshev record covering ``epoch`` for ``body_id``, or None if no loaded kernel covers it."""
        return self.spk_reader.coefficients_at(body_id, self.to_et(epoch))

    def _link_state(self, record: ChebyshevRecord, et: float, evaluator: StateEvaluator,
                    target_frame: int) -> np.ndarray:
        """State of a segment's body relative to its center, rotated into ``target_frame``."""
        state = np.asarray(evaluator(record, et), dtype=float)
        if state.shape not in ((3,), (6,)):
            raise InvalidArgumentError(f"Evaluator returned shape {state.shape}, expected (3,) or (6,)")

        segment_frame = self.frames.frame_number_for_code(record.segment.frame)
        if segment_frame == UNKNOWN_FRAME_NUMBER:
            raise UnknownFrameError(f"Segment '{record.segment.source_id}' uses unknown frame {record.segment.frame}")
        rotation = self.frames.rotation_between(segment_frame, target_frame)
        return np.concatenate([rotation @ part for part in np.split(state, len(state) // 3)])

    def _center_chain(self, body_id: int, et: float, evaluator: StateEvaluator,
                      target_frame: int) -> Dict[int, np.ndarray]:
        """
        State of ``body_id`` relative to each center along its chain of segments.

        The chain stops at the solar system barycenter, at a body no loaded
        segment covers, or when a center repeats.
        """
        chain = {body_id: np.zeros(6)}
        body = body_id
        while body != SOLAR_SYSTEM_BARYCENTER and len(chain) < MAX_CHAIN_LENGTH:
            record = self.spk_reader.coefficients_at(body, et)
            if record is None:
                break
            state = _add_states(chain[body], self._link_state(record, et, evaluator, target_frame))
            body = record.segment.center
            if body in chain:
                self.logger.warning(f"Center chain of body {body_id} loops back to {body} at ET {et}")
                break
            chain[body] = state
        return chain

    def get_state(self, target: int, epoch: Epoch, evaluator: StateEvaluator,
                  frame: str = "J2000", observer: Optional[int] = None) -> Optional[np.ndarray]:
        """
        State of ``target`` relative to ``observer``, expressed in ``frame``.

        Segments are chained from each body through its centers of motion
        until the two chains meet; the observer's state relative to that
        common center is subtracted from the target's. Without an observer,
        the state is relative to the center of the segment covering the
        target.

        Args:
            target: NAIF id of the target body.
            epoch: ET seconds, or a UTC string/datetime.
            evaluator: Callable turning (record, et) into a 3- or 6-vector in the segment frame.
            frame: Name of the output frame.
            observer: NAIF id of the observing body.

        Returns:
            Position (and velocity) vector, or None if the loaded segments do
            not connect target and observer at the epoch. A chain through
            position-only segments gives a position-only result.
        """
        et = self.to_et(epoch)
        target_frame = self.frames.frame_number_of(frame)
        if target_frame == UNKNOWN_FRAME_NUMBER:
            raise UnknownFrameError(f"Frame '{frame}' is not known")

        if observer is None:
            record = self.spk_reader.coefficients_at(target, et)
            if record is None:
                return None
            return self._link_state(record, et, evaluator, target_frame)
        if target == observer:
            return np.zeros(6)

        target_chain = self._center_chain(target, et, evaluator, target_frame)
        observer_chain = self._center_chain(observer, et, evaluator, target_frame)
        for center, observer_state in observer_chain.items():
            if center in target_chain:
                return _add_states(target_chain[center], -observer_state)

        self.logger.debug(f"No common center for target {target} and observer {observer} at ET {et}")
        return None

    def get_rotation(self, from_frame: str, to_frame: str) -> np.ndarray:
        """Rotation matrix from one frame to another."""
        return self.frames.rotation_between_names(from_frame, to_frame)

    def __enter__(self):
        self.logger.debug("KernelSession context entered.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unload_all_kernels()
        self.logger.debug("KernelSession context exited, all kernels unloaded.")
