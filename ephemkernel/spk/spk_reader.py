"""
SPK file loading and coefficient-record extraction.

Loading an SPK scans its array summaries and registers one SpkSegment per
array with the SegmentRegistry. Coefficient extraction locates the
Chebyshev record covering an epoch inside a type 2 or type 3 segment;
evaluating the polynomials is left to the caller.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

import numpy as np

from ..daf.kernel_file import DafFile, open_kernel_file
from ..exceptions import InvalidArgumentError, KernelFormatError, UnsupportedSegmentTypeError
from .segment_registry import SegmentRegistry
from .segments import SpkSegment, build_descriptor

# SPK summary format
SPK_ND = 2
SPK_NI = 6

# Segment data type -> number of interpolated components
CHEBYSHEV_COMPONENTS = {
    2: 3,  # position only
    3: 6,  # position and velocity
}

DIRECTORY_SIZE = 4


@dataclass
class ChebyshevRecord:
    """
    One Chebyshev record of a type 2/3 segment.

    ``coefficients`` has one row per component (x, y, z[, vx, vy, vz]),
    lowest degree first. The polynomials are in the normalized time
    ``(et - mid) / radius``.
    """
    segment: SpkSegment
    mid: float
    radius: float
    coefficients: np.ndarray

    @property
    def degree(self) -> int:
        return self.coefficients.shape[1] - 1

    @property
    def component_count(self) -> int:
        return self.coefficients.shape[0]

    def normalized_time(self, et: float) -> float:
        return (et - self.mid) / self.radius


class SpkReader:
    """
    Keeps SPK files open and their segments registered.

    Reloading a path replaces its previous load. Files stay open until
    unloaded so coefficient records can be read on demand.
    """

    def __init__(self, registry: Optional[SegmentRegistry] = None):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.registry = registry if registry is not None else SegmentRegistry()
        self._files: Dict[int, DafFile] = {}
        self._handles_by_path: Dict[str, int] = {}

    @staticmethod
    def _check_format(daf: DafFile):
        if (daf.file_record.nd, daf.file_record.ni) != (SPK_ND, SPK_NI):
            raise KernelFormatError(
                f"{daf.path} has summary format ND={daf.file_record.nd} NI={daf.file_record.ni}, "
                f"expected ND={SPK_ND} NI={SPK_NI}"
            )

    def load(self, path: Union[str, Path]) -> int:
        """
        Open an SPK file and register its segments.

        Returns:
            The handle identifying the loaded file.
        """
        key = str(Path(path).resolve())
        if key in self._handles_by_path:
            self.logger.info(f"Reloading SPK {path}")
            self.unload(self._handles_by_path[key])

        daf = open_kernel_file(path, "SPK")
        try:
            self._check_format(daf)
            count = 0
            for summary, name in daf.iter_arrays():
                doubles, integers = daf.unpack_summary(summary)
                if doubles[0] > doubles[1]:
                    self.logger.warning(f"Skipping segment '{name}' of {path}: start after end")
                    continue
                segment = SpkSegment(daf.handle, build_descriptor(*doubles, *integers), name)
                self.registry.register_segment(segment.body, segment)
                count += 1
        except Exception:
            self.registry.remove_handle(daf.handle)
            daf.close()
            raise

        self._files[daf.handle] = daf
        self._handles_by_path[key] = daf.handle
        self.logger.info(f"Loaded SPK {path}: {count} segment(s), handle {daf.handle}")
        return daf.handle

    def unload(self, handle: int):
        """Close the file behind ``handle`` and forget its segments."""
        daf = self._files.pop(handle, None)
        if daf is None:
            self.logger.warning(f"Attempted to unload SPK handle that is not loaded: {handle}")
            return
        self._handles_by_path = {k: h for k, h in self._handles_by_path.items() if h != handle}
        self.registry.remove_handle(handle)
        daf.close()
        self.logger.info(f"Unloaded SPK {daf.path} (handle {handle})")

    def unload_all(self):
        for handle in list(self._files):
            self.unload(handle)

    @property
    def handles(self) -> List[int]:
        return list(self._files)

    def file_for(self, handle: int) -> Optional[DafFile]:
        return self._files.get(handle)

    @staticmethod
    def spk_objects(path: Union[str, Path]) -> Set[int]:
        """Ids of all bodies with at least one segment in the SPK at ``path``."""
        ids: Set[int] = set()
        with open_kernel_file(path, "SPK") as daf:
            SpkReader._check_format(daf)
            for summary, _ in daf.iter_arrays():
                _, integers = daf.unpack_summary(summary)
                ids.add(integers[0])
        return ids

    def read_record(self, segment: SpkSegment, et: float) -> ChebyshevRecord:
        """
        Chebyshev record of ``segment`` covering ``et``.

        Raises:
            InvalidArgumentError: If ``et`` is outside the segment or its file is not loaded.
            UnsupportedSegmentTypeError: For segment types other than 2 and 3.
            KernelFormatError: If the segment directory is inconsistent.
        """
        components = CHEBYSHEV_COMPONENTS.get(segment.data_type)
        if components is None:
            raise UnsupportedSegmentTypeError(
                f"SPK type {segment.data_type} of segment '{segment.source_id}' is not supported"
            )
        if not segment.covers(et):
            raise InvalidArgumentError(
                f"Epoch {et} is outside segment '{segment.source_id}' "
                f"[{segment.start_et}, {segment.end_et}]"
            )
        daf = self._files.get(segment.handle)
        if daf is None:
            raise InvalidArgumentError(f"Segment '{segment.source_id}' belongs to unloaded handle {segment.handle}")

        init, interval, record_size, record_count = daf.read_words(
            segment.end_address - DIRECTORY_SIZE + 1, segment.end_address
        )
        record_size, record_count = int(record_size), int(record_count)
        if record_count <= 0 or interval <= 0 or (record_size - 2) % components != 0 or record_size <= 2:
            raise KernelFormatError(
                f"Bad directory in segment '{segment.source_id}': "
                f"INIT={init} INTLEN={interval} RSIZE={record_size} N={record_count}"
            )

        index = min(max(int((et - init) // interval), 0), record_count - 1)
        first = segment.begin_address + index * record_size
        words = daf.read_words(first, first + record_size - 1)

        record = ChebyshevRecord(
            segment=segment,
            mid=float(words[0]),
            radius=float(words[1]),
            coefficients=words[2:].reshape(components, -1),
        )
        self.logger.debug(
            f"Segment '{segment.source_id}': record {index + 1}/{record_count} "
            f"(degree {record.degree}) for ET {et}"
        )
        return record

    def coefficients_at(self, body_id: int, et: float) -> Optional[ChebyshevRecord]:
        """Coefficient record of the newest segment of ``body_id`` covering ``et``, or None."""
        segment = self.registry.find_covering_segment(body_id, et)
        if segment is None:
            return None
        return self.read_record(segment, et)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unload_all()
