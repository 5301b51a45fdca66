"""
Minimal DAF writer for building fixture kernels in tests.

Layout: file record, then one summary record and one name record per
chunk of arrays, then the array data starting on a record boundary.
"""

import struct
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

RECORD = 1024
WORDS = 128
FORMAT_TAGS = {"<": "LTL-IEEE", ">": "BIG-IEEE"}


def _pad(data: bytes, fill: bytes = b"\x00") -> bytes:
    assert len(data) <= RECORD
    return data + fill * (RECORD - len(data))


def spk_array(body: int, center: int, frame: int, data_type: int, start: float, end: float,
              data: Sequence[float], name: str) -> Dict:
    return {
        "doubles": [start, end],
        "ints": [body, center, frame, data_type],
        "data": list(data),
        "name": name,
    }


def chebyshev_data(init: float, interval: float, records: List[Sequence[float]]) -> List[float]:
    """Type 2/3 segment data: the records followed by INIT, INTLEN, RSIZE, N."""
    record_size = len(records[0])
    data: List[float] = []
    for record in records:
        assert len(record) == record_size
        data.extend(record)
    return data + [init, interval, float(record_size), float(len(records))]


def chebyshev_record(mid: float, radius: float, coefficients) -> List[float]:
    return [mid, radius] + list(np.asarray(coefficients, dtype=float).ravel())


def write_daf(path: Path, arrays: List[Dict], nd: int = 2, ni: int = 6, id_word: str = "DAF/SPK",
              byte_order: str = "<", per_record: Optional[int] = None,
              format_tag: Optional[str] = None) -> Path:
    summary_words = nd + (ni + 1) // 2
    if per_record is None:
        per_record = (WORDS - 3) // summary_words
    chunks = [arrays[i:i + per_record] for i in range(0, len(arrays), per_record)] or [[]]

    address = (1 + 2 * len(chunks)) * WORDS + 1
    data = b""
    addressed = []
    for array in arrays:
        values = array["data"]
        begin, end = address, address + len(values) - 1
        data += struct.pack(f"{byte_order}{len(values)}d", *values)
        address = end + 1
        addressed.append((array, begin, end))
    free = address

    records = []
    position = 0
    for k, chunk in enumerate(chunks):
        next_record = 2 + 2 * (k + 1) if k + 1 < len(chunks) else 0
        previous_record = 2 + 2 * (k - 1) if k > 0 else 0
        summaries = struct.pack(f"{byte_order}3d", next_record, previous_record, len(chunk))
        names = b""
        for array, begin, end in addressed[position:position + len(chunk)]:
            ints = list(array["ints"]) + [begin, end]
            packed = struct.pack(f"{byte_order}{nd}d{ni}i", *array["doubles"], *ints)
            packed += b"\x00" * (8 * summary_words - len(packed))
            summaries += packed
            names += array["name"].ljust(8 * summary_words)[:8 * summary_words].encode("ascii")
        position += len(chunk)
        records.append(_pad(summaries))
        records.append(_pad(names, b" "))

    tag = FORMAT_TAGS[byte_order] if format_tag is None else format_tag
    header = (
        id_word.ljust(8).encode("ascii")
        + struct.pack(f"{byte_order}2i", nd, ni)
        + "FIXTURE".ljust(60).encode("ascii")
        + struct.pack(f"{byte_order}3i", 2, 2 + 2 * (len(chunks) - 1), free)
        + tag.ljust(8).encode("ascii")
    )

    if len(data) % RECORD:
        data += b"\x00" * (RECORD - len(data) % RECORD)

    path = Path(path)
    path.write_bytes(_pad(header) + b"".join(records) + data)
    return path
