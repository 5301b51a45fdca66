#!/usr/bin/env python3
"""
ephemkernel Example 1: Inspect an SPK Kernel
=============================================

Identifies a kernel file, lists the bodies and segments it holds, and
evaluates one state with a numpy Chebyshev evaluator.

Run from project root:
    python examples/01_inspect_spk_kernel.py path/to/de440.bsp [body_id] [et]
"""

import logging
import sys
from pathlib import Path

# =============================================================================
# SETUP PROJECT ROOT
# =============================================================================
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
from numpy.polynomial import chebyshev

from ephemkernel import KernelSession, read_file_info


def chebyshev_position(record, et):
    """Position from a type 2/3 record; velocity rows are ignored."""
    t = record.normalized_time(et)
    return np.array([chebyshev.chebval(t, row) for row in record.coefficients[:3]])


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    kernel_path = Path(sys.argv[1])
    body_id = int(sys.argv[2]) if len(sys.argv) > 2 else 399
    et = float(sys.argv[3]) if len(sys.argv) > 3 else 0.0

    print("=" * 60)
    print("ephemkernel Example 1: Inspect an SPK Kernel")
    print("=" * 60)

    info = read_file_info(kernel_path)
    print(f"\n  File: {info.path}")
    print(f"  Architecture/type: {info.architecture}/{info.kernel_type}")
    print(f"  Records: {info.record_count:,}  Summary words: {info.summary_word_count}")

    with KernelSession() as session:
        session.load_kernel(kernel_path)

        print(f"\n  Bodies: {session.registry.bodies()}")
        for segment in session.get_segments(body_id) or []:
            print(f"    {segment.source_id:<40} center={segment.center:<5} type={segment.data_type} "
                  f"[{segment.start_et:.1f}, {segment.end_et:.1f}]")

        position = session.get_state(body_id, et, chebyshev_position, frame="ECLIPJ2000")
        if position is None:
            print(f"\n  No segment covers body {body_id} at ET {et}")
        else:
            print(f"\n  Body {body_id} at ET {et} (ECLIPJ2000): {position} km")

        from_ssb = session.get_state(body_id, et, chebyshev_position, frame="ECLIPJ2000", observer=0)
        if from_ssb is not None:
            print(f"  Body {body_id} relative to the solar system barycenter: {from_ssb} km")

    return 0


if __name__ == '__main__':
    sys.exit(main())
