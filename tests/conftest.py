import numpy as np
import pytest

from daf_writer import chebyshev_data, chebyshev_record, spk_array, write_daf

# Earth-Moon barycenter style fixture: 4 records of 100 s, degree 2, starting at ET 0
EMB_INIT = 0.0
EMB_INTERVAL = 100.0


def emb_coefficients(index):
    """Distinct 3x3 coefficient block per record index."""
    return np.arange(9, dtype=float).reshape(3, 3) + 100.0 * index


@pytest.fixture
def spk_path(tmp_path):
    emb_records = [
        chebyshev_record(EMB_INIT + EMB_INTERVAL * (i + 0.5), EMB_INTERVAL / 2, emb_coefficients(i))
        for i in range(4)
    ]
    moon_records = [chebyshev_record(50.0, 50.0, np.ones((6, 2)))]
    arrays = [
        spk_array(3, 0, 1, 2, 0.0, 400.0, chebyshev_data(EMB_INIT, EMB_INTERVAL, emb_records), "EMB DE-TEST"),
        spk_array(301, 3, 17, 3, 0.0, 100.0, chebyshev_data(0.0, 100.0, moon_records), "MOON DE-TEST"),
        spk_array(399, 3, 1, 13, 0.0, 100.0, [0.0] * 10, "EARTH HERMITE"),
    ]
    return write_daf(tmp_path / "fixture.bsp", arrays)


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("These are not the kernels you are looking for.\n" * 40)
    return path


FRAME_KERNEL = """KPL/FK

Test frame kernel. Everything outside data blocks is commentary,
including this line: FRAME_IGNORED = 1

\\begindata

   FRAME_TEST_TK               = 1400001
   FRAME_1400001_NAME          = 'TEST_TK'
   FRAME_1400001_CLASS         = 4
   FRAME_1400001_CLASS_ID      = 1400001
   FRAME_1400001_CENTER        = 399
   TKFRAME_1400001_RELATIVE    = 'ECLIPJ2000'
   TKFRAME_1400001_SPEC        = 'ANGLES'
   TKFRAME_1400001_UNITS       = 'DEGREES'
   TKFRAME_1400001_AXES        = ( 3, 1, 3 )
   TKFRAME_1400001_ANGLES      = ( 90.0, 0.0, 0.0 )

\\begintext
"""


@pytest.fixture
def frame_kernel_path(tmp_path):
    path = tmp_path / "test_frames.tf"
    path.write_text(FRAME_KERNEL)
    return path
