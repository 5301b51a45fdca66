import numpy as np
import pytest

from conftest import emb_coefficients
from daf_writer import chebyshev_data, chebyshev_record, spk_array, write_daf
from ephemkernel.exceptions import InvalidArgumentError, KernelFormatError, UnsupportedSegmentTypeError
from ephemkernel.spk import SegmentRegistry, SpkReader


@pytest.fixture
def reader():
    with SpkReader() as reader:
        yield reader


def test_load_registers_segments(reader, spk_path):
    handle = reader.load(spk_path)
    registry = reader.registry
    assert reader.handles == [handle]
    assert registry.bodies() == [3, 301, 399]

    emb = registry.segments_for(3)[0]
    assert emb.handle == handle
    assert emb.source_id == "EMB DE-TEST"
    assert (emb.start_et, emb.end_et) == (0.0, 400.0)
    assert (emb.center, emb.frame, emb.data_type) == (0, 1, 2)
    assert emb.begin_address == 3 * 128 + 1


@pytest.mark.parametrize("et, index", [(0.0, 0), (50.0, 0), (100.0, 1), (250.0, 2), (399.9, 3), (400.0, 3)])
def test_read_record_selects_covering_record(reader, spk_path, et, index):
    reader.load(spk_path)
    record = reader.coefficients_at(3, et)
    assert record.mid == pytest.approx(100.0 * (index + 0.5))
    assert record.radius == 50.0
    assert record.component_count == 3
    assert record.degree == 2
    np.testing.assert_array_equal(record.coefficients, emb_coefficients(index))
    assert -1.0 <= record.normalized_time(et) <= 1.0


def test_read_type3_record(reader, spk_path):
    reader.load(spk_path)
    record = reader.coefficients_at(301, 25.0)
    assert record.segment.data_type == 3
    assert record.coefficients.shape == (6, 2)
    assert record.normalized_time(25.0) == pytest.approx(-0.5)


def test_unsupported_segment_type(reader, spk_path):
    reader.load(spk_path)
    with pytest.raises(UnsupportedSegmentTypeError):
        reader.coefficients_at(399, 10.0)


def test_epoch_outside_coverage(reader, spk_path):
    reader.load(spk_path)
    assert reader.coefficients_at(3, 1000.0) is None
    assert reader.coefficients_at(42, 10.0) is None
    segment = reader.registry.segments_for(3)[0]
    with pytest.raises(InvalidArgumentError):
        reader.read_record(segment, -5.0)


def test_spk_objects(spk_path):
    assert SpkReader.spk_objects(spk_path) == {3, 301, 399}


def test_reload_replaces_previous_load(reader, spk_path):
    first = reader.load(spk_path)
    second = reader.load(spk_path)
    assert first != second
    assert reader.handles == [second]
    assert len(reader.registry.segments_for(3)) == 1
    assert reader.file_for(first) is None


def test_later_file_overrides_earlier(reader, spk_path, tmp_path):
    override = [chebyshev_record(200.0, 200.0, np.full((3, 3), -1.0))]
    path = write_daf(tmp_path / "override.bsp", [
        spk_array(3, 0, 1, 2, 0.0, 400.0, chebyshev_data(0.0, 400.0, override), "EMB OVERRIDE"),
    ])
    reader.load(spk_path)
    handle = reader.load(path)
    record = reader.coefficients_at(3, 150.0)
    assert record.segment.source_id == "EMB OVERRIDE"
    np.testing.assert_array_equal(record.coefficients, np.full((3, 3), -1.0))

    reader.unload(handle)
    assert reader.coefficients_at(3, 150.0).segment.source_id == "EMB DE-TEST"


def test_unload_closes_file(reader, spk_path):
    handle = reader.load(spk_path)
    daf = reader.file_for(handle)
    segment = reader.registry.segments_for(3)[0]
    reader.unload(handle)
    assert daf.closed
    assert reader.registry.bodies() == []
    with pytest.raises(InvalidArgumentError):
        reader.read_record(segment, 10.0)
    reader.unload(handle)


def test_shared_registry(spk_path):
    registry = SegmentRegistry()
    with SpkReader(registry) as reader:
        reader.load(spk_path)
        assert registry.find_covering_segment(301, 10.0).source_id == "MOON DE-TEST"
    assert len(registry) == 0


def test_text_file_is_not_an_spk(reader, text_file):
    with pytest.raises(KernelFormatError):
        reader.load(text_file)
    assert reader.handles == []


def test_non_spk_daf_rejected(reader, tmp_path):
    path = write_daf(tmp_path / "pointing.bc", [], id_word="DAF/CK")
    with pytest.raises(KernelFormatError):
        reader.load(path)


def test_bad_directory_raises(reader, tmp_path):
    path = write_daf(tmp_path / "bad.bsp", [
        spk_array(5, 0, 1, 2, 0.0, 10.0, [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 7.0, 0.0], "BROKEN"),
    ])
    reader.load(path)
    with pytest.raises(KernelFormatError):
        reader.coefficients_at(5, 5.0)
