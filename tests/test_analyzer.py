# tests/test_analyzer.py

import cv2
import numpy as np
import pytest

from core.analyzer import AnalysisCache, MediaAnalyzer
from core.exceptions import DecodeError
from core.models import Category, ClassificationResult, MediaKind, PixelBuffer, QualityScore
from core.perceptual_hash import compute_dhash
from core.pixel_source import OpenCVPixelSource, PillowPixelSource, PixelSource
from conftest import encode_png, make_record, scene_pixels


class Int32PixelSource(PixelSource):
    """Returns RGBA pixels with the wrong integer width"""

    def decode(self, data, target_width=None):
        return PixelBuffer(np.zeros((240, 320, 4), dtype=np.int32), 4000, 3000)


class CountingPixelSource(PixelSource):
    """Wraps Pillow decoding and counts calls"""

    def __init__(self):
        self.inner = PillowPixelSource()
        self.calls = 0

    def decode(self, data, target_width=None):
        self.calls += 1
        return self.inner.decode(data, target_width)


@pytest.fixture
def analyzer():
    return MediaAnalyzer()


@pytest.fixture
def burst_pngs():
    return {
        'original': encode_png(scene_pixels(seed=1)),
        'brighter': encode_png(scene_pixels(seed=1, offset=10)),
        'mirrored': encode_png(scene_pixels(seed=1, mirror=True)),
    }


# --- Pixel sources ---

@pytest.mark.parametrize("source", [PillowPixelSource(), OpenCVPixelSource()])
def test_decoders_downsample_to_analysis_width(source, noise_png):
    buffer = source.decode(noise_png, target_width=320)

    assert (buffer.width, buffer.height) == (320, 240)
    assert (buffer.source_width, buffer.source_height) == (640, 480)
    assert buffer.pixels.dtype == np.uint8
    assert buffer.pixels.shape[2] == 4


def test_pillow_decode_without_target_keeps_size(noise_png):
    buffer = PillowPixelSource().decode(noise_png)
    assert (buffer.width, buffer.height) == (640, 480)


def test_opencv_decodes_jpeg():
    img = np.full((100, 200, 3), 120, dtype=np.uint8)
    ok, encoded = cv2.imencode('.jpg', img)
    assert ok

    buffer = OpenCVPixelSource().decode(encoded.tobytes(), target_width=50)
    assert (buffer.width, buffer.height) == (50, 25)


@pytest.mark.parametrize("source", [PillowPixelSource(), OpenCVPixelSource()])
@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_decoders_raise_decode_error(source, data):
    with pytest.raises(DecodeError):
        source.decode(data, target_width=320)


def test_truncated_png_raises_decode_error(noise_png):
    with pytest.raises(DecodeError):
        PillowPixelSource().decode(noise_png[:len(noise_png) // 2], target_width=320)


def test_malformed_buffer_is_a_decode_error():
    with pytest.raises(DecodeError):
        PixelBuffer(np.zeros((10, 10, 3), dtype=np.uint8), 10, 10)
    with pytest.raises(DecodeError):
        PixelBuffer(np.zeros((0, 10, 4), dtype=np.uint8), 10, 10)
    with pytest.raises(DecodeError):
        PixelBuffer(np.zeros((10, 10, 4), dtype=np.float32), 10, 10)


# --- Classification ---

def test_sharp_image_is_kept(analyzer, noise_png):
    result = analyzer.classify(make_record("sharp", noise_png))

    assert result.category == Category.KEEP
    assert result.confidence == 65


def test_flat_image_is_blurry(analyzer, flat_png):
    result = analyzer.classify(make_record("flat", flat_png))

    assert result.category == Category.DISCARD
    assert result.confidence == 75


def test_panorama_is_discarded_for_aspect_ratio(analyzer):
    rng = np.random.default_rng(5)
    pano = encode_png(rng.integers(0, 256, size=(200, 1000, 3), dtype=np.uint8))

    result = analyzer.classify(make_record("pano", pano))
    assert result.reason == "Unusual aspect ratio"


def test_decode_failure_is_unsure(analyzer):
    result = analyzer.classify(make_record("corrupt", b"\x89PNG broken"))

    assert result.category == Category.UNSURE
    assert result.confidence == 0
    assert result.reason == "Analysis failed"
    assert result.tags == ("Error",)


def test_missing_file_is_unsure(analyzer, tmp_path):
    record = make_record("gone", tmp_path / "missing.png")
    assert analyzer.classify(record).category == Category.UNSURE


def test_metadata_rules_skip_decoding():
    source = CountingPixelSource()
    analyzer = MediaAnalyzer(pixel_source=source)

    analyzer.classify(make_record("shot", b"", filename="Screenshot_1.png"))
    analyzer.classify(make_record("tiny", b"", size_bytes=1_000))
    analyzer.classify(make_record("clip", b"", filename="clip.mp4", kind=MediaKind.VIDEO))

    assert source.calls == 0


def test_image_files_are_read_from_disk(analyzer, tmp_path, noise_png):
    path = tmp_path / "photo.png"
    path.write_bytes(noise_png)

    assert analyzer.classify(make_record("disk", path)).category == Category.KEEP


# --- Quality and hash ---

def test_quality_of_undecodable_image_is_zero(analyzer):
    assert analyzer.quality(make_record("corrupt", b"junk")) == QualityScore.zero()


def test_failures_are_not_cached(analyzer):
    analyzer.quality(make_record("corrupt", b"junk"))
    assert "corrupt" not in analyzer.cache


def test_one_decode_serves_quality_hash_and_classification(noise_png):
    source = CountingPixelSource()
    analyzer = MediaAnalyzer(pixel_source=source)
    record = make_record("photo", noise_png)

    analyzer.classify(record)
    quality = analyzer.quality(record)
    phash = analyzer.perceptual_hash(record)

    assert source.calls == 1
    assert 0.0 <= quality.total <= 1.0
    assert phash.hash.size == 64


def test_supplied_cache_is_used_even_when_empty(noise_png):
    cache = AnalysisCache()
    analyzer = MediaAnalyzer(cache=cache)

    analyzer.quality(make_record("photo", noise_png))

    assert analyzer.cache is cache
    assert "photo" in cache


def test_invalidate_forces_recompute(noise_png):
    source = CountingPixelSource()
    cache = AnalysisCache()
    analyzer = MediaAnalyzer(pixel_source=source, cache=cache)
    record = make_record("photo", noise_png)

    analyzer.quality(record)
    cache.invalidate("photo")
    analyzer.quality(record)

    assert source.calls == 2


def test_videos_have_no_hash(analyzer):
    video = make_record("clip", b"", filename="clip.mov", kind=MediaKind.VIDEO)
    assert analyzer.perceptual_hash(video) is None


# --- Duplicates ---

def test_find_duplicates_groups_burst(analyzer, burst_pngs):
    records = [
        make_record("original", burst_pngs['original'], timestamp=1.0),
        make_record("brighter", burst_pngs['brighter'], timestamp=2.0),
        make_record("mirrored", burst_pngs['mirrored'], timestamp=3.0),
        make_record("copy", burst_pngs['original'], timestamp=4.0),
    ]
    groups = analyzer.find_duplicates(records)

    assert len(groups) == 1
    group = groups[0]
    assert set(group.member_ids) == {"original", "brighter", "copy"}

    totals = {r.id: analyzer.quality(r).total for r in records}
    assert totals[group.best_id] == max(totals[m] for m in group.member_ids)


def test_find_duplicates_skips_videos_and_broken_files(analyzer, burst_pngs):
    records = [
        make_record("original", burst_pngs['original'], timestamp=1.0),
        make_record("broken", b"junk", timestamp=1.5),
        make_record("clip", b"", filename="clip.mov", kind=MediaKind.VIDEO, timestamp=1.7),
        make_record("copy", burst_pngs['original'], timestamp=2.0),
    ]
    groups = analyzer.find_duplicates(records)

    assert [set(g.member_ids) for g in groups] == [{"original", "copy"}]
    assert groups[0].score_gap == 0.0


def test_non_uint8_pixels_are_a_decode_failure():
    analyzer = MediaAnalyzer(pixel_source=Int32PixelSource())
    record = make_record("wide", b"data")

    assert analyzer.classify(record) == ClassificationResult.analysis_failed()
    assert analyzer.quality(record) == QualityScore.zero()
    assert analyzer.find_duplicates([record, make_record("other", b"data")]) == []


def test_hash_is_taken_from_the_analysis_buffer(burst_pngs):
    analyzer = MediaAnalyzer()
    record = make_record("original", burst_pngs['original'])

    buffer = PillowPixelSource().decode(burst_pngs['original'], target_width=320)
    assert analyzer.perceptual_hash(record) == compute_dhash(buffer)
