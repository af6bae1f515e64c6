"""
Unit tests for observed color collection.

Covers key quantization and packing, decoding back to RGB, and the
growth rules of the observed color set.
"""
import numpy as np
import pytest

from fakes import solid_frame, split_frame
from palettecam.services.colors.collector import (
    ColorSetCollector,
    ObservedColorSet,
    decode_keys,
    quantize_key,
    quantize_pixels,
)
from palettecam.utils.metrics import get_metrics


class TestQuantization:
    """Test quantized color keys"""

    def test_quantize_key_packs_channels(self):
        """Channels are divided, truncated and shifted into one integer"""
        assert quantize_key(255, 0, 0, divisor=3) == 85 << 16
        assert quantize_key(0, 255, 0, divisor=3) == 85 << 8
        assert quantize_key(0, 0, 255, divisor=3) == 85
        assert quantize_key(5, 4, 3, divisor=3) == (1 << 16) | (1 << 8) | 1

    def test_quantize_key_is_deterministic(self):
        """Same input always maps to the same key"""
        rng = np.random.default_rng(7)
        for r, g, b in rng.integers(0, 256, size=(50, 3)):
            assert quantize_key(int(r), int(g), int(b)) == quantize_key(int(r), int(g), int(b))

    def test_quantization_is_many_to_one(self):
        """Neighboring values inside one bucket collapse to one key"""
        assert quantize_key(9, 10, 11) == quantize_key(10, 11, 9)

    def test_quantize_pixels_matches_scalar_key(self):
        """Vectorized quantization agrees with the scalar helper"""
        frame = split_frame((200, 100, 50), (13, 27, 250))
        keys = quantize_pixels(frame, divisor=3)

        expected = sorted({quantize_key(200, 100, 50), quantize_key(13, 27, 250)})
        assert keys.tolist() == expected

    def test_quantize_pixels_ignores_alpha(self):
        """Alpha channel does not take part in the key"""
        opaque = quantize_pixels(solid_frame((10, 20, 30), alpha=255))
        clear = quantize_pixels(solid_frame((10, 20, 30), alpha=0))
        assert opaque.tolist() == clear.tolist()

    def test_key_space_size(self):
        """Every 8-bit color maps into ceil(256/d)^3 keys"""
        values = np.arange(256)
        per_channel = np.unique(values // 3).size
        assert per_channel == 86
        assert per_channel ** 3 == 636056

    def test_decode_keys_round_trips_bucket_origin(self):
        """Decoding multiplies each field back by the divisor"""
        keys = [quantize_key(255, 0, 0), quantize_key(0, 0, 255), quantize_key(100, 50, 7)]
        decoded = decode_keys(keys, divisor=3)

        np.testing.assert_array_equal(decoded[0], [255, 0, 0])
        np.testing.assert_array_equal(decoded[1], [0, 0, 255])
        np.testing.assert_array_equal(decoded[2], [99, 48, 6])

    def test_quantize_pixels_rejects_partial_pixels(self):
        """Buffers must hold whole RGBA pixels"""
        with pytest.raises(ValueError):
            quantize_pixels(b"\x00\x01\x02")


class TestObservedColorSet:
    """Test the observed color set container"""

    def test_snapshot_is_independent_copy(self):
        """Mutating the set after a snapshot does not change the snapshot"""
        color_set = ObservedColorSet([3, 1, 2])
        snapshot = color_set.snapshot()
        color_set.add([99])

        assert snapshot.tolist() == [1, 2, 3]
        assert len(color_set) == 4

    def test_add_returns_size(self):
        color_set = ObservedColorSet()
        assert color_set.add(np.array([5, 5, 6], dtype=np.uint32)) == 2
        assert 5 in color_set


class TestColorSetCollector:
    """Test frame scanning into the observed set"""

    def test_solid_frame_collects_one_color(self):
        """Repeated solid red frames stabilize at one color"""
        collector = ColorSetCollector(ObservedColorSet(), divisor=3)
        frame = solid_frame((255, 0, 0))

        sizes = [collector.collect(frame) for _ in range(5)]

        assert sizes == [1, 1, 1, 1, 1]

    def test_size_is_monotonic(self):
        """Set size never decreases across frames"""
        collector = ColorSetCollector(ObservedColorSet(), divisor=3)
        rng = np.random.default_rng(0)

        sizes = []
        for _ in range(10):
            frame = rng.integers(0, 256, size=(6, 8, 4), dtype=np.uint8)
            sizes.append(collector.collect(frame))

        assert sizes == sorted(sizes)

    def test_identical_frame_does_not_grow(self):
        """Re-feeding an identical frame is absorbed by the set"""
        collector = ColorSetCollector(ObservedColorSet(), divisor=3)
        frame = np.random.default_rng(1).integers(0, 256, size=(6, 8, 4), dtype=np.uint8)

        first = collector.collect(frame)
        second = collector.collect(frame.copy())

        assert first == second

    def test_accepts_raw_bytes(self):
        """Interleaved byte buffers are scanned the same as arrays"""
        collector = ColorSetCollector(ObservedColorSet(), divisor=3)
        frame = split_frame((255, 0, 0), (0, 0, 255))

        assert collector.collect(frame.tobytes()) == 2

    def test_empty_buffer_is_noop(self):
        """Zero-length buffer leaves the set untouched"""
        color_set = ObservedColorSet([1])
        collector = ColorSetCollector(color_set, divisor=3)

        assert collector.collect(b"") == 1
        assert collector.collect(np.zeros((0, 0, 4), dtype=np.uint8)) == 1

    def test_records_unique_color_gauge(self):
        collector = ColorSetCollector(ObservedColorSet(), divisor=3)
        collector.collect(split_frame((255, 0, 0), (0, 255, 0)))

        assert get_metrics().get_gauges()["unique_colors"] == 2

    def test_invalid_divisor_rejected(self):
        with pytest.raises(ValueError):
            ColorSetCollector(ObservedColorSet(), divisor=300)
