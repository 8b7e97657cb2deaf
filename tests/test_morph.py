import numpy as np
import pytest

from tablemorph.models import MorphType
from tablemorph.morph import (
    MORPH_ALGORITHMS,
    morph_amount,
    morph_frame,
    phase_feedback,
    post_process,
    spectral_tilt,
)
from tablemorph.synthesis import synthesize_frame


def test_every_morph_type_has_an_algorithm() -> None:
    assert set(MORPH_ALGORITHMS) == set(MorphType)


@pytest.mark.parametrize("frame_count", [4, 64, 256])
def test_morph_amount_is_bounded(frame_count: int) -> None:
    for seed in range(20):
        rng = np.random.default_rng(seed)
        for frame_index in range(frame_count):
            assert 0.05 <= morph_amount(frame_index, frame_count, rng) <= 0.95


def test_morph_amount_follows_frame_position_on_average() -> None:
    rng = np.random.default_rng(0)
    early = np.mean([morph_amount(0, 64, rng) for _ in range(500)])
    late = np.mean([morph_amount(63, 64, rng) for _ in range(500)])
    assert early < late


@pytest.mark.parametrize("morph_type", list(MorphType))
def test_morph_frame_keeps_base_length_and_peak(morph_type: MorphType) -> None:
    for seed in range(6):
        rng = np.random.default_rng(seed)
        base = synthesize_frame(seed, 8, 512, rng)
        sample = rng.uniform(-1.0, 1.0, 1500).astype(np.float32)

        out = morph_frame(morph_type, base, sample, seed, 8, rng)

        assert out.shape == base.shape
        assert out.dtype == np.float32
        assert np.all(np.isfinite(out))
        assert np.isclose(np.abs(out).max(), 1.0, atol=1e-4)


def test_morph_frame_accepts_tiny_samples() -> None:
    rng = np.random.default_rng(2)
    base = synthesize_frame(0, 4, 256, rng)
    out = morph_frame(MorphType.BLEND, base, np.array([0.5], dtype=np.float32), 0, 4, rng)
    assert out.shape == (256,)


def test_morph_frame_is_deterministic() -> None:
    base = np.sin(np.linspace(0.0, 2.0 * np.pi, 256, endpoint=False)).astype(np.float32)
    sample = np.random.default_rng(1).uniform(-1.0, 1.0, 700).astype(np.float32)

    a = morph_frame(MorphType.SPECTRAL, base, sample, 5, 16, np.random.default_rng(77))
    b = morph_frame(MorphType.SPECTRAL, base, sample, 5, 16, np.random.default_rng(77))
    assert np.array_equal(a, b)


def test_spectral_tilt_zero_is_identity() -> None:
    frame = np.random.default_rng(8).uniform(-1.0, 1.0, 256)
    assert np.allclose(spectral_tilt(frame, 0.0), frame)


def test_phase_feedback_reuses_frame_values() -> None:
    frame = np.random.default_rng(9).uniform(-1.0, 1.0, 256)
    out = phase_feedback(frame, 0.4)
    assert set(np.round(out, 12)) <= set(np.round(frame, 12))


def test_post_process_keeps_length() -> None:
    frame = np.sin(np.linspace(0.0, 2.0 * np.pi, 512, endpoint=False))
    for seed in range(10):
        assert post_process(frame, np.random.default_rng(seed)).shape == (512,)
