import numpy as np
import pytest

from tablemorph.dsp import (
    finish_frame,
    normalize,
    quantize,
    reflect_fold,
    resample,
    sample_and_hold,
    smooth,
    smooth_loop_points,
)


def test_resample_same_length_is_identity() -> None:
    rng = np.random.default_rng(1)
    data = rng.uniform(-1.0, 1.0, 512).astype(np.float32)

    out = resample(data, 512, rng)

    assert np.array_equal(out, data)
    assert out is not data


@pytest.mark.parametrize("target", [2, 100, 256, 4096])
def test_resample_hits_target_length(target: int) -> None:
    data = np.sin(np.linspace(0.0, 2.0 * np.pi, 777, endpoint=False)).astype(np.float32)
    out = resample(data, target, np.random.default_rng(target))

    assert out.shape == (target,)
    assert out.dtype == np.float32
    assert np.all(np.isfinite(out))


def test_resample_is_deterministic_per_generator_state() -> None:
    data = np.random.default_rng(3).uniform(-1.0, 1.0, 300)
    a = resample(data, 1024, np.random.default_rng(9))
    b = resample(data, 1024, np.random.default_rng(9))
    assert np.array_equal(a, b)


def test_resample_constant_signal_stays_constant() -> None:
    data = np.full(64, 0.25, dtype=np.float32)
    for seed in range(5):
        assert np.allclose(resample(data, 200, np.random.default_rng(seed)), 0.25)


def test_resample_empty_input_raises() -> None:
    with pytest.raises(ValueError):
        resample(np.array([], dtype=np.float32), 16, np.random.default_rng(0))


def test_normalize_scales_to_unit_peak() -> None:
    out = normalize(np.array([0.1, -0.4, 0.2]))
    assert np.isclose(np.abs(out).max(), 1.0)
    assert np.allclose(out, [0.25, -1.0, 0.5])


def test_normalize_leaves_silence_and_unit_peak_alone() -> None:
    silence = np.zeros(8, dtype=np.float32)
    assert np.array_equal(normalize(silence), silence)
    tiny = np.full(8, 1e-6, dtype=np.float32)
    assert np.array_equal(normalize(tiny), tiny)
    unit = np.array([1.0, -0.5], dtype=np.float32)
    assert np.array_equal(normalize(unit), unit)


def test_smooth_preserves_constant_and_mean() -> None:
    data = np.random.default_rng(4).uniform(-1.0, 1.0, 256).astype(np.float32)
    out = smooth(data, 3)

    assert np.allclose(smooth(np.full(16, 0.5), 2), 0.5)
    # Circular weighting keeps the sum
    assert np.isclose(out.sum(), data.sum(), atol=1e-3)
    assert np.abs(np.diff(out)).mean() < np.abs(np.diff(data)).mean()


def test_smooth_loop_points_closes_the_loop() -> None:
    ramp = np.linspace(-1.0, 1.0, 2048, dtype=np.float32)
    out = smooth_loop_points(ramp)

    assert abs(float(out[-1]) - float(out[0])) < 1e-6
    # The middle of the frame is untouched
    assert np.array_equal(out[500:1500], ramp[500:1500])


def test_finish_frame_is_continuous_and_normalized() -> None:
    rng = np.random.default_rng(12)
    frame = rng.uniform(-3.0, 3.0, 1024)
    out = finish_frame(frame)

    assert abs(float(out[-1]) - float(out[0])) < 1e-5
    assert np.isclose(np.abs(out).max(), 1.0, atol=1e-5)


def test_short_frames_are_returned_unchanged() -> None:
    assert np.array_equal(smooth_loop_points(np.array([0.3, -0.2])), np.array([0.3, -0.2], dtype=np.float32))


def test_reflect_fold_stays_inside_threshold() -> None:
    x = np.linspace(-10.0, 10.0, 1001)
    folded = reflect_fold(x, 0.5)
    assert np.all(np.abs(folded) <= 0.5 + 1e-12)
    inside = np.abs(x) <= 0.5
    assert np.allclose(folded[inside], x[inside])


def test_quantize_and_sample_and_hold() -> None:
    x = np.linspace(-1.0, 1.0, 64)
    assert len(np.unique(quantize(x, 3))) <= 9

    held = sample_and_hold(np.arange(10.0), 4)
    assert np.array_equal(held, [0, 0, 0, 0, 4, 4, 4, 4, 8, 8])
