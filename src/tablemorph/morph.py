import logging
import math

import numpy as np
from scipy import fft

from tablemorph.dsp import normalize, phase_ramp, quantize, reflect_fold, resample, soft_clip
from tablemorph.models import MorphType

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi
MIN_MORPH_AMOUNT = 0.05
MAX_MORPH_AMOUNT = 0.95
TIME_STRETCH_PROBABILITY = 0.3
POST_EFFECT_PROBABILITY = 0.3


def morph_amount(frame_index: int, frame_count: int, rng: np.random.Generator) -> float:
    """
    Blend weight between the synthesized frame and the sample for one frame.

    The weight follows the frame position (0.1 at the first frame towards 0.9),
    gets a symmetric jitter scaled by a random variance in [0.3, 0.7], is
    inverted 10% of the time and is finally clamped to [0.05, 0.95].
    """
    position = frame_index / max(frame_count, 1)
    amount = position * 0.8 + 0.1
    variance = rng.uniform(0.3, 0.7)
    amount += rng.uniform(-1.0, 1.0) * variance * 0.4
    if rng.random() < 0.1:
        amount = 1.0 - amount
    return float(min(max(amount, MIN_MORPH_AMOUNT), MAX_MORPH_AMOUNT))


# --- algorithms --------------------------------------------------------------
# Each takes (base, sample, amount, rng) with sample already matching base in length.


def blend_morph(base: np.ndarray, sample: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    weight = amount
    if rng.random() < 0.5:
        weight = amount**2 if rng.random() < 0.5 else math.sqrt(amount)

    weights = np.full(len(base), weight)
    if rng.random() < 0.3:
        rate = int(rng.integers(1, 5))
        depth = rng.uniform(0.1, 0.3)
        weights = np.clip(weights + depth * np.sin(TWO_PI * rate * phase_ramp(len(base))), 0.0, 1.0)

    if rng.random() < 0.3:
        sample = np.roll(sample, int(rng.integers(len(sample))))

    return base * (1.0 - weights) + sample * weights


def additive_morph(base: np.ndarray, sample: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    scale = amount * rng.uniform(0.3, 0.7)
    if rng.random() < 0.4:
        # Read the sample at a multiple of the frame rate to add it an octave (or more) up
        harmonic = int(rng.integers(2, 5))
        sample = sample[(np.arange(len(sample)) * harmonic) % len(sample)]
    return base + sample * scale


def harmonic_morph(base: np.ndarray, sample: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    """
    Rebuild a harmonic series whose phase and amplitude follow the sample.

    Up to 16 partials are summed; 40% of the time their levels pass through a
    sinusoidal mask over the partial index.
    """
    num_partials = int(rng.integers(1, 17))
    harmonics = np.arange(1, num_partials + 1, dtype=np.float64)[:, None]
    t = phase_ramp(len(base))

    levels = 1.0 / harmonics
    if rng.random() < 0.4:
        mask_rate = rng.uniform(0.05, 0.5)
        levels = levels * (0.5 + 0.5 * np.sin(TWO_PI * mask_rate * harmonics + rng.uniform(0.0, TWO_PI)))

    amplitude = levels * (1.0 + 0.5 * amount * sample[None, :])
    phase = TWO_PI * (harmonics * t[None, :] + 0.2 * amount * sample[None, :])
    series = (amplitude * np.sin(phase)).sum(axis=0)

    peak = np.abs(series).max()
    if peak > 0.0:
        series = series / peak
    return base * (1.0 - amount) + series * amount


def fold_morph(base: np.ndarray, sample: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    intensity = 1.0 + amount * rng.uniform(1.0, 3.0)
    threshold = 0.3 + amount * 0.4
    driven = sample * intensity

    mode = int(rng.integers(3))
    if mode == 0:
        folded = reflect_fold(driven, threshold)
    elif mode == 1:
        lower = threshold * rng.uniform(0.5, 1.0)
        folded = np.where(driven >= 0.0, reflect_fold(driven, threshold), reflect_fold(driven, lower))
    else:
        folded = soft_clip(driven / threshold, 1.0) * threshold

    return base * (1.0 - amount) + (folded / threshold) * amount


def spectral_morph(base: np.ndarray, sample: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    t = phase_ramp(len(base))
    result = base * (1.0 - amount) * 0.5
    envelope = 0.5 + 0.5 * np.abs(sample)

    for band in range(1, int(rng.integers(2, 6)) + 1):
        ratio = band + rng.uniform(-0.05, 0.05)
        phase = np.mod(ratio * t + 0.3 * amount * sample + rng.random(), 1.0)
        shape = band % 3
        if shape == 0:
            voice = np.sin(TWO_PI * phase)
        elif shape == 1:
            voice = 1.0 - 4.0 * np.abs(phase - 0.5)
        else:
            voice = np.where(phase < 0.5, 1.0, -1.0)
        result = result + (amount / band) * envelope * voice
    return result


MORPH_ALGORITHMS = {
    MorphType.BLEND: blend_morph,
    MorphType.ADDITIVE: additive_morph,
    MorphType.HARMONIC: harmonic_morph,
    MorphType.FOLD: fold_morph,
    MorphType.SPECTRAL: spectral_morph,
}

_missing = set(MorphType) - set(MORPH_ALGORITHMS)
if _missing:
    raise RuntimeError(f"No morph algorithm registered for: {sorted(m.name for m in _missing)}")


# --- shared post-stage -------------------------------------------------------


def phase_feedback(frame: np.ndarray, amount: float) -> np.ndarray:
    """Re-read the frame at positions offset by its own value."""
    length = len(frame)
    offsets = np.round(amount * frame * length / 32.0).astype(np.int64)
    return frame[(np.arange(length) + offsets) % length]


def spectral_tilt(frame: np.ndarray, tilt: float) -> np.ndarray:
    """Tilt the magnitude spectrum around the fundamental; positive values brighten."""
    spectrum = fft.rfft(frame)
    bins = np.arange(len(spectrum), dtype=np.float64)
    gain = np.maximum(bins, 1.0) ** (tilt * 0.3)
    return fft.irfft(spectrum * gain, n=len(frame))


def post_process(frame: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    if rng.random() < POST_EFFECT_PROBABILITY:
        frame = phase_feedback(frame, rng.uniform(0.1, 0.5))
    if rng.random() < POST_EFFECT_PROBABILITY:
        frame = spectral_tilt(frame, rng.uniform(-1.0, 1.0))
    if rng.random() < POST_EFFECT_PROBABILITY:
        frame = quantize(normalize(frame), int(rng.integers(4, 11)))
    return frame


def morph_frame(morph_type: MorphType, base: np.ndarray, sample: np.ndarray, frame_index: int,
                frame_count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Blend a synthesized frame with a sample frame.

    ``sample`` can have any non-zero length; it is resampled to the length of
    ``base``, 30% of the time after a random time-stretch.
    """
    amount = morph_amount(frame_index, frame_count, rng)

    if rng.random() < TIME_STRETCH_PROBABILITY:
        stretched = max(2, int(len(sample) * rng.uniform(0.5, 2.0)))
        sample = resample(sample, stretched, rng)
    sample = resample(sample, len(base), rng).astype(np.float64)

    logger.debug("Frame %d/%d: %s morph at %.2f", frame_index + 1, frame_count, morph_type.slug, amount)
    result = MORPH_ALGORITHMS[morph_type](np.asarray(base, dtype=np.float64), sample, amount, rng)
    result = post_process(result, rng)
    return normalize(np.asarray(result, dtype=np.float32))
