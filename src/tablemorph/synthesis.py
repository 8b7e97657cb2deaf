import logging
import math

import numpy as np
from scipy import fft
from scipy.ndimage import uniform_filter1d

from tablemorph.constants import Constant
from tablemorph.dsp import (
    cubic_shape,
    normalize,
    phase_ramp,
    quantize,
    reflect_fold,
    sample_and_hold,
    smooth,
    soft_clip,
)
from tablemorph.models import WaveformType

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi

# Normalized formant centres for five vowel-like shapes (A, E, I, O, U)
VOWEL_FORMANTS = (
    (0.10, 0.25, 0.35),
    (0.07, 0.30, 0.45),
    (0.06, 0.35, 0.43),
    (0.08, 0.15, 0.28),
    (0.05, 0.12, 0.30),
)


# --- frame position ----------------------------------------------------------


def frame_position(frame_index: int, frame_count: int, rng: np.random.Generator) -> float:
    """
    Map a frame index to a warped position in [0, 1].

    Tables with a single frame start at position 0. The position is inverted
    20% of the time and then bent by a random power between 0.5 and 2.
    """
    if frame_count > 1:
        position = frame_index / (frame_count - 1)
    else:
        position = 0.0
    if rng.random() < 0.2:
        position = 1.0 - position
    warp = rng.uniform(0.5, 2.0)
    return float(min(max(position, 0.0), 1.0) ** warp)


def frame_complexity(frame_factor: float, rng: np.random.Generator) -> float:
    return float(np.clip(0.2 + 0.8 * frame_factor + rng.uniform(-0.1, 0.1), 0.0, 1.0))


# --- additive / harmonic -----------------------------------------------------


def harmonic_weights(num_partials: int, style: int, rng: np.random.Generator) -> np.ndarray:
    """Partial amplitudes for one of four weighting styles."""
    harmonics = np.arange(1, num_partials + 1, dtype=np.float64)
    natural = 1.0 / harmonics

    if style == 0:
        weights = natural
    elif style == 1:
        # Odd partials dominate, even ones are mostly suppressed
        even_level = rng.uniform(0.0, 0.25, num_partials)
        weights = np.where(harmonics % 2 == 1, natural, natural * even_level)
    elif style == 2:
        peaks = rng.uniform(1.0, num_partials, 2)
        width = rng.uniform(1.0, max(1.5, num_partials / 4.0))
        resonance = np.exp(-(((harmonics[:, None] - peaks[None, :]) / width) ** 2)).sum(axis=1)
        weights = 0.3 * natural + resonance
    else:
        boost = rng.random(num_partials) < 0.3
        cut = rng.random(num_partials) < 0.3
        factors = np.where(boost, rng.uniform(1.5, 3.0, num_partials), 1.0)
        factors = np.where(cut & ~boost, rng.uniform(0.1, 0.4, num_partials), factors)
        weights = natural * factors

    return weights * rng.uniform(0.85, 1.15, num_partials)


def sum_partials(sample_count: int, amplitudes: np.ndarray, phases: np.ndarray | None = None,
                 ratios: np.ndarray | None = None) -> np.ndarray:
    t = phase_ramp(sample_count)
    if ratios is None:
        ratios = np.arange(1, len(amplitudes) + 1, dtype=np.float64)
    if phases is None:
        phases = np.zeros(len(amplitudes))
    partials = np.sin(TWO_PI * np.outer(ratios, t) + phases[:, None])
    return amplitudes @ partials


def additive_family(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    num_partials = int(rng.integers(3, 4 + int(25 * complexity)))
    style = int(rng.integers(4))
    amplitudes = harmonic_weights(num_partials, style, rng)
    phases = rng.uniform(0.0, TWO_PI, num_partials) if rng.random() < 0.5 else None
    return sum_partials(sample_count, amplitudes, phases)


# --- FM ----------------------------------------------------------------------


def fm_family(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    """
    Carrier driven by a chain of 1-3 modulators at non-integer ratios.

    The carrier output is fed back into the phase of the first modulator.
    """
    num_modulators = int(rng.integers(1, 4))
    ratios = rng.integers(1, 7, num_modulators) + rng.uniform(0.1, 0.9, num_modulators)
    indices = (0.5 + 4.0 * complexity) * rng.uniform(0.4, 1.0, num_modulators)
    feedback = rng.uniform(0.0, 0.5)

    t = phase_ramp(sample_count)
    ratios = ratios.tolist()
    indices = indices.tolist()
    out = np.empty(sample_count)
    last = 0.0
    for i in range(sample_count):
        phase = t[i]
        mod = feedback * last
        for ratio, index in zip(ratios, indices):
            mod = index * math.sin(TWO_PI * (phase * ratio + mod))
        last = math.sin(TWO_PI * phase + mod)
        out[i] = last
    return out


# --- fold / distortion -------------------------------------------------------


def basic_shape(kind: int, sample_count: int) -> np.ndarray:
    t = phase_ramp(sample_count)
    if kind == 0:
        return np.sin(TWO_PI * t)
    if kind == 1:
        return 1.0 - 4.0 * np.abs(t - 0.5)
    return 2.0 * t - 1.0


def fold_family(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    wave = basic_shape(int(rng.integers(3)), sample_count)
    wave = wave * (1.0 + 3.0 * complexity * rng.random())

    for _ in range(int(rng.integers(1, 4))):
        stage = int(rng.integers(4))
        if stage == 0:
            wave = soft_clip(wave, 1.0 + 3.0 * complexity)
        elif stage == 1:
            wave = cubic_shape(wave, rng.uniform(0.8, 1.5))
        elif stage == 2:
            wave = reflect_fold(wave, rng.uniform(0.3, 0.9))
        else:
            bits = max(2, int(round(12 - 9 * complexity)))
            wave = quantize(wave, bits)
    return wave


# --- phase distortion --------------------------------------------------------


def distortion_curve(kind: int, complexity: float, rng: np.random.Generator, t: np.ndarray) -> np.ndarray:
    """Phase remapping curve renormalized to span [0, 1]."""
    if kind == 0:
        exponent = math.exp(rng.uniform(-1.5, 1.5) * (0.3 + complexity))
        curve = t**exponent
    elif kind == 1:
        steepness = 2.0 + 18.0 * complexity * rng.random() + rng.random()
        curve = 1.0 / (1.0 + np.exp(-steepness * (t - rng.uniform(0.3, 0.7))))
    elif kind == 2:
        segments = int(rng.integers(2, 6))
        knots_x = np.concatenate(([0.0], np.sort(rng.random(segments - 1)), [1.0]))
        knots_y = np.concatenate(([0.0], np.sort(rng.random(segments - 1)), [1.0]))
        curve = np.interp(t, knots_x, knots_y)
    else:
        cycles = int(rng.integers(1, 4))
        amount = rng.uniform(0.2, 0.5 + 0.5 * complexity)
        curve = t + amount * np.sin(TWO_PI * cycles * t) / (TWO_PI * cycles)

    span = curve.max() - curve.min()
    if span < 1e-9:
        return t
    return (curve - curve.min()) / span


def phase_distortion_family(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    t = phase_ramp(sample_count)
    curve = distortion_curve(int(rng.integers(4)), complexity, rng, t)
    harmonic = int(rng.integers(1, 4))
    if rng.random() < 0.5:
        return np.sin(TWO_PI * harmonic * curve)
    return 2.0 * np.mod(harmonic * curve, 1.0) - 1.0


# --- chaotic / spectral ------------------------------------------------------


def logistic_map(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    r = 3.7 + rng.random() * 0.29
    x = float(rng.uniform(0.01, 0.99))
    out = np.empty(sample_count)
    for i in range(sample_count):
        for _ in range(10):
            x = r * x * (1.0 - x)
        out[i] = 2.0 * x - 1.0
    return out


def lorenz_attractor(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    """x-projection of a discretized Lorenz system (sigma=10, rho=28, beta=8/3)."""
    x, y, z = (float(v) for v in rng.uniform(0.0, 0.1, 3))
    sigma, rho, beta, dt = 10.0, 28.0, 8.0 / 3.0, 0.005
    out = np.empty(sample_count)
    for i in range(sample_count):
        dx = sigma * (y - x) * dt
        dy = (x * (rho - z) - y) * dt
        dz = (x * y - beta * z) * dt
        x, y, z = x + dx, y + dy, z + dz
        out[i] = x / 20.0
    return np.clip(out, -1.0, 1.0)


def henon_map(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    a = 1.2 + rng.random() * 0.2
    b = 0.2 + rng.random() * 0.1
    x, y = (float(v) for v in rng.uniform(0.0, 0.1, 2))
    out = np.empty(sample_count)
    for i in range(sample_count):
        x, y = 1.0 - a * x * x + y, b * x
        if not math.isfinite(x) or abs(x) > 10.0:
            # Orbit escaped the attractor basin
            x, y = 0.0, 0.0
        out[i] = x
    return np.clip(out, -1.0, 1.0)


def hermitian_spectrum(magnitudes: np.ndarray, phases: np.ndarray, sample_count: int) -> np.ndarray:
    """
    Build a full-length complex spectrum whose inverse FFT is real.

    ``magnitudes``/``phases`` describe bins 1..len(magnitudes). DC and Nyquist
    stay real and every bin k is mirrored to N-k as its complex conjugate.
    """
    half = sample_count // 2
    count = min(len(magnitudes), half - 1)
    spectrum = np.zeros(sample_count, dtype=np.complex128)
    bins = magnitudes[:count] * np.exp(1j * phases[:count])
    spectrum[1 : count + 1] = bins
    spectrum[sample_count - count :] = np.conj(bins[::-1])
    spectrum[0] = spectrum[0].real
    spectrum[half] = spectrum[half].real
    return spectrum


def spectral_blend(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    half = sample_count // 2
    max_bin = min(half - 1, 16 + int(240 * complexity))
    bins = np.arange(1, max_bin + 1)

    low = bins < max(2, max_bin // 8)
    spectrum_a = np.where(low, rng.random(max_bin) ** 1.5, rng.random(max_bin) ** 3.0 * 0.3)
    pattern = int(rng.integers(2, 5))
    spectrum_b = np.where(bins % pattern == 0, rng.random(max_bin) ** 1.2, rng.random(max_bin) ** 4.0 * 0.2)

    blend = rng.random()
    magnitudes = spectrum_a * (1.0 - blend) + spectrum_b * blend
    phases = rng.uniform(0.0, TWO_PI, max_bin)
    spectrum = hermitian_spectrum(magnitudes, phases, sample_count)
    return fft.ifft(spectrum).real


def chaotic_family(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    kind = int(rng.integers(4))
    if kind == 3:
        return spectral_blend(sample_count, complexity, rng)
    system = (logistic_map, lorenz_attractor, henon_map)[kind]
    wave = system(sample_count, rng)
    radius = int(rng.integers(2, 8))
    return uniform_filter1d(wave, size=2 * radius + 1, mode="wrap")


# --- frame effects -----------------------------------------------------------


def apply_frame_effects(wave: np.ndarray, complexity: float, rng: np.random.Generator) -> np.ndarray:
    """Optionally add amplitude modulation, a circular comb, or sample-and-hold stepping."""
    sample_count = len(wave)
    roll = rng.random()
    if roll < 0.2:
        t = phase_ramp(sample_count)
        rate = int(rng.integers(1, 5))
        depth = rng.uniform(0.1, 0.5)
        wave = wave * (1.0 - depth + depth * np.sin(TWO_PI * rate * t + rng.uniform(0.0, TWO_PI)))
    elif roll < 0.35:
        delay = int(rng.integers(2, max(3, sample_count // 8)))
        feedback = rng.uniform(0.2, 0.7)
        combed = wave
        for _ in range(3):
            combed = wave + feedback * np.roll(combed, delay)
        wave = combed
    elif roll < 0.45:
        step = 2 ** int(rng.integers(1, 3 + int(4 * complexity)))
        wave = sample_and_hold(wave, step)
    return wave


SYNTHESIS_FAMILIES = {
    "additive": additive_family,
    "fm": fm_family,
    "fold": fold_family,
    "phase_distortion": phase_distortion_family,
    "chaotic": chaotic_family,
}


def synthesize_frame(frame_index: int, frame_count: int, sample_count: int,
                     rng: np.random.Generator) -> np.ndarray:
    """
    Produce one peak-normalized frame of a multi-frame wavetable.

    The frame position sets a complexity scalar, one synthesis family is chosen
    uniformly, and a post-effect may be applied before normalization.
    """
    frame_factor = frame_position(frame_index, frame_count, rng)
    complexity = frame_complexity(frame_factor, rng)
    names = list(SYNTHESIS_FAMILIES)
    name = names[int(rng.integers(len(names)))]
    logger.debug("Frame %d/%d: %s (complexity %.2f)", frame_index + 1, frame_count, name, complexity)

    wave = SYNTHESIS_FAMILIES[name](sample_count, complexity, rng)
    wave = apply_frame_effects(wave, complexity, rng)
    return normalize(np.asarray(wave, dtype=np.float32))


# --- single-cycle waveforms --------------------------------------------------


def sine_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    t = phase_ramp(sample_count)
    if rng.random() < 0.5:
        depth = rng.uniform(0.05, 0.15)
        rate = int(rng.integers(1, 4))
        t = np.mod(t + depth * np.sin(TWO_PI * rate * t), 1.0)
    return np.sin(TWO_PI * t)


def triangle_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    t = phase_ramp(sample_count)
    peak = rng.uniform(0.2, 0.8) if rng.random() < 0.4 else 0.5
    wave = np.where(t < peak, -1.0 + 2.0 * t / peak, 1.0 - 2.0 * (t - peak) / (1.0 - peak))
    if rng.random() < 0.3:
        wave = smooth(wave, int(rng.integers(1, 4)))
    return wave


def saw_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    wave = 2.0 * phase_ramp(sample_count) - 1.0
    if rng.random() < 0.25:
        return -wave
    return wave


def square_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    pulse_width = rng.uniform(0.3, 0.7)
    wave = np.where(phase_ramp(sample_count) < pulse_width, 1.0, -1.0)
    if rng.random() < 0.4:
        wave = smooth(wave, 1)
    return wave


def noise_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    wave = rng.uniform(-1.0, 1.0, sample_count)
    # 0 = white, 1 = pink-ish, 2 = darker
    for _ in range(int(rng.integers(3))):
        wave = smooth(wave, int(rng.integers(1, 4)))
    return wave


def fm_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    t = phase_ramp(sample_count)
    ratio = int(rng.integers(1, 6))
    index = rng.uniform(0.5, 5.0)
    return np.sin(TWO_PI * (t + index * np.sin(TWO_PI * ratio * t)))


def additive_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    num_harmonics = int(rng.integers(3, 18))
    harmonics = np.arange(1, num_harmonics + 1, dtype=np.float64)
    rolloff = int(rng.integers(3))
    if rolloff == 0:
        amplitudes = 1.0 / harmonics
    elif rolloff == 1:
        amplitudes = np.where(harmonics % 2 == 1, 1.0 / harmonics, 0.0)
    else:
        amplitudes = rng.uniform(0.7, 0.95) ** (harmonics - 1)
    amplitudes = amplitudes * rng.uniform(0.8, 1.2, num_harmonics)
    return sum_partials(sample_count, amplitudes)


def formant_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Vowel-like single cycle.

    A saw or pulse carrier is filtered in the frequency domain by 2-3 Gaussian
    resonance peaks placed near one of five vowel positions.
    """
    num_formants = int(rng.integers(2, 4))
    centres = np.array(VOWEL_FORMANTS[int(rng.integers(len(VOWEL_FORMANTS)))][:num_formants])
    centres = centres * rng.uniform(0.9, 1.1, num_formants)
    widths = rng.uniform(0.02, 0.06, num_formants)
    gains = rng.uniform(0.7, 1.3, num_formants)

    if rng.random() < 0.5:
        carrier = 2.0 * phase_ramp(sample_count) - 1.0
    else:
        carrier = np.where(phase_ramp(sample_count) < rng.uniform(0.1, 0.5), 1.0, -1.0)

    spectrum = fft.rfft(carrier)
    harmonic_span = min(len(spectrum) - 1, 96)
    position = np.arange(len(spectrum)) / harmonic_span
    envelope = 0.05 + (gains[:, None] * np.exp(-(((position[None, :] - centres[:, None]) / widths[:, None]) ** 2))).sum(axis=0)
    envelope[0] = 0.0
    return fft.irfft(spectrum * envelope, n=sample_count)


def fractal_waveform(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    """Sine with self-similar detail added at integer index scalings."""
    wave = np.sin(TWO_PI * phase_ramp(sample_count))
    iterations = int(rng.integers(3, 6))
    roughness = rng.uniform(0.2, 0.4 + 0.4 * complexity)
    indices = np.arange(sample_count)
    for _ in range(iterations):
        detail = sum(wave[(indices * j) % sample_count] * roughness**j for j in range(1, 5))
        wave = wave + detail * (0.7 / iterations)
    return wave


def layered_harmonics_waveform(sample_count: int, complexity: float, rng: np.random.Generator) -> np.ndarray:
    layers = int(rng.integers(2, 5))
    wave = np.zeros(sample_count)
    for _ in range(layers):
        num_harmonics = int(rng.integers(3, 16))
        harmonics = np.arange(1, num_harmonics + 1, dtype=np.float64)
        amplitude = rng.uniform(0.7, 1.3) / layers
        decay = rng.uniform(0.8, 2.0 - complexity)
        ratio = 1.0 + int(rng.integers(3)) * 0.5
        phase_offset = rng.uniform(0.0, TWO_PI)
        amplitudes = amplitude * harmonics**-decay
        amplitudes = np.where(harmonics % 2 == 0, amplitudes * rng.uniform(0.2, 1.0, num_harmonics), amplitudes)
        wave += sum_partials(sample_count, amplitudes, phase_offset * harmonics, ratio * harmonics)
    if rng.random() < 0.5:
        wave = reflect_fold(wave / np.abs(wave).max(), rng.uniform(0.8, 1.0))
    return wave


EXPERIMENTAL_ALGORITHMS = dict(
    SYNTHESIS_FAMILIES,
    fractal=fractal_waveform,
    layered_harmonics=layered_harmonics_waveform,
)


def experimental_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    names = list(EXPERIMENTAL_ALGORITHMS)
    name = names[int(rng.integers(len(names)))]
    complexity = rng.uniform(0.3, 1.0)
    logger.debug("Experimental waveform: %s (complexity %.2f)", name, complexity)
    return EXPERIMENTAL_ALGORITHMS[name](sample_count, complexity, rng)


def custom_waveform(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    frame_count = Constant.DEFAULT_NUM_FRAMES
    return synthesize_frame(int(rng.integers(frame_count)), frame_count, sample_count, rng)


WAVEFORM_GENERATORS = {
    WaveformType.SINE: sine_waveform,
    WaveformType.TRIANGLE: triangle_waveform,
    WaveformType.SAW: saw_waveform,
    WaveformType.SQUARE: square_waveform,
    WaveformType.NOISE: noise_waveform,
    WaveformType.FM: fm_waveform,
    WaveformType.ADDITIVE: additive_waveform,
    WaveformType.FORMANT: formant_waveform,
    WaveformType.CUSTOM: custom_waveform,
    WaveformType.EXPERIMENTAL: experimental_waveform,
}

_missing = set(WaveformType) - set(WAVEFORM_GENERATORS)
if _missing:
    raise RuntimeError(f"No generator registered for: {sorted(m.name for m in _missing)}")


def synthesize_waveform(waveform_type: WaveformType, sample_count: int, rng: np.random.Generator,
                        experimental_probability: float = 0.0) -> np.ndarray:
    """
    Produce one peak-normalized single-cycle frame of the given type.

    Any non-experimental type is swapped for an experimental waveform with
    ``experimental_probability``.
    """
    if waveform_type is not WaveformType.EXPERIMENTAL and rng.random() < experimental_probability:
        logger.debug("Replacing %s with an experimental waveform", waveform_type.slug)
        waveform_type = WaveformType.EXPERIMENTAL
    wave = WAVEFORM_GENERATORS[waveform_type](sample_count, rng)
    return normalize(np.asarray(wave, dtype=np.float32))
