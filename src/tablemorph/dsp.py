import numpy as np

CUBIC_PROBABILITY = 0.7
NORMALIZE_EPSILON = 1e-5


def resample(audio_data: np.ndarray, target_length: int, rng: np.random.Generator) -> np.ndarray:
    """
    Retarget a buffer of any length to ``target_length`` samples.

    One draw from ``rng`` per call picks 4-point cubic interpolation (70%) or
    linear interpolation. Neighbour indices clamp at both edges.
    """
    audio_data = np.asarray(audio_data, dtype=np.float32)
    in_length = len(audio_data)
    if in_length == target_length:
        return audio_data.copy()
    if in_length == 0:
        raise ValueError("Cannot resample an empty buffer")

    use_cubic = rng.random() < CUBIC_PROBABILITY

    pos = np.arange(target_length, dtype=np.float64) * (in_length / target_length)
    pos1 = np.minimum(pos.astype(np.int64), in_length - 1)
    frac = pos - pos1
    pos2 = np.minimum(pos1 + 1, in_length - 1)
    y1 = audio_data[pos1].astype(np.float64)
    y2 = audio_data[pos2].astype(np.float64)

    if use_cubic:
        y0 = audio_data[np.maximum(pos1 - 1, 0)].astype(np.float64)
        y3 = audio_data[np.minimum(pos1 + 2, in_length - 1)].astype(np.float64)
        frac2 = frac * frac
        a0 = y3 - y2 - y0 + y1
        a1 = y0 - y1 - a0
        a2 = y2 - y0
        out = a0 * frac * frac2 + a1 * frac2 + a2 * frac + y1
    else:
        out = (1.0 - frac) * y1 + frac * y2

    return out.astype(np.float32)


def normalize(audio_data: np.ndarray) -> np.ndarray:
    """Scale to a peak of 1.0; silent or already-normalized data is returned unchanged."""
    audio_data = np.asarray(audio_data, dtype=np.float32)
    peak_value = float(np.abs(audio_data).max()) if audio_data.size else 0.0
    if peak_value > NORMALIZE_EPSILON and abs(peak_value - 1.0) > NORMALIZE_EPSILON:
        return (audio_data / peak_value).astype(np.float32)
    return audio_data.copy()


def smooth(audio_data: np.ndarray, radius: int) -> np.ndarray:
    """Circular moving average with triangular weights over +/- radius samples."""
    audio_data = np.asarray(audio_data, dtype=np.float32)
    if radius <= 0 or len(audio_data) == 0:
        return audio_data.copy()

    acc = np.zeros(len(audio_data), dtype=np.float64)
    total_weight = 0.0
    for offset in range(-radius, radius + 1):
        weight = 1.0 - abs(offset) / (radius + 1)
        acc += weight * np.roll(audio_data, -offset)
        total_weight += weight
    return (acc / total_weight).astype(np.float32)


def smooth_loop_points(audio_data: np.ndarray, fraction: float = 0.03) -> np.ndarray:
    """
    Remove the loop-boundary discontinuity of a single-cycle frame.

    The jump between the last and the first sample is crossfaded out over a
    window of ``fraction`` of the frame length (clamped to 1%-12%): half of it
    is faded into the head, half into the tail, so both ends meet at the same
    value.
    """
    audio_data = np.asarray(audio_data, dtype=np.float32)
    length = len(audio_data)
    if length < 3:
        return audio_data.copy()

    fraction = min(max(fraction, 0.01), 0.12)
    window = max(2, int(length * fraction))
    window = min(window, length // 2)

    out = audio_data.astype(np.float64)
    mismatch = out[-1] - out[0]
    ramp = np.arange(window, dtype=np.float64) / window
    out[:window] += 0.5 * mismatch * (1.0 - ramp)
    out[length - window :] -= 0.5 * mismatch * (ramp + 1.0 / window)
    return out.astype(np.float32)


def finish_frame(audio_data: np.ndarray) -> np.ndarray:
    """Loop-point crossfade followed by peak normalization, applied to every emitted frame."""
    return normalize(smooth_loop_points(audio_data))


def soft_clip(audio_data: np.ndarray, drive: float = 1.5) -> np.ndarray:
    return np.tanh(audio_data * drive) / np.tanh(drive)


def cubic_shape(audio_data: np.ndarray, drive: float = 1.0) -> np.ndarray:
    """Cubic polynomial shaper 1.5x - 0.5x^3 on the clipped, driven input."""
    x = np.clip(audio_data * drive, -1.0, 1.0)
    return 1.5 * x - 0.5 * x**3


def reflect_fold(audio_data: np.ndarray, threshold: float) -> np.ndarray:
    """Fold values back into [-threshold, threshold] by repeated reflection."""
    span = 4.0 * threshold
    return threshold - np.abs(np.mod(audio_data + threshold, span) - 2.0 * threshold)


def quantize(audio_data: np.ndarray, bits: int) -> np.ndarray:
    levels = float(2 ** (max(bits, 1) - 1))
    return np.round(audio_data * levels) / levels


def sample_and_hold(audio_data: np.ndarray, step: int) -> np.ndarray:
    """Hold every ``step``-th value for ``step`` samples."""
    if step <= 1:
        return np.array(audio_data, copy=True)
    held = np.repeat(audio_data[::step], step)
    return held[: len(audio_data)]


def phase_ramp(sample_count: int) -> np.ndarray:
    """Phase positions i / sample_count for one cycle."""
    return np.arange(sample_count, dtype=np.float64) / sample_count
