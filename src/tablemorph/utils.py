from datetime import datetime
from hashlib import md5

import numpy as np

from tablemorph.constants import Constant
from tablemorph.errors import FormatError

SEED_MASK = (1 << 64) - 1


def bytes_to_array(audio_bytes: bytes, fmt_chunk) -> np.ndarray:
    """Convert interleaved sample bytes to an array of shape (frames, channels)."""
    bytes_per_sample = fmt_chunk.block_align // fmt_chunk.num_channels
    codec_id = fmt_chunk.codec_id
    # Extensible: the real codec lives in the sub-format GUID
    if codec_id == 65534:
        codec_id = fmt_chunk.codec_id_hint

    # PCM
    if codec_id == 1:
        if fmt_chunk.bitdepth not in {16, 24, 32} or bytes_per_sample * 8 != fmt_chunk.bitdepth:
            raise FormatError(f"Unsupported PCM bit depth: {fmt_chunk.bitdepth}")
    # IEEE float
    elif codec_id == 3:
        if fmt_chunk.bitdepth not in {32, 64} or bytes_per_sample * 8 != fmt_chunk.bitdepth:
            raise FormatError(f"Unsupported float bit depth: {fmt_chunk.bitdepth}")
    else:
        raise FormatError(f"Unsupported codec ID: {fmt_chunk.codec_id}")

    usable = len(audio_bytes) - len(audio_bytes) % fmt_chunk.block_align
    audio_bytes = audio_bytes[:usable]

    if codec_id == 1 and fmt_chunk.bitdepth == 24:
        # Pad each 3-byte sample with a zero low byte so it reads as a scaled int32
        raw = np.frombuffer(audio_bytes, dtype=np.uint8).reshape(-1, 3)
        padded = np.zeros((raw.shape[0], 4), dtype=np.uint8)
        padded[:, 1:] = raw
        audio_data = padded.reshape(-1).view("<i4")
    elif codec_id == 1:
        audio_data = np.frombuffer(audio_bytes, dtype=f"<i{bytes_per_sample}")
    else:
        audio_data = np.frombuffer(audio_bytes, dtype=f"<f{bytes_per_sample}")

    return audio_data.reshape(-1, fmt_chunk.num_channels)


def to_float32(audio_data: np.ndarray) -> np.ndarray:
    """Convert audio data to float32, scaling integer types by their positive maximum."""
    if audio_data.dtype != np.float32:
        if audio_data.dtype.kind == "i":
            info = np.iinfo(audio_data.dtype)
            audio_data = (audio_data.astype(np.float64) / info.max).astype(np.float32)
        elif audio_data.dtype.kind == "f":
            audio_data = audio_data.astype(np.float32)
        else:
            raise TypeError(f"Unsupported audio data type for conversion to float32: {audio_data.dtype}")
    return audio_data


def to_mono(audio_data: np.ndarray) -> np.ndarray:
    """Keep only the first channel of multi-channel audio."""
    if audio_data.ndim > 1:
        return np.ascontiguousarray(audio_data[:, 0])
    return audio_data


def float_to_pcm16(audio_data: np.ndarray) -> np.ndarray:
    """Convert normalized floats to little-endian signed 16-bit PCM."""
    scaled = np.round(np.asarray(audio_data, dtype=np.float64) * Constant.PCM16_SCALE)
    return np.clip(scaled, -32768, 32767).astype("<i2")


def get_md5(audio_data: np.ndarray) -> str:
    """Calculate MD5 hash of audio data."""
    return md5(np.ascontiguousarray(audio_data).tobytes()).hexdigest()


def seed_sequence(seed: int) -> np.random.SeedSequence:
    return np.random.SeedSequence(int(seed) & SEED_MASK)


def make_rng(seed: int) -> np.random.Generator:
    """Create the generator for one wavetable from a 64-bit seed."""
    return np.random.default_rng(seed_sequence(seed))


def spawn_rngs(seed: int, count: int) -> list[np.random.Generator]:
    """
    Split a seed into ``count`` independent generator streams.

    Stream ``i`` depends only on (seed, i), so frames drawing from their own
    stream give the same result in any order or on any thread.
    """
    return [np.random.default_rng(child) for child in seed_sequence(seed).spawn(count)]


def batch_seeds(count: int, base: int | None = None) -> list[int]:
    """Seeds for a batch: one millisecond timestamp plus an explicit counter."""
    if base is None:
        base = int(datetime.now().timestamp() * 1000)
    return [(base + i) & SEED_MASK for i in range(count)]


def make_filename(label: str, seed: int, when: datetime | None = None) -> str:
    """Build an output name such as 'morph_fold_20250101_120000_4711.wav'."""
    when = when or datetime.now()
    return f"{label}_{when.strftime(Constant.TIMESTAMP_FORMAT)}_{seed % 10000:04d}.wav"
