import logging
import struct
from collections import namedtuple
from pathlib import Path

import numpy as np

from tablemorph.constants import Constant
from tablemorph.errors import FormatError
from tablemorph.utils import bytes_to_array, to_float32, to_mono

logger = logging.getLogger(__name__)

FmtChunk = namedtuple(
    "FmtChunk",
    ["codec_id", "num_channels", "samplerate", "byte_rate", "block_align", "bitdepth", "codec_id_hint"],
)

# Parsed container: format header plus the raw bytes of the data chunk
WavContents = namedtuple("WavContents", ["fmt_chunk", "audio_bytes", "skipped_chunks"])

_CHUNK_HEADER = struct.Struct("<4sI")
_FMT_BODY = struct.Struct("<HHIIHH")


def encode(pcm) -> bytes:
    """
    Wrap 16-bit mono PCM in a RIFF/WAVE container.

    ``pcm`` may be raw little-endian bytes or an int16 array.
    """
    if isinstance(pcm, np.ndarray):
        pcm = pcm.astype("<i2", copy=False).tobytes()
    pcm = bytes(pcm)
    if len(pcm) % 2:
        raise ValueError("16-bit PCM data must have an even byte length")

    channels = Constant.DEFAULT_CHANNELS
    samplerate = Constant.DEFAULT_SAMPLERATE
    bitdepth = Constant.DEFAULT_BITDEPTH
    block_align = channels * bitdepth // 8

    header = b"".join(
        (
            _CHUNK_HEADER.pack(b"RIFF", 36 + len(pcm)),
            b"WAVE",
            _CHUNK_HEADER.pack(b"fmt ", _FMT_BODY.size),
            _FMT_BODY.pack(1, channels, samplerate, samplerate * block_align, block_align, bitdepth),
            _CHUNK_HEADER.pack(b"data", len(pcm)),
        )
    )
    return header + pcm


def parse_fmt_chunk(body: bytes) -> FmtChunk:
    if len(body) < _FMT_BODY.size:
        raise FormatError(f"fmt chunk too short: {len(body)} bytes")
    codec_id, num_channels, samplerate, byte_rate, block_align, bitdepth = _FMT_BODY.unpack_from(body)
    codec_id_hint = None
    # WAVE_FORMAT_EXTENSIBLE carries the real codec in the first two bytes of the sub-format GUID
    if codec_id == 65534 and len(body) >= 26:
        codec_id_hint = struct.unpack_from("<H", body, 24)[0]
    if num_channels == 0:
        raise FormatError("fmt chunk declares zero channels")
    if block_align == 0 or block_align % num_channels:
        raise FormatError(f"Invalid block alignment: {block_align}")
    return FmtChunk(codec_id, num_channels, samplerate, byte_rate, block_align, bitdepth, codec_id_hint)


def read_chunks(data: bytes, max_chunks: int = Constant.MAX_CHUNK_SCAN) -> WavContents:
    """
    Walk the sub-chunks of a RIFF/WAVE byte stream.

    Unknown chunks are skipped. The walk stops after ``max_chunks`` headers, at
    the end of the input, or at a chunk whose declared size runs past the
    remaining bytes. Raises FormatError when the magic markers are missing or
    when no fmt/data pair was found.
    """
    if len(data) < 12:
        raise FormatError(f"Input too short for a RIFF/WAVE header: {len(data)} bytes")
    if data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise FormatError("Not a RIFF/WAVE file")

    fmt_chunk = None
    audio_bytes = None
    skipped = []
    offset = 12

    for _ in range(max_chunks):
        if len(data) - offset < _CHUNK_HEADER.size:
            break
        chunk_id, chunk_size = _CHUNK_HEADER.unpack_from(data, offset)
        offset += _CHUNK_HEADER.size
        remaining = len(data) - offset

        if chunk_size > remaining:
            logger.warning(
                "Chunk %r declares %d bytes but only %d remain; stopping", chunk_id, chunk_size, remaining
            )
            break

        body = data[offset : offset + chunk_size]
        if chunk_id == b"fmt ":
            fmt_chunk = parse_fmt_chunk(body)
        elif chunk_id == b"data":
            audio_bytes = body
            break
        else:
            skipped.append(chunk_id.decode("latin-1"))

        # Chunks are word aligned: odd sizes carry one pad byte
        offset += chunk_size + (chunk_size & 1)
    else:
        logger.warning("Stopped scanning after %d chunks", max_chunks)

    if audio_bytes is None:
        raise FormatError("Could not find a valid data chunk")
    if fmt_chunk is None:
        raise FormatError("data chunk found before any fmt chunk")
    if skipped:
        logger.debug("Skipped chunks: %s", ", ".join(skipped))
    return WavContents(fmt_chunk, audio_bytes, skipped)


def read_fmt_chunk(data: bytes) -> FmtChunk:
    return read_chunks(data).fmt_chunk


def decode(data: bytes) -> np.ndarray:
    """Decode a RIFF/WAVE byte stream into a mono float32 sample (channel 0)."""
    contents = read_chunks(data)
    audio_data = bytes_to_array(contents.audio_bytes, contents.fmt_chunk)
    return to_float32(to_mono(audio_data))


def decode_pcm(data: bytes) -> tuple[FmtChunk, np.ndarray]:
    """Return the header and the raw int16 samples of a 16-bit PCM file."""
    contents = read_chunks(data)
    fmt_chunk = contents.fmt_chunk
    if fmt_chunk.codec_id != 1 or fmt_chunk.bitdepth != 16:
        raise FormatError(f"Expected 16-bit PCM, got codec {fmt_chunk.codec_id} at {fmt_chunk.bitdepth} bits")
    return fmt_chunk, to_mono(bytes_to_array(contents.audio_bytes, fmt_chunk))


def write_wav(filename_out: Path, wav_bytes: bytes) -> Path:
    """Write an encoded container to disk; the file is closed on every exit path."""
    filename_out = Path(filename_out)
    with open(filename_out, "wb") as f:
        f.write(wav_bytes)
    return filename_out


def read_wav(filename_in: Path) -> np.ndarray:
    with open(filename_in, "rb") as f:
        return decode(f.read())
