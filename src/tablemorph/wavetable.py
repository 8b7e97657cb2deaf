import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from scipy.signal.windows import hann

from tablemorph import formats
from tablemorph.config import GeneratorConfig
from tablemorph.dsp import finish_frame, normalize, resample
from tablemorph.errors import EmptyInputError
from tablemorph.models import MorphType, Wavetable, WavetableKind, WaveformType
from tablemorph.morph import morph_frame
from tablemorph.synthesis import synthesize_frame, synthesize_waveform
from tablemorph.utils import float_to_pcm16, make_rng, spawn_rngs

logger = logging.getLogger(__name__)

DIRECT_VARIATION_PROBABILITY = 0.3


def assemble(frames) -> np.ndarray:
    """Concatenate equally sized frames into one sample buffer."""
    frames = [np.asarray(frame, dtype=np.float32) for frame in frames]
    if not frames:
        raise ValueError("Cannot assemble a wavetable without frames")
    lengths = {len(frame) for frame in frames}
    if len(lengths) != 1:
        raise ValueError(f"Frames must share one length, got {sorted(lengths)}")
    return np.concatenate(frames)


def encode_frames(frames) -> bytes:
    return formats.encode(float_to_pcm16(assemble(frames)))


def _frame_rngs(seed: int, frame_count: int):
    """One generator for table-level choices plus one per frame."""
    table_rng, *frame_rngs = spawn_rngs(seed, frame_count + 1)
    return table_rng, frame_rngs


def _run_frames(make_frame, frame_rngs, workers: int = 1) -> list:
    """
    Call ``make_frame(index, rng)`` for every frame.

    Each frame owns its generator, so the thread pool gives the same frames as
    the serial loop. The first exception aborts the whole table.
    """
    indices = range(len(frame_rngs))
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(make_frame, indices, frame_rngs))
    return [make_frame(index, rng) for index, rng in zip(indices, frame_rngs)]


def _finish(kind: WavetableKind, frames, seed: int, log: list[str], **tags) -> Wavetable:
    finished = np.stack([finish_frame(frame) for frame in frames])
    finished.setflags(write=False)
    wav = encode_frames(finished)
    log.append(f"Encoded {finished.shape[0]} frame(s) of {finished.shape[1]} samples ({len(wav)} bytes).")
    return Wavetable(kind, finished, wav, seed, log=log, **tags)


def build_wavetable(seed: int, config: GeneratorConfig | None = None, workers: int = 1) -> Wavetable:
    """Generate a multi-frame wavetable from synthesized frames only."""
    config = (config or GeneratorConfig()).validate()
    frame_count, sample_count = config.frame_count, config.sample_count
    log = [f"Multi-frame wavetable, seed {seed}: {frame_count} frames x {sample_count} samples."]

    _, frame_rngs = _frame_rngs(seed, frame_count)
    frames = _run_frames(
        lambda index, rng: synthesize_frame(index, frame_count, sample_count, rng), frame_rngs, workers
    )
    return _finish(WavetableKind.MULTI_FRAME, frames, seed, log)


def build_single_cycle(waveform_type: WaveformType, seed: int, config: GeneratorConfig | None = None) -> Wavetable:
    config = (config or GeneratorConfig()).validate()
    rng = make_rng(seed)
    frame = synthesize_waveform(
        waveform_type, config.sample_count, rng, config.experimental_waveform_probability
    )
    log = [f"Single-cycle {waveform_type.slug} waveform, seed {seed}: {config.sample_count} samples."]
    return _finish(WavetableKind.SINGLE_CYCLE, [frame], seed, log, waveform_type=waveform_type)


def usable_samples(sample_frames) -> list[np.ndarray]:
    return [np.asarray(s, dtype=np.float32) for s in sample_frames if np.asarray(s).size]


def direct_frames(sample: np.ndarray, frame_count: int, sample_count: int, table_rng, frame_rngs,
                  workers: int = 1) -> list:
    """
    Cut consecutive windows out of one sample, one per frame.

    Samples shorter than a frame are stretched to one frame first. Each frame
    gets added noise with a 30% chance.
    """
    if len(sample) < sample_count:
        sample = resample(sample, sample_count, table_rng)
    hop = max(len(sample) // frame_count, sample_count)

    def make_frame(index, rng):
        start = min(index * hop, len(sample) - sample_count)
        frame = sample[start : start + sample_count].astype(np.float64)
        if rng.random() < DIRECT_VARIATION_PROBABILITY:
            variation = rng.uniform(0.1, 0.3)
            frame = frame + rng.uniform(-1.0, 1.0, sample_count) * variation
        return frame

    return _run_frames(make_frame, frame_rngs, workers)


def distributed_frames(sample: np.ndarray, frame_count: int, sample_count: int, table_rng, frame_rngs,
                       workers: int = 1) -> list:
    """Synthesize every frame, then blend sample sections into 5-10 random frames."""
    frames = _run_frames(
        lambda index, rng: synthesize_frame(index, frame_count, sample_count, rng), frame_rngs, workers
    )
    section_length = min(sample_count, len(sample))
    envelope = hann(sample_count, sym=False)

    for _ in range(min(frame_count, int(table_rng.integers(5, 11)))):
        target = int(table_rng.integers(frame_count))
        start = int(table_rng.integers(len(sample) - section_length + 1))
        section = np.resize(normalize(sample[start : start + section_length]), sample_count)
        weight = table_rng.uniform(0.3, 1.0) * envelope
        frames[target] = normalize(frames[target] * (1.0 - weight) + section * weight)
    return frames


def build_morphed(morph_type: MorphType, sample_frames, seed: int, config: GeneratorConfig | None = None,
                  workers: int = 1) -> Wavetable:
    """
    Generate a wavetable whose frames blend synthesis with the given samples.

    With ``full_sample_probability`` one sample drives the whole table, either
    directly (consecutive windows) or distributed over synthesized frames.
    Otherwise every frame morphs a synthesized frame with a randomly chosen
    sample using ``morph_type``.

    Raises EmptyInputError before generating anything when no sample has data.
    """
    config = (config or GeneratorConfig()).validate()
    samples = usable_samples(sample_frames)
    if not samples:
        raise EmptyInputError("No usable sample frames to morph with")

    frame_count, sample_count = config.frame_count, config.sample_count
    log = [
        f"Morphed wavetable ({morph_type.display_name}), seed {seed}: "
        f"{frame_count} frames x {sample_count} samples from {len(samples)} sample(s)."
    ]
    table_rng, frame_rngs = _frame_rngs(seed, frame_count)

    if table_rng.random() < config.full_sample_probability:
        sample = samples[int(table_rng.integers(len(samples)))]
        if table_rng.random() < 0.5:
            log.append(f"Whole-table mode: direct windows over a {len(sample)}-sample source.")
            frames = direct_frames(sample, frame_count, sample_count, table_rng, frame_rngs, workers)
        else:
            log.append("Whole-table mode: sample sections distributed over synthesized frames.")
            frames = distributed_frames(sample, frame_count, sample_count, table_rng, frame_rngs, workers)
        logger.info(log[-1])
    else:
        def make_frame(index, rng):
            base = synthesize_frame(index, frame_count, sample_count, rng)
            sample = samples[int(rng.integers(len(samples)))]
            return morph_frame(morph_type, base, sample, index, frame_count, rng)

        frames = _run_frames(make_frame, frame_rngs, workers)
        log.append(f"Applied {morph_type.display_name} morph to every frame.")

    return _finish(WavetableKind.MORPHED, frames, seed, log, morph_type=morph_type)


def generate_wavetable(seed: int, config: GeneratorConfig | None = None, workers: int = 1) -> bytes:
    return build_wavetable(seed, config, workers).wav


def generate_single_cycle(waveform_type: WaveformType, seed: int, config: GeneratorConfig | None = None) -> bytes:
    return build_single_cycle(waveform_type, seed, config).wav


def generate_morphed(morph_type: MorphType, sample_frames, seed: int, config: GeneratorConfig | None = None,
                     workers: int = 1) -> bytes:
    return build_morphed(morph_type, sample_frames, seed, config, workers).wav
