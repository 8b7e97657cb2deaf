import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from tablemorph import formats
from tablemorph.config import GeneratorConfig
from tablemorph.constants import Constant
from tablemorph.dsp import resample
from tablemorph.errors import FormatError
from tablemorph.utils import to_mono

logger = logging.getLogger(__name__)

MIN_SECTION_FRAMES = 4
MAX_SECTION_FRAMES = 20


def find_sound_files(directory) -> list[Path]:
    """Recursively list audio files below ``directory``, sorted by path."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning("Sample directory '%s' does not exist", directory)
        return []
    return sorted(
        path for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() in Constant.SOUND_FILE_EXTENSIONS
    )


def load_sample(path) -> np.ndarray:
    """
    Load an audio file as a mono float32 sample.

    WAV files go through the built-in codec; other formats are read with
    soundfile. Multi-channel audio keeps channel 0.
    """
    path = Path(path)
    if path.suffix.lower() == ".wav":
        return formats.read_wav(path)
    audio_data, _ = sf.read(path, dtype="float32", always_2d=True)
    return to_mono(audio_data)


def extract_section(sample: np.ndarray, sample_count: int, full_sample_probability: float,
                    rng: np.random.Generator) -> np.ndarray:
    """
    Reduce a decoded sample before morphing.

    With ``full_sample_probability`` the whole sample is squeezed into one frame.
    Samples of up to two frames are kept whole; longer ones give a random
    section of 4-20 frames.
    """
    if rng.random() < full_sample_probability:
        return resample(sample, sample_count, rng)
    if len(sample) <= 2 * sample_count:
        return sample
    section_length = min(len(sample), sample_count * int(rng.integers(MIN_SECTION_FRAMES, MAX_SECTION_FRAMES + 1)))
    start = int(rng.integers(len(sample) - section_length + 1))
    return sample[start : start + section_length]


def load_sample_pool(paths, rng: np.random.Generator, config: GeneratorConfig | None = None) -> list[np.ndarray]:
    """
    Shuffle candidate files, load up to ``max_morph_samples`` of them and extract sections.

    Files that cannot be decoded are skipped with a warning.
    """
    config = config or GeneratorConfig()
    paths = list(paths)
    rng.shuffle(paths)

    pool = []
    for path in paths[: config.max_morph_samples]:
        try:
            sample = load_sample(path)
        except (FormatError, OSError, sf.LibsndfileError) as e:
            logger.warning("Skipping '%s': %s", path, e)
            continue
        if sample.size == 0:
            logger.warning("Skipping '%s': no audio data", path)
            continue
        pool.append(extract_section(sample, config.sample_count, config.full_sample_probability, rng))
        logger.debug("Loaded '%s' (%d samples)", path, len(sample))

    logger.info("Loaded %d of %d sample file(s)", len(pool), min(len(paths), config.max_morph_samples))
    return pool
