from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from tablemorph.constants import Constant
from tablemorph.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratorConfig:
    """Snapshot of the generation settings, read once per call."""

    frame_count: int = Constant.DEFAULT_NUM_FRAMES
    sample_count: int = Constant.DEFAULT_FRAME_SIZE
    max_morph_samples: int = Constant.DEFAULT_MAX_MORPH_SAMPLES
    full_sample_probability: float = Constant.DEFAULT_FULL_SAMPLE_PROBABILITY
    experimental_waveform_probability: float = Constant.DEFAULT_EXPERIMENTAL_PROBABILITY

    def validate(self) -> "GeneratorConfig":
        if not Constant.MIN_NUM_FRAMES <= self.frame_count <= Constant.MAX_NUM_FRAMES:
            raise ConfigurationError(
                f"frame_count must be between {Constant.MIN_NUM_FRAMES} and "
                f"{Constant.MAX_NUM_FRAMES}, got {self.frame_count}"
            )
        validate_sample_count(self.sample_count)
        if self.max_morph_samples < 1:
            raise ConfigurationError(
                f"max_morph_samples must be at least 1, got {self.max_morph_samples}"
            )
        for name in ("full_sample_probability", "experimental_waveform_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")
        return self

    def with_overrides(self, **changes) -> "GeneratorConfig":
        return replace(self, **changes).validate()


def validate_sample_count(sample_count: int) -> int:
    """Check that sample_count is a power of two inside the supported range."""
    if not Constant.MIN_FRAME_SIZE <= sample_count <= Constant.MAX_FRAME_SIZE:
        raise ConfigurationError(
            f"sample_count must be between {Constant.MIN_FRAME_SIZE} and "
            f"{Constant.MAX_FRAME_SIZE}, got {sample_count}"
        )
    if sample_count & (sample_count - 1):
        raise ConfigurationError(f"sample_count must be a power of two, got {sample_count}")
    return sample_count


def config_from_cli(cli) -> GeneratorConfig:
    """Build a validated config from parsed command line arguments."""
    config = GeneratorConfig(
        frame_count=cli.frames,
        sample_count=cli.samples,
        max_morph_samples=cli.max_morph_samples,
        full_sample_probability=cli.full_sample_probability,
        experimental_waveform_probability=cli.experimental_probability,
    ).validate()
    logger.debug("Using configuration %s", config)
    return config
