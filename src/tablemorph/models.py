from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class MorphType(Enum):
    BLEND = (1, "Simple Blending", "Non-linear blending of waveforms with dynamic intensity and phase modulation")
    ADDITIVE = (2, "Additive", "Combines harmonic content with selective scaling and phase manipulation")
    HARMONIC = (3, "Harmonic", "Uses sample data to modulate harmonic structure with frequency-dependent processing")
    FOLD = (4, "Wave Folding", "Applies adaptive waveshaping with multiple folding thresholds and saturation")
    SPECTRAL = (5, "Spectral", "Multi-band spectral processing with independent frequency transformations")

    def __init__(self, type_id: int, display_name: str, description: str):
        self.type_id = type_id
        self.display_name = display_name
        self.description = description

    @property
    def slug(self) -> str:
        return self.name.lower()

    @classmethod
    def from_id(cls, type_id: int) -> "MorphType":
        for member in cls:
            if member.type_id == type_id:
                return member
        raise ValueError(f"Unknown morph type id: {type_id}")

    @classmethod
    def from_name(cls, name: str) -> "MorphType":
        """Look up a morph type by enum name or id, e.g. 'fold' or '4'."""
        if name.isdigit():
            return cls.from_id(int(name))
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown morph type: {name}") from None


class WaveformType(Enum):
    SINE = (0, "sine")
    TRIANGLE = (1, "triangle")
    SAW = (2, "saw")
    SQUARE = (3, "square")
    NOISE = (4, "noise")
    FM = (5, "fm")
    ADDITIVE = (6, "additive")
    FORMANT = (7, "formant")
    CUSTOM = (8, "custom")
    EXPERIMENTAL = (9, "experimental")

    def __init__(self, type_id: int, slug: str):
        self.type_id = type_id
        self.slug = slug

    @classmethod
    def from_id(cls, type_id: int) -> "WaveformType":
        for member in cls:
            if member.type_id == type_id:
                return member
        raise ValueError(f"Unknown waveform type id: {type_id}")

    @classmethod
    def from_name(cls, name: str) -> "WaveformType":
        if name.isdigit():
            return cls.from_id(int(name))
        for member in cls:
            if member.slug == name.strip().lower():
                return member
        raise ValueError(f"Unknown waveform type: {name}")

    @classmethod
    def classic(cls) -> tuple["WaveformType", ...]:
        """Types offered for random single-cycle batches (everything below CUSTOM)."""
        return tuple(member for member in cls if member.type_id < cls.CUSTOM.type_id)


class WavetableKind(Enum):
    SINGLE_CYCLE = "single-cycle"
    MULTI_FRAME = "multi-frame"
    MORPHED = "morphed"


@dataclass(frozen=True)
class Wavetable:
    """
    An encoded wavetable.

    ``frames`` has shape (frame_count, sample_count) and is read-only; ``wav``
    holds the complete RIFF/WAVE byte stream. ``waveform_type`` is set for
    single-cycle tables and ``morph_type`` for morphed ones.
    """

    kind: WavetableKind
    frames: np.ndarray
    wav: bytes
    seed: int
    waveform_type: WaveformType | None = None
    morph_type: MorphType | None = None
    log: list[str] = field(default_factory=list, compare=False)

    @property
    def frame_count(self) -> int:
        return self.frames.shape[0]

    @property
    def sample_count(self) -> int:
        return self.frames.shape[1]

    @property
    def pcm_size(self) -> int:
        return self.frame_count * self.sample_count * 2

    @property
    def is_single_cycle(self) -> bool:
        return self.kind is WavetableKind.SINGLE_CYCLE

    @property
    def is_morphed(self) -> bool:
        return self.kind is WavetableKind.MORPHED

    @property
    def label(self) -> str:
        if self.kind is WavetableKind.SINGLE_CYCLE:
            return f"singlecycle_{self.waveform_type.slug}"
        if self.kind is WavetableKind.MORPHED:
            return f"morph_{self.morph_type.slug}"
        return "tablemorph"
