import numpy as np
import pytest

from tablemorph import formats
from tablemorph.config import GeneratorConfig
from tablemorph.dsp import finish_frame
from tablemorph.errors import ConfigurationError, EmptyInputError
from tablemorph.models import MorphType, WavetableKind, WaveformType
from tablemorph.synthesis import synthesize_frame
from tablemorph.utils import float_to_pcm16, spawn_rngs
from tablemorph.wavetable import (
    assemble,
    build_morphed,
    build_single_cycle,
    build_wavetable,
    direct_frames,
    distributed_frames,
    generate_morphed,
    generate_single_cycle,
    generate_wavetable,
)

SMALL = GeneratorConfig(frame_count=4, sample_count=256)


def _samples(seed: int = 0, count: int = 3, length: int = 3000) -> list[np.ndarray]:
    rng = np.random.default_rng(seed)
    t = np.arange(length) / 44100.0
    return [
        (np.sin(2.0 * np.pi * rng.uniform(80.0, 800.0) * t) * rng.uniform(0.2, 1.0)).astype(np.float32)
        for _ in range(count)
    ]


def test_default_wavetable_has_expected_size() -> None:
    wav = generate_wavetable(42, GeneratorConfig(frame_count=64, sample_count=2048))

    assert len(wav) == 262188
    assert wav[0:4] == b"RIFF"
    assert wav[8:12] == b"WAVE"


def test_generation_is_deterministic() -> None:
    assert generate_wavetable(1234, SMALL) == generate_wavetable(1234, SMALL)
    assert generate_wavetable(1234, SMALL) != generate_wavetable(1235, SMALL)


def test_workers_give_identical_output() -> None:
    config = GeneratorConfig(frame_count=8, sample_count=256)
    assert generate_wavetable(5, config, workers=4) == generate_wavetable(5, config)


def test_wavetable_frames_are_continuous_and_normalized() -> None:
    table = build_wavetable(77, GeneratorConfig(frame_count=16, sample_count=512))

    assert table.kind is WavetableKind.MULTI_FRAME
    assert table.frames.shape == (16, 512)
    assert np.allclose(table.frames[:, 0], table.frames[:, -1], atol=1e-5)
    peaks = np.abs(table.frames).max(axis=1)
    assert np.all(peaks <= 1.0 + 1e-5)
    assert np.all(peaks >= 1.0 - 1e-4)
    assert not table.frames.flags.writeable


def test_encoded_frames_match_decoded_bytes() -> None:
    table = build_wavetable(3, SMALL)
    _, pcm = formats.decode_pcm(table.wav)

    assert len(table.wav) == 44 + table.pcm_size
    assert np.array_equal(pcm, float_to_pcm16(table.frames.reshape(-1)))


def test_sine_single_cycle_is_reproducible() -> None:
    config = GeneratorConfig(sample_count=256)
    a = generate_single_cycle(WaveformType.SINE, 7, config)
    b = generate_single_cycle(WaveformType.SINE, 7, config)

    assert a == b
    assert len(a) == 44 + 256 * 2


@pytest.mark.parametrize("waveform_type", list(WaveformType))
def test_single_cycle_types(waveform_type: WaveformType) -> None:
    table = build_single_cycle(waveform_type, 11, SMALL)

    assert table.frames.shape == (1, 256)
    assert table.is_single_cycle
    assert table.label == f"singlecycle_{waveform_type.slug}"
    assert abs(float(table.frames[0, 0]) - float(table.frames[0, -1])) < 1e-5


def test_morph_with_empty_list_raises_before_generation() -> None:
    with pytest.raises(EmptyInputError):
        generate_morphed(MorphType.BLEND, [], 1, SMALL)
    with pytest.raises(EmptyInputError):
        generate_morphed(MorphType.FOLD, [np.array([], dtype=np.float32)], 1, SMALL)


@pytest.mark.parametrize("morph_type", list(MorphType))
def test_morphed_wavetable(morph_type: MorphType) -> None:
    config = SMALL.with_overrides(full_sample_probability=0.0)
    table = build_morphed(morph_type, _samples(), 2024, config)

    assert table.is_morphed
    assert table.morph_type is morph_type
    assert table.frames.shape == (4, 256)
    assert len(table.wav) == 44 + 4 * 256 * 2
    assert np.allclose(table.frames[:, 0], table.frames[:, -1], atol=1e-5)
    assert table.wav == generate_morphed(morph_type, _samples(), 2024, config)


@pytest.mark.parametrize("length", [100, 256, 20000])
def test_whole_sample_modes(length: int) -> None:
    config = GeneratorConfig(frame_count=8, sample_count=256, full_sample_probability=1.0)
    modes = set()
    for seed in range(8):
        table = build_morphed(MorphType.BLEND, _samples(seed, 1, length), seed, config)
        assert table.frames.shape == (8, 256)
        assert np.all(np.isfinite(table.frames))
        modes.add(table.log[1].split(":")[1].split()[0])
    assert modes <= {"direct", "sample"}


def test_direct_frames_are_consecutive_windows() -> None:
    sample = np.random.default_rng(0).uniform(-1.0, 1.0, 20000).astype(np.float32)
    noisy = [rng.random() < 0.3 for rng in spawn_rngs(5, 8)]
    hop = 20000 // 8

    frames = direct_frames(sample, 8, 256, np.random.default_rng(0), spawn_rngs(5, 8))

    for index, frame in enumerate(frames):
        window = sample[index * hop : index * hop + 256]
        if noisy[index]:
            assert not np.array_equal(frame, window)
            assert np.abs(frame - window).max() <= 0.3
        else:
            assert np.array_equal(frame, window)


def test_direct_frames_stretch_short_samples() -> None:
    sample = np.linspace(-1.0, 1.0, 100, dtype=np.float32)
    frames = direct_frames(sample, 4, 256, np.random.default_rng(2), spawn_rngs(6, 4))
    assert all(frame.shape == (256,) for frame in frames)


def test_distributed_frames_blend_between_one_and_ten_frames() -> None:
    sample = np.random.default_rng(1).uniform(-1.0, 1.0, 5000).astype(np.float32)
    synthesized = [synthesize_frame(i, 16, 256, rng) for i, rng in enumerate(spawn_rngs(3, 16))]

    frames = distributed_frames(sample, 16, 256, np.random.default_rng(4), spawn_rngs(3, 16))

    changed = sum(not np.array_equal(a, b) for a, b in zip(frames, synthesized))
    assert 1 <= changed <= 10


def test_morphed_direct_mode_uses_sample_windows() -> None:
    config = GeneratorConfig(frame_count=8, sample_count=256, full_sample_probability=1.0)
    sample = _samples(0, 1, 20000)[0]
    hop = 20000 // 8
    direct_seeds = 0

    for seed in range(20):
        table = build_morphed(MorphType.BLEND, [sample], seed, config)
        if "direct" not in table.log[1]:
            continue
        direct_seeds += 1
        noisy = [rng.random() < 0.3 for rng in spawn_rngs(seed, 9)[1:]]
        for index in range(8):
            if not noisy[index]:
                expected = finish_frame(sample[index * hop : index * hop + 256])
                assert np.allclose(table.frames[index], expected, atol=1e-6)

    assert direct_seeds > 0


def test_morphed_distributed_mode_changes_a_few_synthesized_frames() -> None:
    config = GeneratorConfig(frame_count=16, sample_count=256, full_sample_probability=1.0)
    sample = _samples(1, 1, 5000)[0]
    distributed_seeds = 0

    for seed in range(20):
        table = build_morphed(MorphType.BLEND, [sample], seed, config)
        if "distributed" not in table.log[1]:
            continue
        distributed_seeds += 1
        plain = build_wavetable(seed, config)
        changed = sum(not np.allclose(a, b) for a, b in zip(table.frames, plain.frames))
        assert 1 <= changed <= 10

    assert distributed_seeds > 0


def test_morph_workers_give_identical_output() -> None:
    config = GeneratorConfig(frame_count=8, sample_count=256)
    serial = generate_morphed(MorphType.HARMONIC, _samples(), 9, config)
    assert generate_morphed(MorphType.HARMONIC, _samples(), 9, config, workers=3) == serial


@pytest.mark.parametrize(
    "changes",
    [
        {"frame_count": 3},
        {"frame_count": 257},
        {"sample_count": 128},
        {"sample_count": 1000},
        {"sample_count": 16384},
    ],
)
def test_out_of_range_config_is_rejected(changes: dict) -> None:
    config = GeneratorConfig(**changes)
    with pytest.raises(ConfigurationError):
        generate_wavetable(1, config)


def test_assemble_concatenates_and_checks_lengths() -> None:
    out = assemble([np.zeros(4), np.ones(4)])
    assert out.dtype == np.float32
    assert np.array_equal(out, [0, 0, 0, 0, 1, 1, 1, 1])

    with pytest.raises(ValueError):
        assemble([np.zeros(4), np.zeros(5)])
    with pytest.raises(ValueError):
        assemble([])
