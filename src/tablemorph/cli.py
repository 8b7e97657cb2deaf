import argparse

from tablemorph.config import config_from_cli
from tablemorph.constants import Constant
from tablemorph.errors import ConfigurationError
from tablemorph.models import MorphType, WaveformType

MODES = ("wavetable", "single-cycle", "morph", "experimental")


def get_cli(argv=None):
    parser = argparse.ArgumentParser(
        description="tablemorph: procedural wavetable synthesis and sample morphing",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--mode",
        "-m",
        choices=MODES,
        default="wavetable",
        help="What to generate: multi-frame wavetables, single-cycle waveforms, "
             "sample-morphed wavetables or experimental single cycles",
    )
    parser.add_argument(
        "--count", "-n", type=int, default=1, help="Number of files to generate"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed of the first file; following files use seed+1, seed+2, ... "
             "Without a seed the current time in milliseconds is used",
    )
    parser.add_argument(
        "--type",
        "-t",
        dest="waveform_type",
        help="Single-cycle waveform type (name or id: "
             + ", ".join(w.slug for w in WaveformType) + "). Random if omitted",
    )
    parser.add_argument(
        "--morph",
        dest="morph_type",
        help="Morph type (name or id: " + ", ".join(m.slug for m in MorphType) + "). Random if omitted",
    )

    # Generation options
    gen_group = parser.add_argument_group("Generation Options")
    gen_group.add_argument(
        "--frames",
        type=int,
        default=Constant.DEFAULT_NUM_FRAMES,
        help=f"Frames per wavetable ({Constant.MIN_NUM_FRAMES}-{Constant.MAX_NUM_FRAMES})",
    )
    gen_group.add_argument(
        "--samples",
        type=int,
        default=Constant.DEFAULT_FRAME_SIZE,
        help=f"Samples per frame, a power of two ({Constant.MIN_FRAME_SIZE}-{Constant.MAX_FRAME_SIZE})",
    )
    gen_group.add_argument(
        "--experimental-probability",
        type=float,
        default=Constant.DEFAULT_EXPERIMENTAL_PROBABILITY,
        help="Chance of replacing a single-cycle waveform with an experimental one",
    )
    gen_group.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to generate the frames of one wavetable",
    )

    # Morph options
    morph_group = parser.add_argument_group("Morph Options")
    morph_group.add_argument(
        "--samples-dir",
        default="samples",
        help="Directory searched (recursively) for audio files to morph with",
    )
    morph_group.add_argument(
        "--max-morph-samples",
        type=int,
        default=Constant.DEFAULT_MAX_MORPH_SAMPLES,
        help="Maximum number of audio files loaded per batch",
    )
    morph_group.add_argument(
        "--full-sample-probability",
        type=float,
        default=Constant.DEFAULT_FULL_SAMPLE_PROBABILITY,
        help="Chance of using a whole sample instead of a section",
    )

    # Output options
    out_group = parser.add_argument_group("Output Options")
    out_group.add_argument(
        "--outdir",
        "-o",
        help="Output directory (default: 'wavetables', 'singlecycles' or 'morphs' depending on --mode)",
    )
    out_group.add_argument(
        "--mirror-dir",
        help="Also copy every generated file into this directory (e.g. a synth's user wavetable folder)",
    )
    out_group.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Retry a failed wavetable this many times with a fresh seed",
    )

    # Analysis
    parser.add_argument(
        "--analyze",
        nargs="+",
        metavar="WAV",
        help="Analyze existing wavetable files instead of generating",
    )
    parser.add_argument(
        "--analyze-frames",
        type=int,
        default=Constant.DEFAULT_NUM_FRAMES,
        help="Expected frame count used by --analyze",
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output and full tracebacks"
    )

    args = parser.parse_args(argv)

    if args.count < 1:
        parser.error("--count must be at least 1")
    if args.workers < 1:
        parser.error("--workers must be at least 1")
    if args.retries < 0:
        parser.error("--retries cannot be negative")

    try:
        if args.waveform_type is not None:
            args.waveform_type = WaveformType.from_name(args.waveform_type)
        if args.morph_type is not None:
            args.morph_type = MorphType.from_name(args.morph_type)
    except ValueError as e:
        parser.error(str(e))

    if args.mode == "experimental":
        if args.waveform_type not in (None, WaveformType.EXPERIMENTAL):
            parser.error("--type cannot be combined with --mode experimental")
        args.waveform_type = WaveformType.EXPERIMENTAL

    try:
        args.config = config_from_cli(args)
    except ConfigurationError as e:
        parser.error(str(e))

    return args
