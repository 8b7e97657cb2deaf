import logging
import shutil
import sys
from pathlib import Path

from tablemorph.analyze import analyze_paths
from tablemorph.cli import get_cli
from tablemorph.constants import Constant
from tablemorph.errors import EmptyInputError, TableMorphError
from tablemorph.formats import write_wav
from tablemorph.models import MorphType, WaveformType
from tablemorph.sources import find_sound_files, load_sample_pool
from tablemorph.utils import SEED_MASK, batch_seeds, make_filename, make_rng
from tablemorph.wavetable import build_morphed, build_single_cycle, build_wavetable

logger = logging.getLogger(__name__)

# Offset between a failed seed and its replacement
RETRY_SEED_STRIDE = 1_000_003

OUTPUT_DIRS = {
    "wavetable": Constant.DEFAULT_OUTPUT_DIR,
    "single-cycle": Constant.SINGLECYCLE_OUTPUT_DIR,
    "experimental": Constant.SINGLECYCLE_OUTPUT_DIR,
    "morph": Constant.MORPH_OUTPUT_DIR,
}


def generate_with_retries(make_table, seed: int, retries: int):
    """
    Call ``make_table(seed)``, moving to a fresh seed after a numeric failure.

    Configuration and input errors are not retried.
    """
    for attempt in range(retries + 1):
        try:
            return make_table(seed)
        except TableMorphError:
            raise
        except (ArithmeticError, ValueError) as e:
            if attempt == retries:
                raise
            next_seed = (seed + RETRY_SEED_STRIDE) & SEED_MASK
            logger.debug("Seed %d failed", seed, exc_info=True)
            print(f"Warning: generation with seed {seed} failed ({e}); retrying with seed {next_seed}")
            seed = next_seed


def make_generator(cli, sample_pool, chooser):
    """Return a ``seed -> Wavetable`` callable for the selected mode."""
    config = cli.config

    if cli.mode == "wavetable":
        return lambda seed: build_wavetable(seed, config, cli.workers)

    if cli.mode == "morph":
        def make_morphed(seed):
            morph_type = cli.morph_type or MorphType.from_id(int(chooser.integers(1, len(MorphType) + 1)))
            return build_morphed(morph_type, sample_pool, seed, config, cli.workers)
        return make_morphed

    def make_single_cycle(seed):
        waveform_type = cli.waveform_type
        if waveform_type is None:
            choices = WaveformType.classic()
            waveform_type = choices[int(chooser.integers(len(choices)))]
        return build_single_cycle(waveform_type, seed, config)
    return make_single_cycle


def save_wavetable(table, outdir: Path, mirror_dir: Path | None, name_seed: int | None = None) -> Path:
    """
    Write a table and its optional mirror copy.

    The file name uses ``name_seed`` (the seed of the batch slot) when given,
    otherwise the seed the table was generated with.
    """
    name_seed = table.seed if name_seed is None else name_seed
    outfile = write_wav(outdir / make_filename(table.label, name_seed), table.wav)
    if mirror_dir is not None:
        shutil.copy2(outfile, mirror_dir / outfile.name)
    return outfile


def main(argv=None) -> None:
    cli = get_cli(argv)
    if not cli.debug:
        sys.tracebacklimit = 0
    logging.basicConfig(
        level=logging.DEBUG if cli.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if cli.analyze:
        analyze_paths([Path(p) for p in cli.analyze], cli.analyze_frames)
        return

    outdir = Path(cli.outdir or OUTPUT_DIRS[cli.mode])
    outdir.mkdir(parents=True, exist_ok=True)
    mirror_dir = None
    if cli.mirror_dir:
        mirror_dir = Path(cli.mirror_dir)
        mirror_dir.mkdir(parents=True, exist_ok=True)

    seeds = batch_seeds(cli.count, cli.seed)
    print(f"Generating {cli.count} file(s) in '{outdir}' ({cli.mode}, first seed {seeds[0]})")
    chooser = make_rng(seeds[0])

    sample_pool = None
    if cli.mode == "morph":
        sound_files = find_sound_files(cli.samples_dir)
        print(f"Found {len(sound_files)} sound file(s) in '{cli.samples_dir}'")
        sample_pool = load_sample_pool(sound_files, chooser, cli.config)
        if not sample_pool:
            raise EmptyInputError(f"No usable sound files found in '{cli.samples_dir}'")

    make_table = make_generator(cli, sample_pool, chooser)
    processing_log = []
    for n, seed in enumerate(seeds, 1):
        table = generate_with_retries(make_table, seed, cli.retries)
        outfile = save_wavetable(table, outdir, mirror_dir, name_seed=seed)
        print(f"[{n}/{cli.count}] Saved '{outfile}' ({table.frame_count} x {table.sample_count})")
        if table.seed != seed:
            processing_log.append(f"Batch slot {n} (seed {seed}) was generated with retry seed {table.seed}.")
        processing_log.extend(table.log)

    if mirror_dir is not None:
        print(f"Copied {cli.count} file(s) to '{mirror_dir}'")

    if processing_log:
        print("\n--- Generation Log ---")
        for entry in processing_log:
            print(f"- {entry}")


if __name__ == "__main__":
    main()
