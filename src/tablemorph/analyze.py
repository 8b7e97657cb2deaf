import logging
from collections import namedtuple
from pathlib import Path

import soundfile as sf

from tablemorph.constants import Constant
from tablemorph.formats import read_wav
from tablemorph.utils import get_md5

logger = logging.getLogger(__name__)

WavetableReport = namedtuple(
    "WavetableReport",
    ["filename", "samplerate", "channels", "frames", "duration", "num_frames", "frame_size", "divisible", "md5"],
)


def analyze_wavetable(path, num_frames: int = Constant.DEFAULT_NUM_FRAMES) -> WavetableReport:
    """
    Inspect a wavetable file on disk.

    ``frame_size`` is the total sample count divided by ``num_frames``;
    ``divisible`` tells whether that split comes out even. ``md5`` hashes the
    decoded float32 audio.
    """
    path = Path(path)
    info = sf.info(path)
    frame_size = info.frames / num_frames
    return WavetableReport(
        filename=path.name,
        samplerate=info.samplerate,
        channels=info.channels,
        frames=info.frames,
        duration=info.duration,
        num_frames=num_frames,
        frame_size=frame_size,
        divisible=frame_size.is_integer(),
        md5=get_md5(read_wav(path)),
    )


def format_report(report: WavetableReport) -> list[str]:
    lines = [
        f"File Name: {report.filename}",
        f"Sample Rate: {report.samplerate} Hz",
        f"Channels: {report.channels}",
        f"Total Samples (all channels): {report.frames}",
        f"Duration: {report.duration:.2f} seconds",
        f"Calculated frame size based on {report.num_frames} frames: {report.frame_size:.2f} samples",
        f"MD5: {report.md5}",
    ]
    if report.divisible:
        lines.append(
            f"[OK] File can be perfectly divided into {report.num_frames} frames "
            f"of {int(report.frame_size)} samples each."
        )
    else:
        lines.append(
            f"[X] File with {report.frames} samples cannot be evenly divided into {report.num_frames} frames."
        )
    return lines


def analyze_paths(paths, num_frames: int = Constant.DEFAULT_NUM_FRAMES) -> list[WavetableReport]:
    """Print a report for every file; files that fail to open are reported and skipped."""
    paths = list(paths)
    reports = []
    for i, path in enumerate(paths):
        print(f"\n--- Analyzing file [{i + 1}/{len(paths)}]: '{path}' ---")
        try:
            report = analyze_wavetable(path, num_frames)
        except Exception as e:
            logger.debug("Analysis of '%s' failed", path, exc_info=True)
            print(f"An error occurred while analyzing file '{path}': {e}")
            continue
        for line in format_report(report):
            print(line)
        reports.append(report)
    print("-" * 50)
    return reports
