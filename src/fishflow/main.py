#!/usr/bin/env python3
"""
FishFlow Command Line
=====================

Compute velocity and density fields from videos of fish schools.

Usage:
    fishflow -i school.avi -o                      # school.npz
    fishflow -c school.yaml --video velocity_original=overlay
    fishflow -i school.avi --info
    fishflow -i school.avi --live -b background.png

At least one output must be requested: an array store (-o), a video
(--video), a live window (--live) or a computed background
(output.background.file).
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from fishflow import __version__
from fishflow.calc import FlowEngine
from fishflow.config import (
    Settings,
    config_files,
    load_config,
    resolve_crop,
    resolve_frame_range,
    setup_logging,
)
from fishflow.errors import DimensionMismatchError, InvalidConfigurationError, VideoOpenError
from fishflow.models.grid import CropRect
from fishflow.observability import PLOT_KINDS, ArrowStyle, LiveDisplay, VideoRenderer
from fishflow.output import ArrayStore, output_path
from fishflow.stream import (
    VideoFrameSource,
    compute_background,
    default_background,
    load_background,
    open_video,
    probe_video,
    save_background,
)


logger = logging.getLogger(__name__)


VERBOSITY_LEVELS = {
    "quiet": "ERROR",
    "low": "WARNING",
    "normal": "INFO",
    "high": "INFO",
    "debug": "DEBUG",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fishflow",
        description="Compute velocity from videos of fish schools using optical flow",
    )
    parser.add_argument("-v", "--version", action="version", version=f"fishflow {__version__}")
    parser.add_argument(
        "-c", "--config",
        action="append",
        default=None,
        help="YAML config file (repeatable, later files win)",
    )
    parser.add_argument("-i", "--input", help="path of the input video")
    parser.add_argument("-b", "--background", help="path of the background image")
    parser.add_argument(
        "-o", "--output",
        nargs="?",
        const="",
        default=None,
        help="path of the output .npz store (derived from the input if empty)",
    )
    parser.add_argument(
        "--video",
        action="append",
        default=[],
        metavar="KIND=PATH",
        help=f"write a video; KIND is one of: {', '.join(PLOT_KINDS)}",
    )
    parser.add_argument("-l", "--live", action="store_true", help="display live window")
    parser.add_argument("-p", "--info", action="store_true", help="print information about the input file")
    parser.add_argument(
        "--verbosity",
        choices=sorted(VERBOSITY_LEVELS),
        default=None,
        help="logging verbosity",
    )
    return parser


def build_overrides(args: argparse.Namespace) -> dict:
    """Turn parsed arguments into a nested config override dict."""
    overrides: dict = {}
    if args.input:
        overrides.setdefault("input", {})["file"] = args.input
    if args.background:
        overrides.setdefault("input", {})["background"] = args.background
    if args.output is not None:
        overrides.setdefault("output", {})["file"] = args.output
    if args.live:
        overrides.setdefault("output", {})["live"] = True
    for value in args.video:
        kind, sep, path = value.partition("=")
        kind = kind.replace("+", "_")
        if not sep or kind not in PLOT_KINDS or not path:
            raise InvalidConfigurationError(f"Invalid --video value: {value!r}")
        overrides.setdefault("output", {}).setdefault("video", {})[kind] = path
    if args.verbosity:
        overrides.setdefault("logging", {})["level"] = VERBOSITY_LEVELS[args.verbosity]
    return overrides


def has_outputs(settings: Settings) -> bool:
    videos = settings.output.video.model_dump()
    return (
        settings.output.file is not None
        or settings.output.live
        or any(videos.values())
    )


def run(settings: Settings, info_only: bool = False) -> int:
    """
    Process a video according to settings.

    Returns:
        Process exit code
    """
    if not settings.input.file:
        raise InvalidConfigurationError("Input file was not specified.")

    capture = open_video(settings.input.file)
    info = probe_video(capture)

    if info_only:
        print(f"{settings.input.file}: {info}")
        capture.release()
        return 0

    crop = resolve_crop(settings.crop, info.width, info.height)
    frame_range = resolve_frame_range(settings.frame, info.frame_count)
    logger.info(
        f"Crop {crop.width}x{crop.height}+{crop.xmin}+{crop.ymin}, "
        f"frames {frame_range.start}..{frame_range.stop} by {frame_range.step}"
    )

    if settings.output.background.file:
        rect = crop if settings.output.background.cropped else CropRect(0, 0, info.width, info.height)
        save_background(settings.output.background.file, compute_background(capture, rect))

    if not has_outputs(settings):
        if settings.output.background.file:
            capture.release()
            return 0
        raise InvalidConfigurationError("No output was specified.")

    if settings.input.background:
        background = load_background(settings.input.background, crop, (info.width, info.height))
    else:
        background = default_background(crop)

    engine = FlowEngine.from_settings(settings, background)
    source = VideoFrameSource(capture, crop, frame_range)

    style = ArrowStyle(
        thickness=settings.plot.arrow_thickness,
        head_size=settings.plot.arrow_head_size,
        overlap=settings.plot.arrow_overlap,
    )

    store = None
    if settings.output.file is not None:
        store = ArrayStore(
            output_path(settings.output.file, settings.input.file),
            engine.grid,
            count=len(source),
        )

    renderers = [
        VideoRenderer(path, PLOT_KINDS[kind], (crop.width, crop.height), style)
        for kind, path in settings.output.video.model_dump().items()
        if path
    ]
    live = LiveDisplay(style=style) if settings.output.live else None

    total = len(source)
    every = settings.logging.progress_every
    start_time = time.time()
    processed = 0

    try:
        for pair in source:
            bundle = engine.process(pair)
            if store is not None:
                store.write(bundle, pair.index)
            for renderer in renderers:
                renderer.write(bundle)
            processed += 1

            if live is not None and not live.write(bundle):
                logger.info("Live display closed, stopping")
                break

            if processed % every == 0 or processed == total:
                elapsed = time.time() - start_time
                logger.info(
                    f"Progress: {processed}/{total} ({processed * 100 // max(total, 1)}%), "
                    f"{processed / elapsed if elapsed > 0 else 0:.1f} frames/s"
                )
    except KeyboardInterrupt:
        logger.warning(f"Interrupted after {processed} frames")
    finally:
        if store is not None:
            store.close()
        for renderer in renderers:
            renderer.close()
        if live is not None:
            live.close()
        source.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_config(args.config, build_overrides(args))
        setup_logging(settings)
        for path in config_files(args.config):
            logger.info(f"Loaded config from: {path}")
        return run(settings, info_only=args.info)
    except (InvalidConfigurationError, DimensionMismatchError, VideoOpenError, OSError) as e:
        logger.error(f"Fatal: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
