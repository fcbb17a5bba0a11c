"""
Offline dashboard renderer.

Runs an audio file through the per-frame analysis loop exactly as a live
capture would be processed, renders the dashboard for every tick and
muxes the result with the original audio. Can also write the per-tick
feature manifest as JSON.
"""

import argparse
import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Callable, Optional

from moodscope.config import AnalysisConfig
from moodscope.errors import RoutineRejectedError
from moodscope.core.loop import AnalysisLoop
from moodscope.io.exporter import BundleExporter
from moodscope.io.source import AudioFileFrameSource
from moodscope.visualizers.panels import Dashboard, DashboardConfig
from moodscope.visualizers.routine import RoutineHost

logger = logging.getLogger(__name__)


def _progress_printer(progress_callback: Optional[Callable[[int, str], None]]):
    def report_progress(pct: int, msg: str):
        """
        Report progress to stdout and to the optional callback.

        Interactive terminals get an in-place progress bar.
        """
        bar_width = 30
        pct_clamped = max(0, min(100, int(pct)))
        filled = int(bar_width * (pct_clamped / 100.0))
        bar = "[" + "#" * filled + "-" * (bar_width - filled) + "]"

        if sys.stdout.isatty():
            sys.stdout.write(f"\r{bar} {pct_clamped:3d}%  {msg:60.60}")
            sys.stdout.flush()
            if pct_clamped >= 100:
                sys.stdout.write("\n")
        else:
            print(f"{pct_clamped:3d}% {msg}", flush=True)

        if progress_callback:
            progress_callback(pct_clamped, msg)

    return report_progress


def analyze_file(
    audio_path: Path,
    fps: int = 60,
    config: Optional[AnalysisConfig] = None,
    max_duration: Optional[float] = None,
) -> BundleExporter:
    """Analyze *audio_path* tick by tick and return the recorded bundles."""
    source = AudioFileFrameSource(audio_path, fps=fps, max_duration=max_duration)
    exporter = BundleExporter(fps=fps)
    loop = AnalysisLoop(
        source.frame_length,
        config=config,
        clock=lambda: source.position_ms,
        renderers=[exporter],
    )
    loop.start()
    try:
        loop.run(source)
    finally:
        loop.stop()
    return exporter


def render_video(
    audio_path: Path,
    output_path: Path,
    width: int = 1280,
    height: int = 720,
    fps: int = 60,
    max_duration: Optional[float] = None,
    config: Optional[AnalysisConfig] = None,
    routine_host: Optional[RoutineHost] = None,
    manifest_path: Optional[Path] = None,
    progress_callback: Optional[Callable[[int, str], None]] = None,
):
    """
    Render the analysis dashboard for an audio file.

    Renders frames to a temp directory then combines them with ffmpeg.

    Args:
        audio_path: Path to input audio file.
        output_path: Path for output MP4 file.
        width: Video width in pixels.
        height: Video height in pixels.
        fps: Frames (ticks) per second.
        max_duration: Maximum duration in seconds (None for full audio).
        config: Analysis tuning.
        routine_host: Optional host supplying generated routines.
        manifest_path: Also write the per-tick JSON manifest here.
        progress_callback: Optional callback(progress: int, message: str).
    """
    report_progress = _progress_printer(progress_callback)
    report_progress(0, f"Processing audio: {audio_path}")

    source = AudioFileFrameSource(audio_path, fps=fps, max_duration=max_duration)
    total_frames = len(source)
    report_progress(5, f"Decoded {source.duration:.2f}s, {source.frame_length} bins per frame")

    dashboard = Dashboard(DashboardConfig(width=width, height=height), routine_host)
    exporter = BundleExporter(fps=fps)
    loop = AnalysisLoop(
        source.frame_length,
        config=config,
        clock=lambda: source.position_ms,
        renderers=[dashboard, exporter],
    )

    temp_dir = tempfile.mkdtemp(prefix="moodscope_")
    report_progress(8, f"Rendering {total_frames} frames...")

    try:
        loop.start()
        i = 0
        while not source.exhausted:
            bundle = loop.tick(source.read())
            image = dashboard.image
            if image is None:
                logger.warning("dashboard failed on tick %d; writing a blank frame",
                               bundle.tick)
                image = dashboard.blank()
            frame_path = os.path.join(temp_dir, f"frame_{i:06d}.png")
            image.save(frame_path, "PNG", compress_level=1)
            i += 1
            if i % 100 == 0 or i == total_frames:
                pct = 8 + int(i / max(total_frames, 1) * 72)
                report_progress(pct, f"Rendering frame {i}/{total_frames}")

        if manifest_path is not None:
            exporter.export_json(manifest_path)
            report_progress(81, f"Manifest written to {manifest_path}")

        report_progress(82, "Encoding video...")
        temp_video = os.path.join(temp_dir, "video.mp4")
        frame_pattern = os.path.join(temp_dir, "frame_%06d.png")

        ffmpeg_cmd = [
            "ffmpeg",
            "-y",
            "-framerate", str(fps),
            "-i", frame_pattern,
            "-c:v", "libx264",
            "-preset", "fast",
            "-crf", "18",
            "-pix_fmt", "yuv420p",
            temp_video,
        ]
        result_encode = subprocess.run(
            ffmpeg_cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        if result_encode.returncode != 0:
            raise RuntimeError(f"ffmpeg encode failed: {result_encode.stderr.decode()}")

        report_progress(90, "Adding audio track...")
        ffmpeg_mux = [
            "ffmpeg",
            "-y",
            "-i", temp_video,
            "-i", str(audio_path),
            "-c:v", "copy",
            "-c:a", "aac",
            "-b:a", "192k",
        ]
        if max_duration is not None:
            ffmpeg_mux.extend(["-t", str(max_duration)])
        else:
            ffmpeg_mux.append("-shortest")
        ffmpeg_mux.append(str(output_path))

        result_mux = subprocess.run(
            ffmpeg_mux,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        if result_mux.returncode != 0:
            raise RuntimeError(f"ffmpeg mux failed: {result_mux.stderr.decode()}")

        file_size_mb = output_path.stat().st_size / 1024 / 1024
        report_progress(100, f"Complete! {file_size_mb:.1f} MB")

    finally:
        loop.stop()
        shutil.rmtree(temp_dir, ignore_errors=True)


def load_config(path: Optional[Path]) -> Optional[AnalysisConfig]:
    if path is None:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return AnalysisConfig.from_dict(json.load(f))


def load_routine(path: Optional[Path]) -> Optional[RoutineHost]:
    if path is None:
        return None
    host = RoutineHost()
    host.accept(path.read_text(encoding="utf-8"), prompt=path.stem)
    return host


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render the moodscope analysis dashboard for an audio file"
    )
    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output MP4 file (default: <audio>_moodscope.mp4)",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Write the per-tick feature manifest (JSON) to this path",
    )
    parser.add_argument(
        "--manifest-only",
        action="store_true",
        help="Only analyze and write the manifest; skip video rendering",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=1280,
        help="Video width (default: 1280)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=720,
        help="Video height (default: 720)",
    )
    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=60,
        help="Ticks per second (default: 60)",
    )
    parser.add_argument(
        "--max-duration",
        type=float,
        default=None,
        help="Only process the first N seconds",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON file with analysis tuning overrides",
    )
    parser.add_argument(
        "--routine",
        type=Path,
        default=None,
        help="File containing a generated drawing routine body",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    return parser


def main(argv=None):
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    config = load_config(args.config)
    try:
        routine_host = load_routine(args.routine)
    except RoutineRejectedError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.manifest_only:
        manifest = args.manifest or args.audio.with_name(f"{args.audio.stem}_moodscope.json")
        exporter = analyze_file(args.audio, fps=args.fps, config=config,
                                max_duration=args.max_duration)
        exporter.export_json(manifest)
        print(f"Wrote {len(exporter.frames)} frames to {manifest}")
        return

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_moodscope.mp4")

    render_video(
        audio_path=args.audio,
        output_path=output,
        width=args.width,
        height=args.height,
        fps=args.fps,
        max_duration=args.max_duration,
        config=config,
        routine_host=routine_host,
        manifest_path=args.manifest,
    )


if __name__ == "__main__":
    main()
