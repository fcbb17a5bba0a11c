"""
Manifest serialization module.

Records per-tick feature bundles and exports them as a JSON manifest
(or a NumPy archive) for offline rendering and inspection.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Union

import numpy as np

from moodscope.core.loop import FeatureBundle


@dataclass
class ManifestMetadata:
    """Metadata header for a recorded session."""

    fps: int
    n_frames: int
    frame_length: int
    final_bpm: int
    duration: float
    schema_version: str = "1.0"


class BundleExporter:
    """
    Collects feature bundles and writes them out.

    Acts as a renderer, so it can be attached to an analysis loop directly.
    Recording grows with the session; attach it for offline runs only.
    """

    def __init__(self, fps: int = 60, precision: int = 4, include_frame: bool = False):
        """
        Args:
            fps: Tick rate used for the manifest metadata.
            precision: Decimal places for floating point values.
            include_frame: Also store each raw frame (large).
        """
        self.fps = fps
        self.precision = precision
        self.include_frame = include_frame
        self.frames: List[dict] = []
        self._frame_length = 0
        self._last_bpm = 0

    def _round(self, value: float) -> float:
        """Round to configured precision."""
        return round(float(value), self.precision)

    def _safe_float(self, value: Any) -> Optional[float]:
        """Rounded float, or None for missing/non-finite values."""
        if value is None:
            return None
        try:
            f = float(value)
        except (TypeError, ValueError):
            return None
        if np.isnan(f) or np.isinf(f):
            return None
        return self._round(f)

    def build_frame(self, bundle: FeatureBundle) -> dict[str, Any]:
        """Serialize one bundle following the renderer output contract."""
        frame: dict[str, Any] = {
            "tick": bundle.tick,
            "time": self._round(bundle.time_ms / 1000.0),
            "is_beat": bool(bundle.is_beat),
            "is_placeholder": bool(bundle.is_placeholder),
            "stats": {k: self._round(v) for k, v in bundle.stats.to_dict().items()},
            "bpm": {
                "current": int(bundle.bpm),
                "history": [int(b) for b in bundle.bpm_history],
            },
            "emotion": {
                "label": bundle.emotion.value,
                "raw": bundle.raw_emotion.value,
                "color": {
                    k: self._safe_float(v) for k, v in bundle.color.to_dict().items()
                },
            },
            "heatmap": [[self._round(v) for v in row] for row in bundle.heatmap],
        }
        if self.include_frame:
            frame["frame"] = bundle.frame.tolist()
        return frame

    def render(self, bundle: FeatureBundle) -> None:
        self.frames.append(self.build_frame(bundle))
        self._frame_length = int(bundle.frame.size)
        self._last_bpm = int(bundle.bpm)

    def build_manifest(self) -> dict[str, Any]:
        """Metadata plus every recorded frame."""
        metadata = ManifestMetadata(
            fps=self.fps,
            n_frames=len(self.frames),
            frame_length=self._frame_length,
            final_bpm=self._last_bpm,
            duration=self._round(len(self.frames) / self.fps) if self.fps else 0.0,
        )
        return {
            "metadata": {
                "fps": metadata.fps,
                "n_frames": metadata.n_frames,
                "frame_length": metadata.frame_length,
                "final_bpm": metadata.final_bpm,
                "duration": metadata.duration,
                "schema_version": metadata.schema_version,
            },
            "frames": self.frames,
        }

    def export_json(self, output_path: Union[str, Path], indent: int = 2) -> Path:
        """
        Write the manifest to a JSON file.

        Returns:
            Path to written file.
        """
        output_path = Path(output_path)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.build_manifest(), f, indent=indent)
        return output_path

    def export_numpy(self, output_path: Union[str, Path]) -> Path:
        """
        Write per-tick trajectories as a compressed ``.npz`` archive.

        Returns:
            Path to written file.
        """
        output_path = Path(output_path)
        stats_keys = ("volume", "bass", "mid", "treble", "peak", "rms")
        arrays: dict[str, Any] = {
            "time": np.array([f["time"] for f in self.frames], dtype=float),
            "is_beat": np.array([f["is_beat"] for f in self.frames], dtype=bool),
            "bpm": np.array([f["bpm"]["current"] for f in self.frames], dtype=int),
            "emotion": np.array([f["emotion"]["label"] for f in self.frames]),
            "hsl": np.array(
                [
                    [f["emotion"]["color"][k] for k in ("hue", "sat", "light")]
                    for f in self.frames
                ],
                dtype=float,
            ).reshape(-1, 3),
            "fps": np.array([self.fps]),
        }
        for key in stats_keys:
            arrays[key] = np.array([f["stats"][key] for f in self.frames], dtype=float)

        np.savez_compressed(output_path, **arrays)
        return output_path
