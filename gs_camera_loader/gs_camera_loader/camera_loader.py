"""
Camera set loader module.

Owns the loaded set of pose entries and drives the workflow:
    1. Read the cameras document (a missing file gives an empty set)
    2. Extract pose entries, replacing any previous set in one step
    3. Select an entry by index
    4. Convert it to the engine frame and hand it to a camera sink

Diagnostics:
    Nothing here raises for bad input. Missing sources, skipped records,
    invalid selections and degenerate orientations are counted in
    LoaderDiagnostics and logged.
"""

import csv
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Set, Tuple
import logging

from .config import ConversionConfig
from .pose_transformer import EngineCameraPose, PoseTransformer
from .record_extractor import PoseEntry, PoseRecordExtractor, SkippedRecord

logger = logging.getLogger(__name__)


class CameraSink(Protocol):
    """Anything with a settable world position and orientation."""

    def set_pose(
        self,
        position: Tuple[float, float, float],
        orientation: Tuple[float, float, float, float],
    ) -> None:
        ...


class RecordingSink:
    """In-memory camera sink that keeps every pose it receives."""

    def __init__(self):
        self.poses: List[Tuple[Tuple[float, ...], Tuple[float, ...]]] = []

    def set_pose(self, position, orientation) -> None:
        self.poses.append((tuple(position), tuple(orientation)))

    @property
    def last(self) -> Optional[Tuple[Tuple[float, ...], Tuple[float, ...]]]:
        return self.poses[-1] if self.poses else None


@dataclass
class LoaderDiagnostics:
    """Counters and skip reasons for observability."""
    missing_source: bool = False
    entries_loaded: int = 0
    entries_skipped: int = 0
    skip_reasons: List[SkippedRecord] = field(default_factory=list)
    invalid_selections: int = 0
    degenerate_entries: Set[int] = field(default_factory=set)  # Entry indices

    @property
    def degenerate_orientations(self) -> int:
        return len(self.degenerate_entries)


def read_source(path: str) -> Optional[str]:
    """
    Read a cameras document.

    Args:
        path: Path to the document

    Returns:
        File content, or None if the file is missing or unreadable
    """
    source = Path(path)
    if not source.is_file():
        logger.error(f"File not found: {path}")
        return None

    try:
        return source.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Could not read {path}: {e}")
        return None


class CameraSetLoader:
    """
    Loads a camera set and applies selected views to a camera sink.

    The loaded set is an immutable tuple. Each load builds a new tuple and
    swaps it in with a single assignment, so readers never observe a
    partially reloaded set.

    Example usage:
        loader = CameraSetLoader(ConversionConfig())
        loader.load("cameras.json")
        pose = loader.apply(0, sink)
    """

    def __init__(self, config: ConversionConfig = None):
        """
        Initialize the loader.

        Args:
            config: Conversion settings used when applying a view
        """
        self.config = config or ConversionConfig()
        self.extractor = PoseRecordExtractor()
        self.transformer = PoseTransformer(self.config)
        self.diagnostics = LoaderDiagnostics()
        self._entries: Tuple[PoseEntry, ...] = ()

    @property
    def entries(self) -> Tuple[PoseEntry, ...]:
        """The currently loaded entries, in document order."""
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def load(self, path: str) -> Tuple[PoseEntry, ...]:
        """
        Load cameras from a file, replacing the current set.

        A missing or unreadable file yields an empty set.
        """
        text = read_source(path)
        if text is None:
            self.diagnostics = LoaderDiagnostics(missing_source=True)
            self._entries = ()
            return self._entries

        return self.load_text(text)

    def load_text(self, text: Optional[str]) -> Tuple[PoseEntry, ...]:
        """
        Load cameras from document text, replacing the current set.

        Args:
            text: Document content (None is treated as empty)

        Returns:
            The new set of entries
        """
        entries, report = self.extractor.extract(text or "")

        diagnostics = LoaderDiagnostics(
            missing_source=text is None,
            entries_loaded=report.loaded,
            entries_skipped=report.skipped,
            skip_reasons=list(report.skipped_records),
        )

        self.diagnostics = diagnostics
        self._entries = entries
        return entries

    def clear(self) -> None:
        """Discard all loaded entries."""
        self._entries = ()
        self.diagnostics = LoaderDiagnostics()

    def select(self, index: int) -> Optional[PoseEntry]:
        """
        Get the entry at ``index``.

        Returns:
            The entry, or None if index is outside [0, count)
        """
        entries = self._entries
        if index < 0 or index >= len(entries):
            self.diagnostics.invalid_selections += 1
            logger.warning(
                f"Invalid camera selection {index} (loaded: {len(entries)})"
            )
            return None
        return entries[index]

    def pose_for(self, index: int) -> Optional[EngineCameraPose]:
        """Convert the entry at ``index`` without applying it."""
        entry = self.select(index)
        if entry is None:
            return None

        pose = self.transformer.transform(entry)
        if pose.degenerate:
            self.diagnostics.degenerate_entries.add(index)
        return pose

    def apply(self, index: int, sink: CameraSink) -> Optional[EngineCameraPose]:
        """
        Convert the entry at ``index`` and apply it to ``sink``.

        Args:
            index: Entry index
            sink: Camera to move

        Returns:
            The applied pose, or None if the selection is invalid
        """
        pose = self.pose_for(index)
        if pose is None:
            return None

        sink.set_pose(pose.position, pose.orientation)
        logger.info(f"Moved camera to: {pose.label}")
        return pose

    def convert_all(self) -> List[EngineCameraPose]:
        """Convert every loaded entry, in order."""
        poses = self.transformer.transform_all(self._entries)
        self.diagnostics.degenerate_entries.update(
            i for i, p in enumerate(poses) if p.degenerate
        )
        return poses


def save_poses_json(poses: Sequence[EngineCameraPose], output_path: str) -> None:
    """
    Save engine poses to a JSON file.

    Args:
        poses: Converted poses
        output_path: Path for output JSON file
    """
    data = {
        'count': len(poses),
        'cameras': [
            {
                'id': p.entry_id,
                'label': p.label,
                'position': list(p.position),
                'orientation': list(p.orientation),
                'euler_angles': list(p.euler_angles()),
                'degenerate': p.degenerate,
            }
            for p in poses
        ],
    }

    with open(output_path, 'w') as f:
        json.dump(data, f, indent=2)

    logger.info(f"Poses saved to {output_path}")


def save_poses_csv(poses: Sequence[EngineCameraPose], output_path: str) -> None:
    """
    Save engine poses to CSV for further analysis.

    Args:
        poses: Converted poses
        output_path: Path for output CSV file
    """
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow([
            'id', 'label',
            'pos_x', 'pos_y', 'pos_z',
            'quat_x', 'quat_y', 'quat_z', 'quat_w',
            'degenerate',
        ])

        for p in poses:
            writer.writerow([p.entry_id, p.label, *p.position, *p.orientation, p.degenerate])

    logger.info(f"Poses saved to {output_path}")
