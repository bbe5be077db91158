"""
Camera pose record extractor.

Scans the text of a Gaussian Splatting style ``cameras.json`` document for
fixed-shape camera records and yields typed pose entries.

Record Format:
    Each camera is a flat object of the form

        {"id": 0, "img_name": "00001", "width": 1959, "height": 1090,
         "position": [x, y, z],
         "rotation": [[r00, r01, r02], [r10, r11, r12], [r20, r21, r22]],
         "fy": 1163.25, "fx": 1161.58}

    Only ``id``, ``img_name``, ``position``, ``rotation`` and the trailing
    ``fy`` key are anchored, in that relative order. Any other keys between
    them are ignored. ``width``, ``height``, ``fx`` and ``fy`` are picked up
    as optional metadata when present inside the record.

    The extractor does not parse the document as a whole. Each record opener
    (``{"id":``) is a candidate and is matched on its own, so surrounding
    structure, extra keys and broken neighbours do not affect valid records.

Rotation Convention:
    ``rotation`` is the world-to-camera rotation of the reconstruction frame
    (right-handed, Y-down). It is stored as given and never re-orthonormalized.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]
Matrix3 = Tuple[Vector3, Vector3, Vector3]

SKIP_PATTERN_MISMATCH = "pattern mismatch"
SKIP_MALFORMED = "malformed record"

# Start of a candidate record
RECORD_OPENER = re.compile(r'\{\s*"id"\s*:')

# First brace after a record opener; a record ends at the first '}' and is
# broken if another '{' comes before it
RECORD_BOUNDARY = re.compile(r'[{}]')

# Matched against one brace-free record span, so gaps between anchored keys
# cannot reach a neighbouring record. Numbers end at a ',' or '}' boundary
# that the trailing gap cannot re-consume.
_LIST = r'\[(?P<{name}>[^\[\]{{}}]*)\]'
_NUMBER = r'-?\d+(?:\.\d*)?(?:[eE][-+]?\d+)?(?=\s*[,}])'
RECORD_PATTERN = re.compile(
    r'\{\s*"id"\s*:\s*(?P<id>\d+)\s*,\s*'
    r'"img_name"\s*:\s*"(?P<label>(?:[^"\\]|\\.)+)"'
    r'[^{}]*?"position"\s*:\s*' + _LIST.format(name='position') +
    r'\s*,\s*"rotation"\s*:\s*\[\s*'
    + _LIST.format(name='row0') + r'\s*,\s*'
    + _LIST.format(name='row1') + r'\s*,\s*'
    + _LIST.format(name='row2') +
    r'\s*\][^{}]*?"fy"\s*:\s*(?P<fy>' + _NUMBER + r')[^{}]*\}'
)

# Optional metadata keys, searched only inside a matched record span
_METADATA_PATTERNS = {
    'width': re.compile(r'"width"\s*:\s*(\d+)'),
    'height': re.compile(r'"height"\s*:\s*(\d+)'),
    'fx': re.compile(r'"fx"\s*:\s*(' + _NUMBER + r')'),
}


@dataclass(frozen=True)
class PoseEntry:
    """
    One reconstructed camera observation.

    Attributes:
        id: Camera id from the source document (duplicates are kept)
        label: Source image name
        translation: Camera position in the reconstruction frame
        rotation: World-to-camera rotation, row-major 3x3
        width: Image width in pixels, if present
        height: Image height in pixels, if present
        fx: Horizontal focal length in pixels, if present
        fy: Vertical focal length in pixels
    """
    id: int
    label: str
    translation: Vector3
    rotation: Matrix3
    width: Optional[int] = None
    height: Optional[int] = None
    fx: Optional[float] = None
    fy: Optional[float] = None

    def translation_array(self) -> np.ndarray:
        """Return the translation as a (3,) array."""
        return np.array(self.translation, dtype=np.float64)

    def rotation_matrix(self) -> np.ndarray:
        """Return the world-to-camera rotation as a (3, 3) array."""
        return np.array(self.rotation, dtype=np.float64)

    def vertical_fov(self) -> Optional[float]:
        """
        Vertical field of view in degrees, derived from height and fy.

        Returns:
            2 * atan(height / (2 * fy)) in degrees, or None if unavailable
        """
        if self.height is None or self.fy is None or self.fy <= 0:
            return None
        return math.degrees(2.0 * math.atan(self.height / (2.0 * self.fy)))


@dataclass
class SkippedRecord:
    """A candidate record that was not loaded."""
    offset: int  # Character offset of the record opener
    reason: str  # SKIP_PATTERN_MISMATCH or SKIP_MALFORMED
    record_id: Optional[int] = None
    detail: str = ""


@dataclass
class ExtractionReport:
    """Counts and skip reasons from one extraction pass."""
    candidates: int = 0
    loaded: int = 0
    skipped_records: List[SkippedRecord] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.skipped_records)

    @property
    def malformed(self) -> int:
        return sum(1 for s in self.skipped_records if s.reason == SKIP_MALFORMED)


def parse_number_list(text: str, expected: int) -> Tuple[float, ...]:
    """
    Parse a comma separated list of real numbers.

    Args:
        text: List body without the enclosing brackets
        expected: Required number of elements

    Returns:
        Tuple of floats

    Raises:
        ValueError: If the element count is wrong, an element is not a
            number, or a value is not finite
    """
    parts = text.split(',')
    if len(parts) != expected:
        raise ValueError(f"expected {expected} values, got {len(parts)}")

    values = tuple(float(p.strip()) for p in parts)
    if not all(math.isfinite(v) for v in values):
        raise ValueError(f"non-finite value in [{text.strip()}]")
    return values


class PoseRecordExtractor:
    """
    Tolerant extractor for camera pose records.

    Each candidate is matched independently against ``RECORD_PATTERN``.
    A candidate that does not match, or whose numbers fail to parse, is
    skipped and recorded in the report; scanning always continues.

    Example usage:
        extractor = PoseRecordExtractor()
        entries, report = extractor.extract(text)
    """

    def iter_entries(
        self,
        text: str,
        report: Optional[ExtractionReport] = None,
    ) -> Iterator[PoseEntry]:
        """
        Lazily yield pose entries in document order.

        Args:
            text: Full document content
            report: Optional report updated as the scan proceeds

        Yields:
            PoseEntry for every valid record
        """
        if report is None:
            report = ExtractionReport()

        if not text:
            return

        for opener in RECORD_OPENER.finditer(text):
            offset = opener.start()
            report.candidates += 1

            match = None
            boundary = RECORD_BOUNDARY.search(text, opener.end())
            if boundary is not None and boundary.group() == '}':
                match = RECORD_PATTERN.fullmatch(text, offset, boundary.end())

            if match is None:
                report.skipped_records.append(SkippedRecord(
                    offset=offset,
                    reason=SKIP_PATTERN_MISMATCH,
                ))
                logger.debug(f"No pose record at offset {offset}")
                continue

            try:
                entry = self._parse_match(match)
            except ValueError as e:
                record_id = int(match.group('id'))
                report.skipped_records.append(SkippedRecord(
                    offset=offset,
                    reason=SKIP_MALFORMED,
                    record_id=record_id,
                    detail=str(e),
                ))
                logger.warning(f"Skipping camera record {record_id}: {e}")
                continue

            report.loaded += 1
            yield entry

    def extract(self, text: str) -> Tuple[Tuple[PoseEntry, ...], ExtractionReport]:
        """
        Extract all pose entries from a document.

        Args:
            text: Full document content (may be empty)

        Returns:
            Tuple of (entries, report)
        """
        report = ExtractionReport()
        entries = tuple(self.iter_entries(text, report))

        if report.skipped:
            logger.warning(
                f"Loaded {report.loaded} cameras, skipped {report.skipped} "
                f"of {report.candidates} candidates"
            )
        else:
            logger.info(f"Loaded {report.loaded} cameras")
        return entries, report

    def _parse_match(self, match: "re.Match") -> PoseEntry:
        """
        Build a PoseEntry from a matched record.

        Raises:
            ValueError: If any numeric field or the label escape is malformed
        """
        position = parse_number_list(match.group('position'), 3)
        rotation = (
            parse_number_list(match.group('row0'), 3),
            parse_number_list(match.group('row1'), 3),
            parse_number_list(match.group('row2'), 3),
        )
        fy = float(match.group('fy'))

        # img_name is a JSON string, so escapes such as \" are decoded
        label = json.loads('"' + match.group('label') + '"', strict=False)

        span = match.group(0)
        metadata = {}
        for key, pattern in _METADATA_PATTERNS.items():
            found = pattern.search(span)
            if found:
                metadata[key] = found.group(1)

        return PoseEntry(
            id=int(match.group('id')),
            label=label,
            translation=position,
            rotation=rotation,
            width=int(metadata['width']) if 'width' in metadata else None,
            height=int(metadata['height']) if 'height' in metadata else None,
            fx=float(metadata['fx']) if 'fx' in metadata else None,
            fy=fy,
        )


class PoseRecords:
    """
    Lazy, restartable sequence of pose entries over a text buffer.

    Every iteration rescans the text and replaces ``report`` with the
    counts of that pass.
    """

    def __init__(self, text: str, extractor: Optional[PoseRecordExtractor] = None):
        self.text = text or ""
        self.extractor = extractor or PoseRecordExtractor()
        self.report = ExtractionReport()

    def __iter__(self) -> Iterator[PoseEntry]:
        self.report = ExtractionReport()
        return self.extractor.iter_entries(self.text, self.report)


def extract_pose_entries(text: str) -> List[PoseEntry]:
    """
    Convenience function to extract pose entries from document text.

    Args:
        text: Full document content

    Returns:
        List of entries in document order
    """
    entries, _ = PoseRecordExtractor().extract(text)
    return list(entries)
