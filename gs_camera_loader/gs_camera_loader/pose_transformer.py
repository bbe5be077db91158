"""
Pose transformation module.

Converts a camera pose from the reconstruction frame to the engine frame.

Coordinate System Definitions:
    - Reconstruction: right-handed, X-right, Y-down, Z-forward (COLMAP / 3DGS)
    - Engine: left-handed, X-right, Y-up, Z-forward (Unity style)

Transformation:
    1. Position: component-wise multiply by the configured axis scale
    2. Rotation: world-to-camera is inverted by transposition, the columns of
       the camera-to-world matrix give the right/up/forward basis vectors,
       the Y component of each is negated when the handedness flip is on,
       and the orientation is built as a look-rotation from forward with
       -up as the up reference.

Quaternions are stored as (x, y, z, w), scalar last, with w >= 0.
"""

import numpy as np
from scipy.spatial.transform import Rotation
from typing import Iterable, List, Tuple
from dataclasses import dataclass
import logging

from .config import ConversionConfig, ORIENTATION_MATRIX
from .record_extractor import PoseEntry

logger = logging.getLogger(__name__)

IDENTITY_QUATERNION = (0.0, 0.0, 0.0, 1.0)

# Below this length a vector is treated as zero
ZERO_TOLERANCE = 1e-12

# |up x forward| below this (unit vectors) means forward and up are parallel
PARALLEL_TOLERANCE = 1e-6

WORLD_X = np.array([1.0, 0.0, 0.0])
WORLD_Z = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True)
class EngineCameraPose:
    """
    Camera pose expressed in the engine frame.

    Attributes:
        position: World position (x, y, z)
        orientation: Camera-to-world unit quaternion (x, y, z, w)
        entry_id: Id of the source pose entry
        label: Label of the source pose entry
        degenerate: True if the orientation used the parallel-axis fallback
    """
    position: Tuple[float, float, float]
    orientation: Tuple[float, float, float, float]
    entry_id: int = -1
    label: str = ""
    degenerate: bool = False

    def rotation_matrix(self) -> np.ndarray:
        """Camera-to-world rotation as a (3, 3) array."""
        return Rotation.from_quat(self.orientation).as_matrix()

    def euler_angles(self) -> Tuple[float, float, float]:
        """
        Euler angles (x, y, z) in degrees, applied in Z, X, Y order.

        This is the decomposition engines such as Unity report for a
        transform rotation.
        """
        y, x, z = Rotation.from_quat(self.orientation).as_euler('YXZ', degrees=True)
        return (float(x), float(y), float(z))


def _canonical_quat(q: np.ndarray) -> Tuple[float, float, float, float]:
    """Return q with a non-negative scalar part, as a tuple of floats."""
    if q[3] < 0:
        q = -q
    return tuple(float(c) for c in q)


def camera_basis(
    entry: PoseEntry,
    flip_handedness: bool,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Extract the camera basis vectors in world coordinates.

    The world-to-camera rotation is assumed orthonormal, so its transpose
    is the camera-to-world rotation. No validation is done.

    Args:
        entry: Source pose entry
        flip_handedness: Negate the Y component of every basis vector

    Returns:
        Tuple of (right, up, forward), the columns of camera-to-world
    """
    cam_to_world = entry.rotation_matrix().T

    right = cam_to_world[:, 0].copy()
    up = cam_to_world[:, 1].copy()
    forward = cam_to_world[:, 2].copy()

    if flip_handedness:
        # Reinterpret Y-down as Y-up
        right[1] = -right[1]
        up[1] = -up[1]
        forward[1] = -forward[1]

    return right, up, forward


def look_rotation(
    forward: np.ndarray,
    up: np.ndarray,
) -> Tuple[Tuple[float, float, float, float], bool]:
    """
    Build the rotation that looks along ``forward`` with ``up`` overhead.

    Local +Z maps to forward, local +Y to the part of up orthogonal to
    forward, and local +X to up x forward.

    If forward and up are (near-)parallel the roll is unconstrained. The
    up reference is then replaced by world +Z, or world +X when forward
    itself lies along Z, so the result stays deterministic.

    Args:
        forward: Viewing direction (any length)
        up: Up reference (any length)

    Returns:
        Tuple of (quaternion (x, y, z, w), degenerate flag)
    """
    forward = np.asarray(forward, dtype=np.float64)
    up = np.asarray(up, dtype=np.float64)

    forward_norm = np.linalg.norm(forward)
    if forward_norm < ZERO_TOLERANCE:
        logger.debug("Zero-length forward vector, using identity orientation")
        return IDENTITY_QUATERNION, True

    z_axis = forward / forward_norm
    degenerate = False

    up_norm = np.linalg.norm(up)
    x_axis = np.cross(up / up_norm, z_axis) if up_norm >= ZERO_TOLERANCE else np.zeros(3)
    x_norm = np.linalg.norm(x_axis)

    if x_norm < PARALLEL_TOLERANCE:
        degenerate = True
        if abs(np.dot(z_axis, WORLD_Z)) < 0.999:
            alt_up = WORLD_Z
        else:
            alt_up = WORLD_X
        x_axis = np.cross(alt_up, z_axis)
        x_norm = np.linalg.norm(x_axis)

    x_axis = x_axis / x_norm
    y_axis = np.cross(z_axis, x_axis)

    R = np.column_stack([x_axis, y_axis, z_axis])
    return _canonical_quat(Rotation.from_matrix(R).as_quat()), degenerate


def matrix_rotation(
    right: np.ndarray,
    up: np.ndarray,
    forward: np.ndarray,
) -> Tuple[Tuple[float, float, float, float], bool]:
    """
    Extract the orientation directly from the basis matrix [right, -up, forward].

    The matrix is projected onto the nearest rotation. It only represents a
    rotation when its determinant is positive, which holds for an
    orthonormal source with the handedness flip applied. Otherwise the
    look-rotation result is returned instead.

    Returns:
        Tuple of (quaternion (x, y, z, w), degenerate flag)
    """
    M = np.column_stack([right, -up, forward])
    if np.linalg.det(M) <= ZERO_TOLERANCE:
        logger.debug("Basis matrix is not a proper rotation, using look rotation")
        return look_rotation(forward, -up)

    return _canonical_quat(Rotation.from_matrix(M).as_quat()), False


class PoseTransformer:
    """
    Converts pose entries to engine-space camera poses.

    Stateless apart from its configuration: the same entry always yields
    the same pose, and instances can be shared between threads.

    Example usage:
        transformer = PoseTransformer(ConversionConfig(axis_scale=(1, -1, 1)))
        pose = transformer.transform(entry)
    """

    def __init__(self, config: ConversionConfig = None):
        """
        Initialize the transformer.

        Args:
            config: Conversion settings (defaults to ConversionConfig())
        """
        self.config = config or ConversionConfig()
        self.axis_scale = np.array(self.config.axis_scale, dtype=np.float64)
        self.flip_handedness = self.config.apply_handedness_flip

        logger.debug(f"Initialized transformer with axis scale: {self.axis_scale}")
        logger.debug(f"Handedness flip: {self.flip_handedness}")

    def transform_position(self, entry: PoseEntry) -> np.ndarray:
        """Scale the translation per axis."""
        return entry.translation_array() * self.axis_scale

    def transform_orientation(
        self, entry: PoseEntry
    ) -> Tuple[Tuple[float, float, float, float], bool]:
        """
        Compute the engine-space orientation of a pose entry.

        Returns:
            Tuple of (quaternion (x, y, z, w), degenerate flag)
        """
        right, up, forward = camera_basis(entry, self.flip_handedness)

        if self.config.orientation_mode == ORIENTATION_MATRIX:
            return matrix_rotation(right, up, forward)

        # Source Y is down, so the engine up reference is -up
        return look_rotation(forward, -up)

    def transform(self, entry: PoseEntry) -> EngineCameraPose:
        """
        Convert one pose entry.

        Args:
            entry: Source pose entry

        Returns:
            EngineCameraPose with position and orientation
        """
        position = self.transform_position(entry)
        orientation, degenerate = self.transform_orientation(entry)

        if degenerate:
            logger.warning(
                f"Degenerate orientation for camera {entry.id} ({entry.label}), "
                f"roll is arbitrary"
            )

        return EngineCameraPose(
            position=tuple(float(c) for c in position),
            orientation=orientation,
            entry_id=entry.id,
            label=entry.label,
            degenerate=degenerate,
        )

    def transform_all(self, entries: Iterable[PoseEntry]) -> List[EngineCameraPose]:
        """Convert a sequence of entries, preserving order."""
        return [self.transform(entry) for entry in entries]


def transform_pose(entry: PoseEntry, config: ConversionConfig = None) -> EngineCameraPose:
    """
    Convenience function to convert one pose entry.

    Args:
        entry: Source pose entry
        config: Conversion settings

    Returns:
        EngineCameraPose
    """
    return PoseTransformer(config).transform(entry)


def engine_positions(
    entries: Iterable[PoseEntry],
    config: ConversionConfig = None,
) -> np.ndarray:
    """
    Engine-space positions of all entries, for placing markers.

    Args:
        entries: Source pose entries
        config: Conversion settings

    Returns:
        (N, 3) array of positions
    """
    transformer = PoseTransformer(config)
    positions = [transformer.transform_position(entry) for entry in entries]
    if not positions:
        return np.zeros((0, 3))
    return np.vstack(positions)
