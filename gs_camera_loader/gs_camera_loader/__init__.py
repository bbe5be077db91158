"""
Gaussian Splatting Camera Loader Package

Loads calibrated camera poses from a 3D Gaussian Splatting ``cameras.json``
and converts them to poses for a game-engine camera.

Coordinate System Chain:
    Reconstruction (RH, Y-down) → axis scale / Y flip → Engine (LH, Y-up)

Conventions:
    - Source rotation: world-to-camera, row-major 3x3
    - Output orientation: camera-to-world quaternion (x, y, z, w)
    - Default axis scale: (1, -1, 1)

Supported Formats:
    - cameras.json records with id, img_name, position, rotation and fy keys
"""

from .config import ConversionConfig, LoaderConfig
from .record_extractor import (
    PoseEntry,
    PoseRecordExtractor,
    PoseRecords,
    ExtractionReport,
    SkippedRecord,
    extract_pose_entries,
)
from .pose_transformer import (
    EngineCameraPose,
    PoseTransformer,
    look_rotation,
    transform_pose,
    engine_positions,
)
from .camera_loader import (
    CameraSetLoader,
    CameraSink,
    LoaderDiagnostics,
    RecordingSink,
    read_source,
)

__version__ = "0.1.0"
__all__ = [
    "ConversionConfig",
    "LoaderConfig",
    "PoseEntry",
    "PoseRecordExtractor",
    "PoseRecords",
    "ExtractionReport",
    "SkippedRecord",
    "extract_pose_entries",
    "EngineCameraPose",
    "PoseTransformer",
    "look_rotation",
    "transform_pose",
    "engine_positions",
    "CameraSetLoader",
    "CameraSink",
    "LoaderDiagnostics",
    "RecordingSink",
    "read_source",
]
