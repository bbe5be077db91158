"""
Configuration module for camera pose conversion.

Handles loading and validation of configuration from YAML files.
"""

import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)

ORIENTATION_LOOK_ROTATION = 'look_rotation'
ORIENTATION_MATRIX = 'matrix'
ORIENTATION_MODES = (ORIENTATION_LOOK_ROTATION, ORIENTATION_MATRIX)


@dataclass(frozen=True)
class ConversionConfig:
    """
    Reconstruction-frame to engine-frame conversion settings.

    Attributes:
        axis_scale: Per-axis multipliers applied to the camera translation
        flip_handedness: Negate the Y component of the rotation basis vectors.
            None derives it from axis_scale[1] < 0.
        orientation_mode: 'look_rotation' (forward/up construction) or
            'matrix' (direct matrix to quaternion extraction)
    """
    axis_scale: Tuple[float, float, float] = (1.0, -1.0, 1.0)
    flip_handedness: Optional[bool] = None
    orientation_mode: str = ORIENTATION_LOOK_ROTATION

    def __post_init__(self):
        scale = tuple(float(s) for s in self.axis_scale)
        if len(scale) != 3:
            raise ValueError(f"axis_scale needs 3 components, got {len(scale)}")
        object.__setattr__(self, 'axis_scale', scale)

        if self.flip_handedness is not None and not isinstance(self.flip_handedness, bool):
            raise ValueError(
                f"flip_handedness must be true, false or null, got {self.flip_handedness!r}"
            )

        if self.orientation_mode not in ORIENTATION_MODES:
            raise ValueError(
                f"Unknown orientation_mode '{self.orientation_mode}', "
                f"expected one of {ORIENTATION_MODES}"
            )

    @property
    def apply_handedness_flip(self) -> bool:
        """Whether the Y-axis flip is applied to the rotation basis."""
        if self.flip_handedness is None:
            return self.axis_scale[1] < 0
        return self.flip_handedness

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ConversionConfig":
        """Build from the 'conversion' section of a configuration file."""
        data = data or {}
        return cls(
            axis_scale=tuple(data.get('axis_scale', (1.0, -1.0, 1.0))),
            flip_handedness=data.get('flip_handedness'),
            orientation_mode=data.get('orientation_mode', ORIENTATION_LOOK_ROTATION),
        )

    def to_dict(self) -> dict:
        return {
            'axis_scale': list(self.axis_scale),
            'flip_handedness': self.flip_handedness,
            'orientation_mode': self.orientation_mode,
        }


@dataclass
class LoaderConfig:
    """
    Main configuration for loading and converting a camera set.

    Attributes:
        cameras_file: Path to the cameras.json document
        selected_index: Index of the camera to apply, or None for no selection
        conversion: Coordinate conversion settings
    """
    cameras_file: Optional[str] = None
    selected_index: Optional[int] = None
    conversion: ConversionConfig = field(default_factory=ConversionConfig)

    @classmethod
    def from_yaml(cls, config_path: str) -> "LoaderConfig":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            LoaderConfig with loaded parameters

        Example YAML structure:
            cameras_file: "cameras.json"
            selected_index: 0
            conversion:
              axis_scale: [1.0, -1.0, 1.0]
              flip_handedness: null
              orientation_mode: look_rotation
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loading configuration from {config_path}")

        # Resolve the cameras file relative to the config file location
        cameras_file = data.get('cameras_file')
        if cameras_file:
            cameras_file = str(path.parent / cameras_file)

        selected_index = data.get('selected_index')

        return cls(
            cameras_file=cameras_file,
            selected_index=None if selected_index is None else int(selected_index),
            conversion=ConversionConfig.from_dict(data.get('conversion')),
        )

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        data = {
            'cameras_file': self.cameras_file,
            'selected_index': self.selected_index,
            'conversion': self.conversion.to_dict(),
        }

        with open(config_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
