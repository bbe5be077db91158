"""
Command-line interface for camera pose conversion.

Usage:
    gs-camera-convert cameras.json [--index N] [--output-dir OUTPUT_DIR]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .camera_loader import CameraSetLoader, RecordingSink, save_poses_csv, save_poses_json
from .config import ConversionConfig, LoaderConfig, ORIENTATION_MODES


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert reconstructed camera poses to engine camera poses',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Summarize a cameras file
    gs-camera-convert cameras.json

    # Print the engine pose of camera 3
    gs-camera-convert cameras.json --index 3

    # Keep Y as-is and export every pose
    gs-camera-convert cameras.json --axis-scale 1 1 1 --output-dir ./poses
'''
    )

    parser.add_argument(
        'cameras',
        type=str,
        nargs='?',
        default=None,
        help='Path to cameras.json (default: cameras_file from --config)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default=None,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--index', '-i',
        type=int,
        default=None,
        help='Index of the camera to convert and print'
    )

    parser.add_argument(
        '--axis-scale',
        type=float,
        nargs=3,
        metavar=('X', 'Y', 'Z'),
        default=None,
        help='Per-axis translation scale (default: 1 -1 1)'
    )

    flip = parser.add_mutually_exclusive_group()
    flip.add_argument(
        '--flip-handedness',
        dest='flip_handedness',
        action='store_true',
        default=None,
        help='Negate Y of the rotation basis (default: when axis scale Y < 0)'
    )
    flip.add_argument(
        '--no-flip-handedness',
        dest='flip_handedness',
        action='store_false',
        help='Never negate Y of the rotation basis'
    )
    parser.set_defaults(flip_handedness=None)

    parser.add_argument(
        '--orientation-mode',
        choices=ORIENTATION_MODES,
        default=None,
        help='Orientation construction (default: look_rotation)'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default=None,
        help='Write engine_poses.json and engine_poses.csv to this directory'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser


def resolve_config(args: argparse.Namespace) -> LoaderConfig:
    """Merge the optional YAML configuration with command-line overrides."""
    config = LoaderConfig.from_yaml(args.config) if args.config else LoaderConfig()

    conversion = config.conversion
    overrides = conversion.to_dict()
    if args.axis_scale is not None:
        overrides['axis_scale'] = args.axis_scale
    if args.flip_handedness is not None:
        overrides['flip_handedness'] = args.flip_handedness
    if args.orientation_mode is not None:
        overrides['orientation_mode'] = args.orientation_mode

    return LoaderConfig(
        cameras_file=args.cameras or config.cameras_file,
        selected_index=args.index if args.index is not None else config.selected_index,
        conversion=ConversionConfig.from_dict(overrides),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = resolve_config(args)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if not config.cameras_file:
        logger.error("No cameras file given")
        return 1

    loader = CameraSetLoader(config.conversion)
    loader.load(config.cameras_file)
    diagnostics = loader.diagnostics

    print("\n" + "=" * 60)
    print("CAMERA SUMMARY")
    print("=" * 60)
    print(f"Source:                 {config.cameras_file}")
    print(f"Cameras loaded:         {diagnostics.entries_loaded}")
    print(f"Records skipped:        {diagnostics.entries_skipped}")
    for skipped in diagnostics.skip_reasons:
        print(f"  offset {skipped.offset}: {skipped.reason} {skipped.detail}".rstrip())
    print(f"Axis scale:             {config.conversion.axis_scale}")
    print(f"Handedness flip:        {config.conversion.apply_handedness_flip}")

    if not loader.entries:
        print("=" * 60)
        logger.error("No cameras loaded")
        return 1

    if args.output_dir:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        poses = loader.convert_all()
        save_poses_json(poses, str(output_dir / 'engine_poses.json'))
        save_poses_csv(poses, str(output_dir / 'engine_poses.csv'))

    exit_code = 0
    if config.selected_index is not None:
        sink = RecordingSink()
        pose = loader.apply(config.selected_index, sink)
        if pose is None:
            exit_code = 1
        else:
            print(f"\nCamera {pose.entry_id} ({pose.label}):")
            print(f"  Position:             ({pose.position[0]:.6f}, {pose.position[1]:.6f}, {pose.position[2]:.6f})")
            print(f"  Orientation (xyzw):   ({pose.orientation[0]:.6f}, {pose.orientation[1]:.6f}, "
                  f"{pose.orientation[2]:.6f}, {pose.orientation[3]:.6f})")
            ex, ey, ez = pose.euler_angles()
            print(f"  Euler (deg):          ({ex:.3f}, {ey:.3f}, {ez:.3f})")
            if pose.degenerate:
                print("  Warning: degenerate orientation, roll is arbitrary")

    if args.output_dir or config.selected_index is not None:
        print(f"\nDegenerate orientations: {diagnostics.degenerate_orientations}")
    print("=" * 60)

    return exit_code


if __name__ == '__main__':
    sys.exit(main())
