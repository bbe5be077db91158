"""
Tests for the command-line interface.
"""

import json

import pytest

from gs_camera_loader.cli import build_parser, main, resolve_config

CAMERAS = (
    '[{"id": 0, "img_name": "00001", "width": 100, "height": 80, '
    '"position": [2.0, 3.0, -4.0], '
    '"rotation": [[1, 0, 0], [0, 1, 0], [0, 0, 1]], "fy": 50.0, "fx": 50.0}]'
)


THREE_CAMERAS = "[" + ",\n".join(
    f'{{"id": {i}, "img_name": "cam{i}", "position": [{i}.0, 0.0, 0.0], '
    f'"rotation": {rotation}, "fy": 50.0}}'
    for i, rotation in enumerate([
        "[[1, 0, 0], [0, 1, 0], [0, 0, 1]]",
        "[[1, 0, 0], [0, 1, 0], [0, 0, 1]]",
        # up and forward coincide
        "[[1, 0, 0], [0, 0, 1], [0, 0, 1]]",
    ])
) + "]"


@pytest.fixture
def cameras_file(tmp_path):
    path = tmp_path / "cameras.json"
    path.write_text(CAMERAS)
    return str(path)


@pytest.fixture
def three_cameras_file(tmp_path):
    path = tmp_path / "three.json"
    path.write_text(THREE_CAMERAS)
    return str(path)


class TestResolveConfig:
    """Tests for merging YAML and command-line settings."""

    def test_defaults(self, cameras_file):
        args = build_parser().parse_args([cameras_file])
        config = resolve_config(args)

        assert config.cameras_file == cameras_file
        assert config.conversion.axis_scale == (1.0, -1.0, 1.0)
        assert config.conversion.flip_handedness is None

    def test_overrides(self, cameras_file):
        args = build_parser().parse_args([
            cameras_file, '--axis-scale', '1', '1', '1',
            '--no-flip-handedness', '--orientation-mode', 'matrix', '--index', '3',
        ])
        config = resolve_config(args)

        assert config.conversion.axis_scale == (1.0, 1.0, 1.0)
        assert config.conversion.flip_handedness is False
        assert config.conversion.orientation_mode == 'matrix'
        assert config.selected_index == 3

    def test_yaml_config(self, tmp_path, cameras_file):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "cameras_file: cameras.json\n"
            "conversion:\n"
            "  flip_handedness: true\n"
        )
        args = build_parser().parse_args(['--config', str(config_path)])
        config = resolve_config(args)

        assert config.cameras_file == cameras_file
        assert config.conversion.flip_handedness is True


class TestMain:
    """Tests for the CLI entry point."""

    def test_summary(self, cameras_file, capsys):
        assert main([cameras_file]) == 0
        assert "Cameras loaded:         1" in capsys.readouterr().out

    def test_selected_pose(self, cameras_file, capsys):
        assert main([cameras_file, '--index', '0']) == 0
        out = capsys.readouterr().out
        assert "(2.000000, -3.000000, -4.000000)" in out

    def test_invalid_index(self, cameras_file):
        assert main([cameras_file, '--index', '5']) == 1

    def test_missing_file(self):
        assert main(['/nonexistent/path/cameras.json']) == 1

    def test_no_cameras_file(self):
        assert main([]) == 1

    def test_missing_config(self, cameras_file):
        assert main([cameras_file, '--config', '/nonexistent/config.yaml']) == 1

    def test_output_dir(self, cameras_file, tmp_path):
        out_dir = tmp_path / "out"
        assert main([cameras_file, '--output-dir', str(out_dir)]) == 0

        with open(out_dir / "engine_poses.json") as f:
            data = json.load(f)
        assert data['count'] == 1
        assert (out_dir / "engine_poses.csv").exists()

    def test_no_selection_prints_no_pose(self, three_cameras_file, capsys):
        assert main([three_cameras_file]) == 0
        assert "Camera " not in capsys.readouterr().out

    def test_selection_from_yaml(self, tmp_path, three_cameras_file, capsys):
        """selected_index in the config file picks the printed camera."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("cameras_file: three.json\nselected_index: 2\n")

        assert main(['--config', str(config_path)]) == 0
        out = capsys.readouterr().out
        assert "Camera 2 (cam2):" in out
        assert "cam0" not in out

    def test_index_overrides_yaml_selection(self, tmp_path, three_cameras_file, capsys):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("cameras_file: three.json\nselected_index: 2\n")

        assert main(['--config', str(config_path), '--index', '1']) == 0
        out = capsys.readouterr().out
        assert "Camera 1 (cam1):" in out
        assert "cam2" not in out

    def test_invalid_yaml_selection(self, tmp_path, three_cameras_file):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("cameras_file: three.json\nselected_index: 7\n")

        assert main(['--config', str(config_path)]) == 1

    def test_degenerate_counted_once_with_export(self, three_cameras_file, tmp_path, capsys):
        """Exporting and selecting the same degenerate camera counts it once."""
        out_dir = tmp_path / "out"
        args = [three_cameras_file, '--output-dir', str(out_dir), '--index', '2']

        assert main(args) == 0
        out = capsys.readouterr().out
        assert "Degenerate orientations: 1" in out
        assert "degenerate orientation, roll is arbitrary" in out

    def test_quoted_flip_in_yaml(self, tmp_path, cameras_file):
        config_path = tmp_path / "config.yaml"
        config_path.write_text('conversion:\n  flip_handedness: "false"\n')

        assert main([cameras_file, '--config', str(config_path)]) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
