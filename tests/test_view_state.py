"""Tests for the view state and config file loading."""

from pathlib import Path

import pytest

from ocvwarp.view_state import (
  TransformMode,
  ViewState,
  parse_legacy_ini,
  parse_view_config,
  save_view_config,
)


def _assert_defaults(view):
  assert view == ViewState(0.0, 0.0, TransformMode.EQUIRECT_TO_FISHEYE_360, 1920, 1080)


def test_defaults():
  view = ViewState()

  _assert_defaults(view)
  assert view.output_size == (1920, 1080)


def test_normalized_angles():
  view = ViewState(anglex=370.0, angley=-90.0)

  assert view.normalized_angles() == (10.0, 270.0)
  # the stored angles are untouched
  assert view.anglex == 370.0


def test_transform_mode_from_int():
  assert ViewState(transform_mode=3).transform_mode is TransformMode.DUAL_FISHEYE_TO_EQUIRECT_PARALLEL


def test_invalid_transform_mode():
  with pytest.raises(ValueError):
    ViewState(transform_mode=4)


@pytest.mark.parametrize("kwargs", [
  {"output_width": 0},
  {"output_height": -5},
  {"anglex": float("inf")},
  {"angley": float("nan")},
])
def test_validate_rejects(kwargs):
  with pytest.raises(ValueError):
    ViewState(**kwargs).validate()


def test_copy_is_independent():
  view = ViewState(5.0, 6.0, TransformMode.FISHEYE360_TO_EQUIRECT, 320, 240)
  other = view.copy()
  other.anglex = 50.0

  assert view.anglex == 5.0
  assert other.transform_mode is TransformMode.FISHEYE360_TO_EQUIRECT


def test_yaml_config(tmp_path):
  config = tmp_path / "OCVWarp.yaml"
  config.write_text("anglex: 12.5\nangley: -30\noutput_width: 640\noutput_height: 480\ntransform_type: 1\n")

  view = parse_view_config(str(config))

  assert view == ViewState(12.5, -30.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 640, 480)


def test_partial_yaml_uses_defaults(tmp_path):
  config = tmp_path / "partial.yml"
  config.write_text("transform_type: 2\n")

  view = parse_view_config(str(config))

  assert view.transform_mode is TransformMode.FISHEYE360_TO_EQUIRECT
  assert view.output_size == (1920, 1080)
  assert view.anglex == 0.0


def test_empty_yaml_uses_defaults(tmp_path):
  config = tmp_path / "empty.yaml"
  config.write_text("")

  _assert_defaults(parse_view_config(str(config)))


def test_missing_config_warns(tmp_path, capsys):
  view = parse_view_config(str(tmp_path / "missing.yaml"))

  _assert_defaults(view)
  assert "Warning" in capsys.readouterr().out


@pytest.mark.parametrize("content", [
  "anglex: [unclosed\n",
  "transform_type: 9\n",
  "output_width: -1\n",
  "anglex: sideways\n",
  "- just\n- a list\n",
])
def test_invalid_yaml_falls_back(tmp_path, capsys, content):
  config = tmp_path / "bad.yaml"
  config.write_text(content)

  _assert_defaults(parse_view_config(str(config)))
  assert "using defaults" in capsys.readouterr().out


def test_legacy_ini(tmp_path, capsys):
  config = tmp_path / "OCVWarp.ini"
  config.write_text("OCVWarp.ini settings anglex:\n15\nangley:\n-7.5\noutputw:\n800\noutputh:\n600\n"
                    "transformtype:\n3\n")

  view = parse_view_config(str(config))

  assert view == ViewState(15.0, -7.5, TransformMode.DUAL_FISHEYE_TO_EQUIRECT_PARALLEL, 800, 600)
  assert "Warning" not in capsys.readouterr().out


def test_shipped_ini_values_are_read(tmp_path, capsys):
  """Edited values in the bundled config/OCVWarp.ini are picked up."""
  shipped = Path(__file__).resolve().parent.parent / "config" / "OCVWarp.ini"
  tokens = shipped.read_text().split()
  tokens[3] = "25"
  tokens[11] = "1"
  config = tmp_path / "OCVWarp.ini"
  config.write_text("\n".join(tokens) + "\n")

  _assert_defaults(parse_view_config(str(shipped)))
  view = parse_view_config(str(config))

  assert view.anglex == 25.0
  assert view.transform_mode is TransformMode.EQUIRECT_TO_FISHEYE_180
  assert view.output_size == (1920, 1080)
  assert "Warning" not in capsys.readouterr().out


def test_legacy_ini_labels_in_value_slots(tmp_path, capsys):
  """A label where a value belongs is a parse error, reported with a warning."""
  config = tmp_path / "OCVWarp.ini"
  config.write_text("OCVWarp.ini legacy format\nanglex 15\nangley -7.5\noutputw 800\noutputh 600\n"
                    "transformtype 3\n")

  with pytest.raises(ValueError):
    parse_legacy_ini(str(config))
  _assert_defaults(parse_view_config(str(config)))
  assert "using defaults" in capsys.readouterr().out


def test_legacy_ini_too_short(tmp_path):
  config = tmp_path / "short.ini"
  config.write_text("OCVWarp.ini settings anglex:\n15\n")

  with pytest.raises(ValueError):
    parse_legacy_ini(str(config))
  _assert_defaults(parse_view_config(str(config)))


def test_no_config_file():
  _assert_defaults(parse_view_config(None))


def test_save_and_reload(tmp_path):
  view = ViewState(-20.0, 45.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 1024, 1024)
  config = tmp_path / "saved.yaml"

  save_view_config(view, str(config))

  assert parse_view_config(str(config)) == view
