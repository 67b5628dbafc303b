import json

import pytest

from mandelgrid.config import DEFAULTS, ConfigError, load_config, normalise_config


def test_defaults_without_path():
    cfg = load_config(None)
    assert cfg == DEFAULTS
    assert cfg is not DEFAULTS


def test_defaults_follow_original_render():
    cfg = normalise_config(load_config(None))
    assert (cfg["width"], cfg["height"]) == (4000, 3000)
    assert cfg["viewport"] is None
    assert cfg["base_extent"] == 3.5
    assert cfg["cap"] == 254
    assert cfg["output"] == "image.pgm"


def test_load_json(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"width": 320, "height": 200, "cap": 100, "bound": "circle"}), encoding="utf-8")
    cfg = normalise_config(load_config(str(path)))
    assert cfg["width"] == 320
    assert cfg["cap"] == 100
    assert cfg["bound"] == "circle"
    assert cfg["anchor"] == "corner"


def test_non_object_json_rejected(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_unknown_field_rejected(tmp_path):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"zoom": 4}), encoding="utf-8")
    with pytest.raises(ConfigError, match="zoom"):
        load_config(str(path))


def test_values_are_coerced():
    cfg = normalise_config({"width": "640", "height": 480.0, "viewport": [4, "3"], "workers": 2})
    assert cfg["width"] == 640
    assert cfg["height"] == 480
    assert cfg["viewport"] == [4.0, 3.0]
    assert cfg["workers"] == 2


@pytest.mark.parametrize("override", [
    {"width": 0},
    {"height": -3},
    {"width": 1.5},
    {"width": True},
    {"width": "wide"},
    {"viewport": [4.0]},
    {"viewport": [4.0, 0.0]},
    {"viewport": "4x3"},
    {"base_extent": -1},
    {"cap": 256},
    {"cap": -1},
    {"bound": "square"},
    {"anchor": "middle"},
    {"backend": "opencl"},
    {"tile_size": 0},
    {"workers": 0},
])
def test_invalid_values_rejected(override):
    with pytest.raises(ConfigError):
        normalise_config(override)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
