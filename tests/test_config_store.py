import json

import pytest

from packages.core.errors import ConfigError
from packages.shared.store import ConfigStore


def _server(sid, **kw):
    data = {
        "id": sid,
        "title": sid.upper(),
        "type": "command",
        "command": "ollama serve",
        "workingDir": "C:\\Tools",
        "display": {"colorScheme": "One Half Dark", "position": {"x": 0, "y": 0, "width": 100, "height": 25}},
    }
    data.update(kw)
    return data


def _write(tmp_path, doc):
    path = tmp_path / "launcher.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


def test_loads_global_config_and_servers(tmp_path):
    path = _write(tmp_path, {
        "config": {"logLevel": "DEBUG", "maxLogFiles": 3, "layouts": {"pair": [{"x": 0, "y": 0}, {"x": 960, "y": 0}]}},
        "servers": [_server("ollama"), _server("mail", type="python", command="mail.py", venv="C:\\venvs\\mail")],
    })

    cfg = ConfigStore(path).load()

    assert cfg.config.log_level == "DEBUG"
    assert cfg.config.max_log_files == 3
    assert [s.id for s in cfg.servers] == ["ollama", "mail"]
    assert cfg.servers[1].working_dir == "C:\\Tools"
    assert cfg.servers[1].venv == "C:\\venvs\\mail"
    assert cfg.servers[0].active is True


def test_layout_positions_fall_back_to_default_window(tmp_path):
    path = _write(tmp_path, {
        "config": {
            "defaultWindow": {"width": 90, "height": 20, "colorScheme": "Vintage"},
            "layouts": {"pair": [{"x": 0, "y": 0}, {"x": 960, "y": 0, "width": 150}]},
        },
        "servers": [],
    })

    positions = ConfigStore(path).load().config.layout_positions("pair")

    assert [(p.x, p.width, p.height) for p in positions] == [(0, 90, 20), (960, 150, 20)]


def test_bad_server_entry_is_dropped_and_rest_load(tmp_path):
    bad = _server("broken")
    del bad["display"]
    path = _write(tmp_path, {"servers": [_server("a"), bad, _server("b")]})

    store = ConfigStore(path)
    cfg = store.load()

    assert [s.id for s in cfg.servers] == ["a", "b"]
    assert [label for label, _ in store.rejected] == ["broken"]
    assert "display" in store.rejected[0][1]


def test_unknown_type_and_duplicate_id_are_rejected(tmp_path):
    path = _write(tmp_path, {"servers": [_server("a"), _server("a"), _server("c", type="docker")]})

    store = ConfigStore(path)
    cfg = store.load()

    assert [s.id for s in cfg.servers] == ["a"]
    assert store.rejected[0] == ("a", "duplicate id")
    assert store.rejected[1][0] == "c"


def test_entry_without_id_is_labelled_by_index(tmp_path):
    nameless = _server("x")
    del nameless["id"]
    path = _write(tmp_path, {"servers": [nameless]})

    store = ConfigStore(path)
    store.load()

    assert store.rejected[0][0] == "#0"


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        ConfigStore(tmp_path / "nope.json").load()


def test_malformed_json_is_fatal(tmp_path):
    path = tmp_path / "launcher.json"
    path.write_text("{ servers: [", encoding="utf-8")

    with pytest.raises(ConfigError, match="Malformed"):
        ConfigStore(path).load()


def test_invalid_config_section_is_fatal(tmp_path):
    path = _write(tmp_path, {"config": {"logLevel": "LOUD"}, "servers": []})

    with pytest.raises(ConfigError, match="config"):
        ConfigStore(path).load()
