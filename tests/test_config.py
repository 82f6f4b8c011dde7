# tests/test_config.py
import pytest

from folio import config


def test_defaults_without_a_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg, path = config.load_config_with_path()

    assert path is None
    assert cfg.database_path == str((tmp_path / "folio.db").resolve())
    assert cfg.max_depth == config.DEFAULT_MAX_DEPTH
    assert cfg.supported_classes == ["image"]
    assert cfg.page_size == 24


def test_values_come_from_the_tool_table(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "folio.toml").write_text("""
[tool.folio]
database_path = "data/tree.db"
max_depth = 16
supported_classes = ["image", "video"]
page_size = 5
""")
    cfg, path = config.load_config_with_path()

    assert path == tmp_path / "folio.toml"
    assert cfg.database_path == str((tmp_path / "data" / "tree.db").resolve())
    assert cfg.max_depth == 16
    assert cfg.supported_classes == ["image", "video"]
    assert cfg.page_size == 5


def test_unknown_classes_are_rejected(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "folio.toml").write_text('[tool.folio]\nsupported_classes = ["hologram"]\n')
    with pytest.raises(ValueError, match="hologram"):
        config.load_config()
