import os

import pytest

from layer_builder.foundation.config_io import find_repo_root, load_config

ENV_VAR = "TEST_LAYER_BUILDER_CONFIG"


def test_load_config_base_only(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("a: 1\nb:\n  c: 2\n", encoding="utf-8")

    cfg, meta = load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert cfg == {"a": 1, "b": {"c": 2}}
    assert meta["mode"] == "base"
    assert os.path.basename(meta["paths"][0]) == "config.yaml"


def test_load_config_base_plus_local_overlay(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("a: 1\nb:\n  c: 2\n  l: [1]\n", encoding="utf-8")
    (tmp_path / "config.local.yaml").write_text("b:\n  c: 3\n  d: 4\n  l: [5, 6]\n", encoding="utf-8")

    cfg, meta = load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert cfg == {"a": 1, "b": {"c": 3, "d": 4, "l": [5, 6]}}
    assert meta["mode"] == "base+local"
    assert len(meta["paths"]) == 2


def test_load_config_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("a:\n  b: 1\n", encoding="utf-8")
    (tmp_path / "config.local.yaml").write_text("a: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"Invalid config overlay merge at a"):
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)


def test_load_config_invalid_yaml_names_the_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    (tmp_path / "config.yaml").write_text("a: 1\n", encoding="utf-8")
    (tmp_path / "config.local.yaml").write_text("a: [1, 2\n", encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)

    assert "config.local.yaml" in str(excinfo.value)


def test_env_var_selects_a_single_file(tmp_path, monkeypatch):
    explicit = tmp_path / "ci.yaml"
    explicit.write_text("project:\n  name: ci\n", encoding="utf-8")
    monkeypatch.setenv(ENV_VAR, str(explicit))

    cfg, meta = load_config(config_dir=str(tmp_path / "unused"), env_var=ENV_VAR)

    assert cfg == {"project": {"name": "ci"}}
    assert meta["mode"] == "env"
    assert meta["paths"] == [str(explicit)]


def test_non_mapping_config_is_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"must contain a YAML mapping"):
        load_config(config_path=str(path))


def test_missing_base_config_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    with pytest.raises(FileNotFoundError, match=r"Missing base config file"):
        load_config(config_dir=str(tmp_path), env_var=ENV_VAR)


def test_find_repo_root_walks_up_to_marker(tmp_path):
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_repo_root(nested) == str(tmp_path.resolve())
