import os

import pytest

from layer_builder.framework.config import (
    DEFAULT_MAX_PATCH_SIZE,
    DEFAULT_SIDECAR_IMAGE,
    BuildConfig,
)


def _cfg_dict(**overrides):
    cfg = {
        "project": {"name": "demo"},
        "image": {"from": "alpine:3.19"},
        "repositories": [{"name": "app", "path": "src", "to": "/app"}],
    }
    cfg.update(overrides)
    return cfg


def test_minimal_config_uses_defaults(tmp_path):
    cfg = BuildConfig.from_dict(_cfg_dict(), base_dir=str(tmp_path))

    assert cfg.project_name == "demo"
    assert cfg.from_image == "alpine:3.19"
    assert cfg.from_cache_version == ""
    assert cfg.build_dir == os.path.join(str(tmp_path), ".layer_builder", "build")
    assert cfg.max_patch_size == DEFAULT_MAX_PATCH_SIZE
    assert cfg.sidecar.image == DEFAULT_SIDECAR_IMAGE
    assert cfg.docker_binary == "docker"
    assert cfg.shell_stage("install").commands == ()

    (repo,) = cfg.repositories
    assert repo.path == os.path.join(str(tmp_path), "src")
    assert repo.branch == "HEAD"


def test_stage_commands_and_dependencies_are_parsed(tmp_path):
    cfg = BuildConfig.from_dict(
        _cfg_dict(
            stages={
                "install": {"commands": ["pip install -r requirements.txt"], "dependencies": ["requirements*.txt"]},
                "setup": {"commands": ["make"]},
            }
        ),
        base_dir=str(tmp_path),
    )

    assert cfg.shell_stage("install").commands == ("pip install -r requirements.txt",)
    assert cfg.shell_stage("install").dependencies == ("requirements*.txt",)
    assert cfg.shell_stage("setup").commands == ("make",)
    assert cfg.shell_stage("before_setup").commands == ()


def test_unknown_keys_are_rejected(tmp_path):
    with pytest.raises(ValueError, match=r"Unknown config keys under project: nmae"):
        BuildConfig.from_dict(
            _cfg_dict(project={"name": "demo", "nmae": "typo"}), base_dir=str(tmp_path)
        )


def test_unknown_stage_is_rejected(tmp_path):
    with pytest.raises(ValueError, match=r"Unknown config keys under stages: deploy"):
        BuildConfig.from_dict(_cfg_dict(stages={"deploy": {"commands": ["x"]}}), base_dir=str(tmp_path))


def test_unknown_repository_key_is_rejected(tmp_path):
    repos = [{"name": "app", "path": "src", "to": "/app", "submodules": True}]
    with pytest.raises(ValueError, match=r"repositories\[0\]: submodules"):
        BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))


def test_missing_base_image_is_reported(tmp_path):
    with pytest.raises(ValueError, match=r"Missing required config key: image\.from"):
        BuildConfig.from_dict(_cfg_dict(image={}), base_dir=str(tmp_path))


def test_relative_target_path_is_rejected(tmp_path):
    repos = [{"name": "app", "path": "src", "to": "app"}]
    with pytest.raises(ValueError, match=r"must be an absolute path"):
        BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))


def test_duplicate_repository_names_are_rejected(tmp_path):
    repos = [
        {"name": "app", "path": "a", "to": "/a"},
        {"name": "app", "path": "b", "to": "/b"},
    ]
    with pytest.raises(ValueError, match=r"Duplicate repository name: app"):
        BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))


def test_invalid_project_name_is_rejected(tmp_path):
    with pytest.raises(ValueError, match=r"project\.name must be a valid image repository name"):
        BuildConfig.from_dict(_cfg_dict(project={"name": "My Project"}), base_dir=str(tmp_path))


def test_patch_size_must_be_positive(tmp_path):
    with pytest.raises(ValueError, match=r"source\.max_patch_size must be >= 1"):
        BuildConfig.from_dict(_cfg_dict(source={"max_patch_size": 0}), base_dir=str(tmp_path))


def test_wrong_types_are_reported_with_their_path(tmp_path):
    with pytest.raises(TypeError, match=r"stages\.install\.commands must be a list\[str\]"):
        BuildConfig.from_dict(
            _cfg_dict(stages={"install": {"commands": "make"}}), base_dir=str(tmp_path)
        )


def test_unquoted_cache_version_is_read_as_text(tmp_path):
    cfg = BuildConfig.from_dict(
        _cfg_dict(image={"from": "alpine:3.19", "from_cache_version": 1}), base_dir=str(tmp_path)
    )

    assert cfg.from_cache_version == "1"


def test_boolean_cache_version_is_rejected(tmp_path):
    with pytest.raises(TypeError, match=r"image\.from_cache_version must be a string or int"):
        BuildConfig.from_dict(
            _cfg_dict(image={"from": "alpine:3.19", "from_cache_version": True}),
            base_dir=str(tmp_path),
        )


def test_remote_repository_is_bound_by_url(tmp_path):
    repos = [{"name": "lib", "url": "https://example.com/lib.git", "tag": "v1.2", "to": "/lib"}]
    cfg = BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))

    (repo,) = cfg.repositories
    assert repo.is_remote
    assert repo.path is None
    assert repo.url == "https://example.com/lib.git"
    assert repo.tag == "v1.2"
    assert repo.branch == "HEAD"


@pytest.mark.parametrize(
    "binding",
    [
        {},
        {"path": "src", "url": "https://example.com/lib.git"},
    ],
)
def test_repository_needs_exactly_one_of_path_or_url(tmp_path, binding):
    repos = [{"name": "lib", "to": "/lib", **binding}]
    with pytest.raises(ValueError, match=r"repositories\[0\]: exactly one of path or url"):
        BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))


def test_branch_and_tag_are_mutually_exclusive(tmp_path):
    repos = [{"name": "lib", "path": "src", "branch": "main", "tag": "v1", "to": "/lib"}]
    with pytest.raises(ValueError, match=r"branch and tag are mutually exclusive"):
        BuildConfig.from_dict(_cfg_dict(repositories=repos), base_dir=str(tmp_path))
