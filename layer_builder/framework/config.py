from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from layer_builder.framework.config_namespace import ConfigNamespace

SHELL_STAGE_NAMES: tuple[str, ...] = ("before_install", "install", "before_setup", "setup")

DEFAULT_SIDECAR_IMAGE = "dappdeps/gitartifact:0.1.3"
DEFAULT_SIDECAR_VOLUME = "/.dapp/deps/gitartifact"
DEFAULT_MAX_PATCH_SIZE = 1024 * 1024

_PROJECT_NAME_RE = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$")


@dataclass(frozen=True)
class ShellStageConfig:
    commands: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True)
class RepositoryConfig:
    name: str
    path: str | None
    to: str
    branch: str = "HEAD"
    include_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    owner: str | None = None
    group: str | None = None
    url: str | None = None
    tag: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.url is not None


@dataclass(frozen=True)
class SidecarConfig:
    image: str = DEFAULT_SIDECAR_IMAGE
    volume: str = DEFAULT_SIDECAR_VOLUME


@dataclass(frozen=True)
class BuildConfig:
    project_name: str
    project_dir: str
    build_dir: str
    log_dir: str
    history_path: str
    from_image: str
    from_cache_version: str = ""
    stages: Mapping[str, ShellStageConfig] = field(default_factory=dict)
    repositories: tuple[RepositoryConfig, ...] = ()
    max_patch_size: int = DEFAULT_MAX_PATCH_SIZE
    sidecar: SidecarConfig = field(default_factory=SidecarConfig)
    docker_binary: str = "docker"

    def shell_stage(self, name: str) -> ShellStageConfig:
        return self.stages.get(name, ShellStageConfig())

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any], *, base_dir: str | None = None) -> "BuildConfig":
        """
        Parse the raw YAML mapping.

        Relative paths resolve against `base_dir` (defaults to the current
        directory). Unknown keys anywhere in the tree raise ValueError.
        """

        root = ConfigNamespace(cfg, path="")
        base = os.path.abspath(base_dir or os.getcwd())

        def resolve(path: str) -> str:
            expanded = os.path.expandvars(os.path.expanduser(path))
            return expanded if os.path.isabs(expanded) else os.path.normpath(os.path.join(base, expanded))

        project = root.namespace("project", required=True)
        project_name = project.get_str("name")
        if not _PROJECT_NAME_RE.match(project_name or ""):
            raise ValueError(
                f"project.name must be a valid image repository name (got {project_name!r})"
            )
        project_dir = resolve(project.get_str("dir", default="."))
        build_dir = resolve(project.get_str("build_dir", default=".layer_builder/build"))
        log_dir = resolve(project.get_str("log_dir", default=".layer_builder/logs"))
        history_path = resolve(
            project.get_str("history_path", default=".layer_builder/build_history.csv")
        )

        image = root.namespace("image", required=True)
        from_image = image.get_str("from")
        from_cache_version = image.get_token("from_cache_version", default="")

        stages_ns = root.namespace("stages")
        stages: dict[str, ShellStageConfig] = {}
        for name in SHELL_STAGE_NAMES:
            stage_ns = stages_ns.namespace(name)
            stages[name] = ShellStageConfig(
                commands=tuple(stage_ns.get_list_str("commands", default=[])),
                dependencies=tuple(stage_ns.get_list_str("dependencies", default=[])),
            )

        source = root.namespace("source")
        max_patch_size = source.get_int("max_patch_size", default=DEFAULT_MAX_PATCH_SIZE, min_value=1)

        repositories: list[RepositoryConfig] = []
        seen: set[str] = set()
        for repo_ns in root.get_list_mapping("repositories", default=[]):
            path = repo_ns.get_str("path", default=None)
            url = repo_ns.get_str("url", default=None)
            if (path is None) == (url is None):
                raise ValueError(f"{repo_ns.path}: exactly one of path or url must be set")
            branch = repo_ns.get_str("branch", default=None)
            tag = repo_ns.get_str("tag", default=None)
            if branch is not None and tag is not None:
                raise ValueError(f"{repo_ns.path}: branch and tag are mutually exclusive")

            repo = RepositoryConfig(
                name=repo_ns.get_str("name"),
                path=resolve(path) if path is not None else None,
                to=repo_ns.get_str("to"),
                branch=branch or "HEAD",
                include_paths=tuple(repo_ns.get_list_str("include_paths", default=[])),
                exclude_paths=tuple(repo_ns.get_list_str("exclude_paths", default=[])),
                owner=repo_ns.get_str("owner", default=None),
                group=repo_ns.get_str("group", default=None),
                url=url,
                tag=tag,
            )
            if not repo.to.startswith("/"):
                raise ValueError(f"{repo_ns.path}.to must be an absolute path (got {repo.to!r})")
            if repo.name in seen:
                raise ValueError(f"Duplicate repository name: {repo.name}")
            seen.add(repo.name)
            repositories.append(repo)

        sidecar_ns = root.namespace("sidecar")
        sidecar = SidecarConfig(
            image=sidecar_ns.get_str("image", default=DEFAULT_SIDECAR_IMAGE),
            volume=sidecar_ns.get_str("volume", default=DEFAULT_SIDECAR_VOLUME),
        )
        if not sidecar.volume.startswith("/"):
            raise ValueError(f"sidecar.volume must be an absolute path (got {sidecar.volume!r})")

        docker = root.namespace("docker")
        docker_binary = docker.get_str("binary", default="docker")

        root.assert_consumed()

        return cls(
            project_name=project_name,
            project_dir=project_dir,
            build_dir=build_dir,
            log_dir=log_dir,
            history_path=history_path,
            from_image=from_image,
            from_cache_version=from_cache_version or "",
            stages=stages,
            repositories=tuple(repositories),
            max_patch_size=max_patch_size,
            sidecar=sidecar,
            docker_binary=docker_binary,
        )
