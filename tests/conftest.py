import logging

import pytest

from layer_builder.foundation.errors import ShellCommandError
from layer_builder.framework.config import BuildConfig, SidecarConfig
from layer_builder.framework.ledger import CommitLedger
from layer_builder.framework.runtime import BuildContext
from layer_builder.framework.sidecar import SidecarTooling
from layer_builder.stages import Stage


class FakeRuntime:
    def __init__(self):
        self.containers: set[str] = set()
        self.images: set[str] = set()
        self.tags: dict[str, str] = {}
        self.built = []
        self.sidecar_runs = []
        self.pulled = []
        self.fail_tag = False

    def inspect(self, name):
        return name in self.containers

    def run_detached_sidecar(self, name, volume, image):
        self.sidecar_runs.append((name, volume, image))
        if name in self.containers:
            return False
        self.containers.add(name)
        return True

    def image_exists(self, tag):
        return tag in self.images

    def pull(self, image):
        self.pulled.append(image)
        self.images.add(image)

    def build(self, image):
        self.built.append(image)
        return f"sha256:{len(self.built):04d}"

    def tag(self, image_id, tag):
        if self.fail_tag:
            raise ShellCommandError(["docker", "tag", image_id, tag], 1, "tag refused")
        self.images.add(tag)
        self.tags[tag] = image_id


class FakeRepo:
    def __init__(self, identity, latest, *, params="params0", commands=None):
        self.identity = identity
        self.latest = latest
        self.params = params
        self.host_working_directory = f"/host/{identity}"
        self.container_path = f"/.layer_builder/git_repos/{identity}"
        self.target_path = f"/app/{identity}"
        self.commands = list(commands or [])
        self.apply_calls = []
        self.latest_calls = 0
        self.patch_sizes = {}

    def latest_commit(self):
        self.latest_calls += 1
        return self.latest

    def params_hash(self):
        return self.params

    def apply_commands(self, stage, method):
        self.apply_calls.append((stage.name, method))
        return list(self.commands)

    def patch_size(self, from_commit, to_commit):
        if from_commit == to_commit:
            return 0
        return self.patch_sizes.get((from_commit, to_commit), 1)


class FixedStage(Stage):
    """Upstream stage with a known signature."""

    def __init__(self, name, ctx, signature):
        super().__init__(name, ctx)
        self._signature = signature

    def signature(self):
        return self._signature


def make_config(tmp_path, **overrides) -> BuildConfig:
    values = dict(
        project_name="demo",
        project_dir=str(tmp_path / "project"),
        build_dir=str(tmp_path / "build"),
        log_dir=str(tmp_path / "logs"),
        history_path=str(tmp_path / "history.csv"),
        from_image="alpine:3.19",
        sidecar=SidecarConfig(image="dappdeps/gitartifact:0.1.3", volume="/.dapp/deps/gitartifact"),
    )
    values.update(overrides)
    return BuildConfig(**values)


def make_context(tmp_path, repos=(), *, runtime=None, **cfg_overrides) -> BuildContext:
    cfg = make_config(tmp_path, **cfg_overrides)
    runtime = runtime or FakeRuntime()
    logger = logging.getLogger("layer_builder.tests")
    return BuildContext(
        build_id="test_build",
        cfg=cfg,
        logger=logger,
        runtime=runtime,
        ledger=CommitLedger(cfg.build_dir),
        sidecar=SidecarTooling(
            runtime, image=cfg.sidecar.image, volume=cfg.sidecar.volume, logger=logger
        ),
        created_at="2026-01-01T00:00:00Z",
        repositories=list(repos),
    )


@pytest.fixture
def fake_runtime():
    return FakeRuntime()
