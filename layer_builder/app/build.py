from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from stagekit import StageChain

from layer_builder.foundation.config_io import load_config
from layer_builder.foundation.logging_utils import setup_operational_logger, timed_step
from layer_builder.framework.config import BuildConfig
from layer_builder.framework.history import append_history_row, utc_now_iso8601
from layer_builder.framework.ledger import CommitLedger
from layer_builder.framework.runtime import BuildContext, ContainerRuntime
from layer_builder.framework.sidecar import SidecarTooling
from layer_builder.impl.docker import DockerRuntime
from layer_builder.impl.git_repo import GitRepository
from layer_builder.impl.remote_repo import RemoteGitRepository
from layer_builder.stages import (
    ArchiveSourceStage,
    FromStage,
    LatestSourceStage,
    PatchSizeSourceStage,
    PatchSourceStage,
    ShellStage,
    Stage,
)

StageStatus = Literal["built", "cached", "failed", "planned"]


@dataclass(frozen=True)
class StageResult:
    stage: str
    signature: str | None
    image_tag: str | None
    status: StageStatus
    duration_s: float


def generate_build_id() -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{timestamp}_{uuid.uuid4().hex[:8]}"


def create_context(
    cfg: BuildConfig,
    *,
    logger: logging.Logger,
    build_id: str | None = None,
    runtime: ContainerRuntime | None = None,
) -> BuildContext:
    runtime = runtime or DockerRuntime(cfg.docker_binary, logger=logger)
    repositories = [
        (RemoteGitRepository if repo.is_remote else GitRepository)(repo, build_dir=cfg.build_dir)
        for repo in cfg.repositories
    ]
    return BuildContext(
        build_id=build_id or generate_build_id(),
        cfg=cfg,
        logger=logger,
        runtime=runtime,
        ledger=CommitLedger(cfg.build_dir),
        sidecar=SidecarTooling(
            runtime, image=cfg.sidecar.image, volume=cfg.sidecar.volume, logger=logger
        ),
        created_at=utc_now_iso8601(),
        repositories=list(repositories),
    )


def build_plan(ctx: BuildContext) -> StageChain:
    """Default stage layout; shell stages alternate with source stages."""

    cfg = ctx.cfg
    return StageChain(
        [
            FromStage("from", ctx),
            ShellStage("before_install", ctx),
            ArchiveSourceStage("source_1_archive", ctx),
            PatchSourceStage(
                "source_1", ctx, dependencies=cfg.shell_stage("install").dependencies
            ),
            ShellStage("install", ctx),
            PatchSourceStage(
                "source_2", ctx, dependencies=cfg.shell_stage("before_setup").dependencies
            ),
            ShellStage("before_setup", ctx),
            PatchSourceStage("source_3", ctx, dependencies=cfg.shell_stage("setup").dependencies),
            ShellStage("setup", ctx),
            PatchSizeSourceStage("source_4", ctx),
            LatestSourceStage("source_5", ctx),
        ]
    )


def _record(ctx: BuildContext, result: StageResult, error: str = "") -> None:
    append_history_row(
        ctx.cfg.history_path,
        {
            "build_id": ctx.build_id,
            "stage": result.stage,
            "signature": result.signature or "",
            "image_tag": result.image_tag or "",
            "status": result.status,
            "duration_s": f"{result.duration_s:.3f}",
            "error": error,
        },
    )


def run_build(
    ctx: BuildContext,
    chain: StageChain | None = None,
    *,
    dry_run: bool = False,
) -> list[StageResult]:
    """Walk the chain in order, building every stage whose layer is not cached.

    A failing stage aborts the build: it is recorded as ``failed`` and the
    exception propagates. With `dry_run`, signatures and cache status are
    computed but nothing is built.
    """

    chain = chain if chain is not None else build_plan(ctx)
    logger = ctx.logger
    results: list[StageResult] = []

    for stage in chain:
        if not isinstance(stage, Stage):
            raise TypeError(f"Unsupported stage type in chain: {type(stage).__name__}")

        start = time.monotonic()
        signature: str | None = None
        tag: str | None = None
        try:
            signature = stage.signature()
            tag = stage.image_tag
            if stage.is_cached():
                status: StageStatus = "cached"
                logger.info("[%s] cached %s", stage.name, tag)
            elif dry_run:
                status = "planned"
                logger.info("[%s] would build %s", stage.name, tag)
            else:
                with timed_step(logger, f"[{stage.name}] building {tag}"):
                    stage.build()
                    stage.save_in_cache()
                status = "built"
        except Exception as exc:
            failed = StageResult(stage.name, signature, tag, "failed", time.monotonic() - start)
            logger.error("[%s] stage failed: %s", stage.name, exc)
            try:
                _record(ctx, failed, error=f"{type(exc).__name__}: {exc}")
            except Exception as record_exc:
                logger.warning("[%s] could not record failure in history: %s", stage.name, record_exc)
            raise

        result = StageResult(stage.name, signature, tag, status, time.monotonic() - start)
        results.append(result)
        if not dry_run:
            _record(ctx, result)

    return results


def load_build_config(config_path: str | None = None) -> tuple[BuildConfig, dict[str, Any]]:
    raw, meta = load_config(config_path=config_path)
    base_dir = meta.get("repo_root") or os.path.dirname(meta["paths"][0])
    return BuildConfig.from_dict(raw, base_dir=base_dir), meta


def run(config_path: str | None = None, *, dry_run: bool = False) -> list[StageResult]:
    cfg, meta = load_build_config(config_path)
    build_id = generate_build_id()
    logger, _ = setup_operational_logger(cfg.log_dir, build_id)
    logger.info("Loaded config (%s): %s", meta["mode"], ", ".join(meta["paths"]))

    ctx = create_context(cfg, logger=logger, build_id=build_id)
    os.makedirs(cfg.build_dir, exist_ok=True)
    results = run_build(ctx, dry_run=dry_run)

    built = sum(1 for r in results if r.status == "built")
    cached = sum(1 for r in results if r.status == "cached")
    logger.info("Build %s finished: %d built, %d cached", build_id, built, cached)
    if results and results[-1].image_tag:
        logger.info("Final image: %s", results[-1].image_tag)
    return results
