from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

from layer_builder.foundation.errors import LayerBuilderError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="layer_builder", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Build the image, reusing cached stage layers")
    build.add_argument("--config", dest="config_path", default=None)
    build.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute signatures and cache status without building",
    )

    plan = sub.add_parser("plan", help="Show stage signatures and cache status")
    plan.add_argument("--config", dest="config_path", default=None)

    report = sub.add_parser("report", help="Summarize the build history per stage")
    report.add_argument("--config", dest="config_path", default=None)

    return parser


def _print_results(results) -> None:
    for result in results:
        print(f"{result.stage:<18} {result.status:<8} {result.image_tag or '-'}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        if args.command in ("build", "plan"):
            from layer_builder.app.build import run

            dry_run = args.command == "plan" or bool(args.dry_run)
            _print_results(run(args.config_path, dry_run=dry_run))
            return 0

        if args.command == "report":
            from layer_builder.app.build import load_build_config
            from layer_builder.framework.history import summarize_history

            cfg, _ = load_build_config(args.config_path)
            summary = summarize_history(cfg.history_path)
            if summary.empty:
                print(f"No builds recorded in {cfg.history_path}")
            else:
                print(summary.to_string(index=False))
            return 0
    except (LayerBuilderError, ValueError, TypeError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
