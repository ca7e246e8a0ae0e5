"""Command line entry point for smoothnets training runs."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from pathlib import Path
from typing import Iterable

from smoothnets.core.types import RunResult
from smoothnets.logging_config import setup_logging
from smoothnets.reporting.artifacts import config_hash
from smoothnets.training import pipelines


def _format_result(result: RunResult, run_id: str) -> str:
    return json.dumps({**asdict(result), "run_id": run_id}, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=sorted(pipelines.presets().keys()),
        default="blobs-fd",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--seed", type=int, help="Seed used for training")
    parser.add_argument("--rounds", type=int, help="Override the number of training rounds")
    parser.add_argument("--enable-plots", action="store_true", help="Plot the loss breakdown")
    parser.add_argument(
        "--grad-check",
        type=int,
        metavar="N",
        help="Run N gradient checks on the initial network instead of training",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> dict:
    config = pipelines.load_preset(args.preset)
    if args.config:
        override = dict(pipelines.read_config_file(args.config))
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)

    train = config.setdefault("train", {})
    if args.enable_plots:
        train["enable_plots"] = True
    if args.seed is not None:
        train["seed"] = int(args.seed)
    if args.rounds is not None:
        train["rounds"] = int(args.rounds)
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    setup_logging("smoothnets", args.log_level)
    config = resolve_config(args)
    run_id = config_hash(config)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    if args.grad_check:
        discrepancies = pipelines.run_grad_check(config, args.grad_check)
        print(json.dumps({"grad_checks": discrepancies, "run_id": run_id}, sort_keys=True))
        return

    result = pipelines.run_pipeline(config)
    print(_format_result(result, run_id=run_id))


if __name__ == "__main__":
    main()
