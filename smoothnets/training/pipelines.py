"""Pipeline assembly: dataset, network, trainer and run artifacts."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np

from ..core.network import Network
from ..core.types import NetConfig, RunResult
from ..data import registry
from ..reporting.artifacts import config_hash, write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .config import TrainOptions
from .metrics import default_metrics
from .trainer import Trainer, check_grad

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-fd": {
        "data": {
            "name": "blobs",
            "options": {"n_points": 600, "n_classes": 3, "dim": 2, "seed": 0},
        },
        "model": {
            "hidden": [32, 32],
            "activation": "tanh",
            "loss": "mcl2h",
            "wt_scale": 0.5,
            "b_scale": 0.1,
            "ord_lams": [0.1, 0.1],
            "drop_hidden": 0.5,
        },
        "train": {
            "rounds": 3000,
            "start_rate": 0.1,
            "batch_size": 100,
            "fd_len": 0.05,
            "report_every": 100,
            "do_validate": True,
            "seed": 7,
            "run_dir": "runs/blobs-fd",
            "enable_plots": False,
        },
    },
    "sine-fd": {
        "data": {
            "name": "sine",
            "options": {"n_points": 256, "freq": 1.0, "noise": 0.05, "seed": 0},
        },
        "model": {
            "hidden": [16],
            "activation": "tanh",
            "loss": "lsq",
            "wt_scale": 0.5,
            "b_scale": 0.1,
            "ord_lams": [0.0, 0.05],
            "drop_hidden": 0.0,
        },
        "train": {
            "rounds": 2000,
            "start_rate": 0.1,
            "batch_size": 64,
            "fd_len": 0.02,
            "warmup_rounds": 200,
            "report_every": 100,
            "do_validate": True,
            "seed": 3,
            "run_dir": "runs/sine-fd",
            "enable_plots": False,
        },
    },
    "blobs-smoke": {
        "data": {
            "name": "blobs",
            "options": {"n_points": 120, "n_classes": 3, "dim": 2, "seed": 0},
        },
        "model": {
            "hidden": [8],
            "activation": "tanh",
            "loss": "mclr",
            "wt_scale": 0.5,
            "b_scale": 0.1,
            "ord_lams": [0.1, 0.1],
            "drop_hidden": 0.5,
        },
        "train": {
            "rounds": 20,
            "batch_size": 32,
            "warmup_rounds": 5,
            "report_every": 5,
            "do_validate": True,
            "seed": 1,
            "run_dir": "runs/blobs-smoke",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_PIPELINE_TRAIN_KEYS = {"run_dir", "enable_plots", "summary_tail"}
_MODEL_KEYS = {"layer_sizes", "d_in", "hidden", "d_out", "activation", "loss", "wt_scale", "b_scale"}
_NET_CONFIG_KEYS = {f.name for f in fields(NetConfig)}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Load a JSON or YAML mapping from ``path``."""

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        data = yaml.safe_load(path.read_text()) or {}
    elif suffix == ".json":
        data = json.loads(path.read_text() or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"{path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    found: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return found
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = read_config_file(file)
        missing = {"data", "model", "train"} - set(data)
        if missing:
            raise KeyError(f"Preset {file.name} is missing sections: {', '.join(sorted(missing))}")
        found[file.stem] = json.loads(json.dumps(data))
    return found


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, Any]:
    available = presets()
    try:
        return deepcopy(dict(available[name]))
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}. Available presets: {', '.join(sorted(available))}") from exc


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``override`` onto a copy of ``base``."""

    merged = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def build_network(
    model_cfg: Mapping[str, Any], d_in: int, d_out: int, rng: np.random.Generator
) -> Network:
    """Build and initialise the network described by a ``model`` config section."""

    unknown = set(model_cfg) - _MODEL_KEYS - _NET_CONFIG_KEYS
    if unknown:
        raise KeyError(f"Unknown model options: {', '.join(sorted(unknown))}")
    if "layer_sizes" in model_cfg:
        sizes = [int(s) for s in model_cfg["layer_sizes"]]  # type: ignore[union-attr]
        if sizes[0] != d_in or sizes[-1] != d_out:
            raise ValueError(
                f"layer_sizes {sizes} do not match the dataset's {d_in} inputs and {d_out} outputs"
            )
    else:
        hidden = [int(h) for h in model_cfg.get("hidden", [])]  # type: ignore[union-attr]
        sizes = [int(model_cfg.get("d_in", d_in))] + hidden + [int(model_cfg.get("d_out", d_out))]
    net_config = NetConfig(**{k: v for k, v in model_cfg.items() if k in _NET_CONFIG_KEYS})
    network = Network(
        sizes,
        activation=str(model_cfg.get("activation", "tanh")),
        loss=str(model_cfg.get("loss", "lsq")),
        config=net_config,
    )
    b_scale = model_cfg.get("b_scale")
    network.init_weights(
        float(model_cfg.get("wt_scale", 0.5)),
        None if b_scale is None else float(b_scale),  # type: ignore[arg-type]
        rng=rng,
    )
    return network


def _split_train_config(train_cfg: Mapping[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    pipeline_opts = {k: v for k, v in train_cfg.items() if k in _PIPELINE_TRAIN_KEYS}
    train_opts = {k: v for k, v in train_cfg.items() if k not in _PIPELINE_TRAIN_KEYS}
    return train_opts, pipeline_opts


def _prepare(config: Mapping[str, Any]):
    missing = {"data", "model", "train"} - set(config)
    if missing:
        raise KeyError(f"Config is missing sections: {', '.join(sorted(missing))}")
    data_cfg = config["data"]
    dataset = registry.get(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    train_opts, pipeline_opts = _split_train_config(config["train"])
    seed = train_opts.get("seed")
    rng = np.random.default_rng(seed)
    network = build_network(config["model"], dataset.d_in, dataset.d_out, rng)
    if train_opts.get("do_validate"):
        if dataset.Xv is None:
            raise ValueError("Validation set required for doing validation.")
        train_opts["Xv"], train_opts["Yv"] = dataset.Xv, dataset.Yv
    options = TrainOptions.from_mapping(train_opts)
    return dataset, network, options, pipeline_opts, rng


def run_pipeline(config: Mapping[str, Any]) -> RunResult:
    """Train the configured network and write metrics, manifest and summary."""

    dataset, network, options, pipeline_opts, rng = _prepare(config)
    run_id = config_hash(config)
    run_dir = Path(str(pipeline_opts.get("run_dir") or Path("runs") / run_id))
    run_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        "Run %s: dataset=%s layers=%s loss=%s rounds=%d ord_lams=%s",
        run_id,
        dataset.name,
        network.layer_sizes,
        network.loss.name,
        options.rounds,
        list(options.net_config(network.config).ord_lams),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=options.seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(pipeline_opts.get("enable_plots", False)))
    trainer = Trainer(
        network,
        callbacks=[jsonl, csv_sink, plots],
        metric_names=default_metrics(dataset.task_type),
        rng=rng,
    )
    report = trainer.run(dataset.X, dataset.Y, options)
    plots.close()

    manifest_path = write_manifest(
        run_dir / "manifest.json",
        config=config,
        dataset_provenance={"name": dataset.name, **dataset.provenance},
        model={**asdict(network.describe()), "net_config": asdict(report.config)},
    )
    summary_path = write_summary(
        jsonl.path,
        run_dir / "summary.json",
        tail=int(pipeline_opts.get("summary_tail", 32)),
    )
    (run_dir / "config.json").write_text(json.dumps(config, indent=2, default=str))
    np.save(run_dir / "weights.npy", network.vector_weights())

    return RunResult(
        steps=report.rounds,
        metrics_path=str(jsonl.path),
        manifest_path=manifest_path,
        summary_path=summary_path,
    )


def run_grad_check(config: Mapping[str, Any], grad_checks: int) -> List[float]:
    """Run ``grad_checks`` derivative checks on the configured, untrained network."""

    dataset, network, options, _, rng = _prepare(config)
    return check_grad(network, dataset.X, dataset.Y, grad_checks, options, rng=rng)


__all__ = [
    "build_network",
    "load_preset",
    "merge_config",
    "presets",
    "read_config_file",
    "run_grad_check",
    "run_pipeline",
]
