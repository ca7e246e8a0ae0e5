"""Training loop, options and pipeline assembly."""

from .config import TrainOptions
from .pipelines import load_preset, presets, run_grad_check, run_pipeline
from .trainer import MomentumSGD, TrainReport, Trainer, check_grad

__all__ = [
    "MomentumSGD",
    "TrainOptions",
    "TrainReport",
    "Trainer",
    "check_grad",
    "load_preset",
    "presets",
    "run_grad_check",
    "run_pipeline",
]
