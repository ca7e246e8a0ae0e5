"""Feed-forward networks regularised by finite-difference curvature penalties."""

from .core.activations import Activation
from .core.layer import Layer
from .core.network import Network
from .core.objective import JointObjective
from .core.types import LossBreakdown, NetConfig, RunResult, WeightSet
from .training.config import TrainOptions
from .training.trainer import Trainer, check_grad

__version__ = "0.1.0"

__all__ = [
    "Activation",
    "JointObjective",
    "Layer",
    "LossBreakdown",
    "NetConfig",
    "Network",
    "RunResult",
    "TrainOptions",
    "Trainer",
    "WeightSet",
    "check_grad",
]
