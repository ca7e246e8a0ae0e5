"""Training options with documented defaults."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Sequence

import numpy as np

from ..core.types import Array, NetConfig


@dataclass
class TrainOptions:
    """Options consumed by :class:`smoothnets.training.trainer.Trainer`.

    ``decay_rate`` defaults to ``0.1 ** (1 / rounds)`` so the learning rate
    falls by a factor of ten over a full run. ``momentum`` is clamped to
    ``[0, 1]``. Regularisation fields left as ``None`` keep the network's own
    :class:`NetConfig` values.
    """

    rounds: int = 10000
    start_rate: float = 0.1
    decay_rate: float | None = None
    momentum: float = 0.8
    batch_size: int = 100
    fd_len: float = 0.05
    fuzz_scale: float = 5.0
    weight_bound: float = 4.0
    warmup_rounds: int = 1000
    report_every: int = 100
    eval_samples: int = 1000
    do_validate: bool = False
    Xv: Array | None = None
    Yv: Array | None = None
    lam_l1: float | None = None
    lam_l2: float | None = None
    ord_lams: Sequence[float] | None = None
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.rounds < 1:
            raise ValueError(f"rounds must be positive, got {self.rounds}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.fd_len <= 0:
            raise ValueError(f"fd_len must be positive, got {self.fd_len}")
        if self.decay_rate is None:
            self.decay_rate = 0.1 ** (1.0 / self.rounds)
        self.momentum = min(1.0, max(0.0, float(self.momentum)))
        if self.do_validate and (self.Xv is None or self.Yv is None):
            raise ValueError("Validation set required for doing validation.")
        if self.Xv is not None:
            self.Xv = np.asarray(self.Xv, dtype=np.float64)
        if self.Yv is not None:
            self.Yv = np.asarray(self.Yv, dtype=np.float64)

    @classmethod
    def from_mapping(cls, opts: "Mapping[str, Any] | TrainOptions | None" = None) -> "TrainOptions":
        """Fill missing options with defaults; unknown keys are an error."""

        if isinstance(opts, TrainOptions):
            return opts
        opts = dict(opts or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(opts) - known)
        if unknown:
            raise KeyError(f"Unknown training options: {', '.join(unknown)}")
        return cls(**opts)

    def net_config(self, base: NetConfig) -> NetConfig:
        """Overlay the regularisation options on ``base``."""

        overrides: dict[str, Any] = {}
        if self.lam_l1 is not None:
            overrides["lam_l1"] = float(self.lam_l1)
        if self.lam_l2 is not None:
            overrides["lam_l2"] = float(self.lam_l2)
        if self.ord_lams is not None:
            overrides["ord_lams"] = tuple(self.ord_lams)
        return replace(base, **overrides) if overrides else base


__all__ = ["TrainOptions"]
