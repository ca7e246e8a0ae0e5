"""Loss-breakdown plots, written only when explicitly enabled."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Tuple

LOSS_CURVES = (
    ("loss", "total"),
    ("out_loss", "output"),
    ("fd_loss", "curvature"),
    ("reg_loss", "regularisation"),
)


class PlotAdapter:
    """Collect the loss breakdown at every report and plot it on close."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: Dict[str, List[Tuple[int, float]]] = {}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        for key, _ in LOSS_CURVES:
            if key in metrics:
                self._history.setdefault(key, []).append((int(step), float(metrics[key])))

    __call__ = on_step

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt

        fig, ax = plt.subplots()
        for key, label in LOSS_CURVES:
            points = self._history.get(key)
            if not points:
                continue
            rounds, values = zip(*points)
            ax.plot(rounds, values, label=label)
        ax.set_xlabel("Round")
        ax.set_ylabel("Loss")
        ax.set_yscale("symlog", linthresh=1e-4)
        ax.set_title("Loss breakdown")
        ax.legend()
        plot_path = self.run_dir / "loss.png"
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path


__all__ = ["LOSS_CURVES", "PlotAdapter"]
