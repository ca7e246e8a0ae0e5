"""Dataset registry and synthetic datasets."""

# Ensure built-in datasets register themselves when the package is imported.
from . import synthetic as _synthetic  # noqa: F401
from .registry import (
    DatasetSpec,
    available_datasets,
    get,
    register_dataset,
    split_validation,
)

__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get",
    "register_dataset",
    "split_validation",
]
