"""Reporting utilities for smoothnets runs."""

from .artifacts import config_hash, write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import write_summary

__all__ = ["CsvSink", "JsonlSink", "PlotAdapter", "config_hash", "write_manifest", "write_summary"]
