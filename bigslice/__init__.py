"""Columnar frames, column operations, metrics, task graphs, tracing and function registry."""

__version__ = "0.1.0"

__all__ = [
    "codec",
    "frame",
    "func",
    "metrics",
    "ops",
    "task",
    "topn",
    "trace",
    "tracer",
    "walker",
    "zero",
]