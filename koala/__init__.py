"""Top-level package for koala."""

from . import config, pipeline, simulation, storage, transcriber, translator, usage

__all__ = ["config", "pipeline", "simulation", "storage", "transcriber", "translator", "usage"]
