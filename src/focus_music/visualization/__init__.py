"""Track-driven visualization: deterministic parameters and SVG rendering."""

from .generator import (
    BarSpec,
    VisualizationParameters,
    generate,
    neutral_parameters,
    stable_hash,
)
from .svg import render, to_data_uri

__all__ = [
    "BarSpec",
    "VisualizationParameters",
    "generate",
    "neutral_parameters",
    "render",
    "stable_hash",
    "to_data_uri",
]
