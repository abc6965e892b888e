"""SVG rendering of visualization parameters as an animated bar display."""

from __future__ import annotations

import base64
import html

from .generator import Band, BarSpec, VisualizationParameters

WIDTH = 400
HEIGHT = 300
BAR_WIDTH = 8
BAR_SPACING = 2

# Height keyframes as multiples of the bar's base height.
_BAND_KEYFRAMES: dict[Band, tuple[float, ...]] = {
    "bass": (1.0, 2.5, 0.8, 2.2, 1.0),
    "mid": (1.0, 1.8, 0.6, 1.9, 0.7, 1.0),
    "treble": (1.0, 1.3, 0.4, 1.6, 0.5, 1.2, 1.0),
}


def render(params: VisualizationParameters) -> str:
    """Render parameters into a standalone SVG document."""
    colors = params.palette
    title = html.escape(params.title or "Nothing playing")
    artist = html.escape(params.artist or "")
    summary = f"{params.mood.upper()} • {params.tempo} BPM • {' / '.join(params.patterns)}"
    bars = "".join(
        _render_bar(bar, colors[bar.index % len(colors)], len(params.bars))
        for bar in params.bars
    )
    return (
        f'<svg width="{WIDTH}" height="{HEIGHT}" xmlns="http://www.w3.org/2000/svg">'
        "<defs>"
        '<linearGradient id="bgGradient" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" stop-color="{colors[0]}" stop-opacity="0.1"/>'
        f'<stop offset="50%" stop-color="{colors[1 % len(colors)]}" stop-opacity="0.05"/>'
        f'<stop offset="100%" stop-color="{colors[2 % len(colors)]}" stop-opacity="0.1"/>'
        "</linearGradient>"
        '<filter id="barGlow"><feGaussianBlur stdDeviation="2" result="coloredBlur"/>'
        '<feMerge><feMergeNode in="coloredBlur"/><feMergeNode in="SourceGraphic"/>'
        "</feMerge></filter>"
        "</defs>"
        f'<rect width="{WIDTH}" height="{HEIGHT}" fill="url(#bgGradient)"/>'
        f'<g transform="translate({WIDTH // 2}, {HEIGHT // 2})">{bars}</g>'
        '<rect x="10" y="10" width="380" height="60" fill="rgba(0,0,0,0.8)" rx="5"/>'
        '<text x="20" y="30" fill="white" font-family="monospace" font-size="12" '
        f'font-weight="bold">{title}</text>'
        f'<text x="20" y="45" fill="{colors[0]}" font-family="monospace" '
        f'font-size="10">{artist}</text>'
        f'<text x="20" y="60" fill="{colors[1 % len(colors)]}" font-family="monospace" '
        f'font-size="9">{html.escape(summary)}</text>'
        "</svg>"
    )


def to_data_uri(svg: str) -> str:
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def _render_bar(bar: BarSpec, color: str, bar_count: int) -> str:
    total_width = bar_count * BAR_WIDTH + (bar_count - 1) * BAR_SPACING
    x = -total_width / 2 + bar.index * (BAR_WIDTH + BAR_SPACING)
    height = bar.height
    top = -height / 2
    heights = ";".join(f"{height * factor:.1f}" for factor in _BAND_KEYFRAMES[bar.band])
    timing = (
        f'dur="{bar.duration_ms:.0f}ms" repeatCount="indefinite" '
        f'begin="{bar.delay_ms:.0f}ms"'
    )
    return (
        f'<rect x="{x:.1f}" y="{top:.1f}" width="{BAR_WIDTH}" height="{height:.1f}" '
        f'fill="{color}" opacity="0.8" filter="url(#barGlow)">'
        f'<animate attributeName="height" values="{heights}" {timing}/>'
        f'<animate attributeName="opacity" values="0.8;0.3;0.8;0.2;0.8" {timing}/>'
        f'<animate attributeName="y" values="{top:.1f};{top - 5:.1f};{top:.1f}" {timing}/>'
        "</rect>"
    )
