"""Deterministic visualization parameters derived from track metadata.

Mood, tempo, intensity and palette are pure functions of ``title`` and
``artist``: the same track always yields identical values. Bar heights carry
cosmetic jitter drawn from a caller-supplied (or fresh) `random.Random`; that
randomness is confined to `BarSpec.height` and never feeds the deterministic
fields.
"""

from __future__ import annotations

import colorsys
import hashlib
import random
from dataclasses import dataclass
from typing import Literal

from focus_music.services.player_adapter import TrackSnapshot

Mood = Literal["happy", "melancholic", "aggressive", "romantic", "energetic", "neutral"]
Band = Literal["bass", "mid", "treble"]

DEFAULT_MOOD: Mood = "neutral"
DEFAULT_TEMPO_BPM = 100
DEFAULT_BAR_COUNT = 32
PALETTE_SLOTS = 8
MAX_BAR_HEIGHT = 120.0
MIN_BAR_HEIGHT = 5.0

# Ordered: first match wins.
MOOD_KEYWORDS: tuple[tuple[Mood, tuple[str, ...]], ...] = (
    ("happy", ("happy", "joy", "smile")),
    ("melancholic", ("sad", "cry", "tears")),
    ("aggressive", ("angry", "rage", "fury")),
    ("romantic", ("love", "heart", "romance")),
    ("energetic", ("party", "celebration", "dance")),
)
TEMPO_KEYWORDS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (140, ("fast", "speed", "rap")),
    (80, ("slow", "ballad", "acoustic")),
    (120, ("dance", "electronic", "beat")),
)
MOOD_INTENSITY: dict[Mood, float] = {
    "happy": 0.8,
    "energetic": 0.9,
    "aggressive": 0.95,
    "romantic": 0.6,
    "melancholic": 0.4,
    "neutral": 0.5,
}
MOOD_PALETTES: dict[Mood, tuple[str, ...]] = {
    "energetic": ("#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7"),
    "romantic": ("#FFB3BA", "#FFDFBA", "#FFFFBA", "#BAFFC9", "#BAE1FF"),
    "melancholic": ("#6C5CE7", "#A29BFE", "#74B9FF", "#81ECEC", "#FDCB6E"),
    "aggressive": ("#E17055", "#FDCB6E", "#6C5CE7", "#A29BFE", "#74B9FF"),
    "happy": ("#00B894", "#00CEC9", "#6C5CE7", "#A29BFE", "#FDCB6E"),
    "neutral": ("#74B9FF", "#81ECEC", "#A29BFE", "#6C5CE7", "#FDCB6E"),
}
MOOD_PATTERNS: dict[Mood, tuple[str, ...]] = {
    "energetic": ("pulse", "wave", "spiral"),
    "romantic": ("heart", "flow", "gentle"),
    "melancholic": ("fade", "drift", "soft"),
    "aggressive": ("spike", "burst", "sharp"),
    "happy": ("flow", "gentle", "wave"),
    "neutral": ("flow", "gentle", "wave"),
}
MOOD_HEIGHT_SCALE: dict[Mood, tuple[float, float]] = {
    # (multiplier on max height * intensity, floor)
    "energetic": (1.2, 20.0),
    "romantic": (0.8, 15.0),
    "melancholic": (0.6, 10.0),
    "aggressive": (1.5, 25.0),
    "happy": (1.0, 15.0),
    "neutral": (1.0, 15.0),
}
BAND_BEAT_FRACTION: dict[Band, float] = {"bass": 0.8, "mid": 0.4, "treble": 0.2}
BAND_JITTER: dict[Band, float] = {"bass": 30.0, "mid": 15.0, "treble": 5.0}


@dataclass(frozen=True)
class BarSpec:
    """One animated bar: band, cycle duration and stagger in milliseconds."""

    index: int
    band: Band
    duration_ms: float
    delay_ms: float
    height: float


@dataclass(frozen=True)
class VisualizationParameters:
    mood: Mood
    tempo: int
    intensity: float
    palette: tuple[str, ...]
    bars: tuple[BarSpec, ...]
    patterns: tuple[str, ...]
    title: str = ""
    artist: str = ""

    @property
    def beat_ms(self) -> float:
        return beat_duration_ms(self.tempo)


def beat_duration_ms(tempo: int) -> float:
    return 60000.0 / max(1, tempo)


def stable_hash(text: str) -> int:
    """Process-independent hash (unlike `hash()`, which is salted per run)."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def detect_mood(text: str) -> Mood:
    lowered = text.casefold()
    for mood, keywords in MOOD_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return mood
    return DEFAULT_MOOD


def detect_tempo(text: str) -> int:
    lowered = text.casefold()
    for bpm, keywords in TEMPO_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return bpm
    return DEFAULT_TEMPO_BPM


def band_for_index(index: int, bar_count: int) -> Band:
    if index < bar_count * 0.2:
        return "bass"
    if index < bar_count * 0.6:
        return "mid"
    return "treble"


def build_palette(mood: Mood, intensity: float, seed: int) -> tuple[str, ...]:
    """Perturb the mood's base colors per slot using the track hash."""
    base = MOOD_PALETTES[mood]
    saturation = min(100.0, 60.0 + intensity * 40.0)
    colors: list[str] = []
    for slot in range(PALETTE_SLOTS):
        variation = (seed + slot) % 100
        hue = (_hex_hue(base[slot % len(base)]) + (variation - 50) * 0.1) % 360
        lightness = max(20.0, min(80.0, 50.0 + (variation - 50) * 0.3))
        colors.append(_hsl_to_hex(hue, saturation, lightness))
    return tuple(colors)


def neutral_parameters(
    *, bar_count: int = DEFAULT_BAR_COUNT, rng: random.Random | None = None
) -> VisualizationParameters:
    """Fallback for missing metadata: neutral mood, default tempo, base palette."""
    mood = DEFAULT_MOOD
    intensity = MOOD_INTENSITY[mood]
    return VisualizationParameters(
        mood=mood,
        tempo=DEFAULT_TEMPO_BPM,
        intensity=intensity,
        palette=_expand_base_palette(mood),
        bars=build_bars(mood, DEFAULT_TEMPO_BPM, intensity, bar_count, rng),
        patterns=MOOD_PATTERNS[mood],
    )


def generate(
    track: TrackSnapshot | None,
    *,
    bar_count: int = DEFAULT_BAR_COUNT,
    rng: random.Random | None = None,
) -> VisualizationParameters:
    """Derive visualization parameters for `track`; never raises."""
    bar_count = max(1, bar_count)
    title = (track.title if track is not None else "") or ""
    artist = (track.artist if track is not None else "") or ""
    if not title.strip():
        fallback = neutral_parameters(bar_count=bar_count, rng=rng)
        if artist.strip():
            return _with_labels(fallback, "", artist.strip())
        return fallback
    text = f"{title} {artist}"
    mood = detect_mood(text)
    tempo = detect_tempo(text)
    intensity = MOOD_INTENSITY[mood]
    return VisualizationParameters(
        mood=mood,
        tempo=tempo,
        intensity=intensity,
        palette=build_palette(mood, intensity, stable_hash(title + artist)),
        bars=build_bars(mood, tempo, intensity, bar_count, rng),
        patterns=MOOD_PATTERNS[mood],
        title=title.strip(),
        artist=artist.strip(),
    )


def build_bars(
    mood: Mood,
    tempo: int,
    intensity: float,
    bar_count: int,
    rng: random.Random | None = None,
) -> tuple[BarSpec, ...]:
    jitter = rng if rng is not None else random.Random()
    beat = beat_duration_ms(tempo)
    scale, floor = MOOD_HEIGHT_SCALE[mood]
    bars: list[BarSpec] = []
    for index in range(bar_count):
        band = band_for_index(index, bar_count)
        height = jitter.random() * MAX_BAR_HEIGHT * intensity * scale + floor
        height += jitter.random() * BAND_JITTER[band]
        bars.append(
            BarSpec(
                index=index,
                band=band,
                duration_ms=round(beat * BAND_BEAT_FRACTION[band], 3),
                delay_ms=round(index * beat / 20.0, 3),
                height=round(max(MIN_BAR_HEIGHT, height), 2),
            )
        )
    return tuple(bars)


def _with_labels(
    params: VisualizationParameters, title: str, artist: str
) -> VisualizationParameters:
    return VisualizationParameters(
        mood=params.mood,
        tempo=params.tempo,
        intensity=params.intensity,
        palette=params.palette,
        bars=params.bars,
        patterns=params.patterns,
        title=title,
        artist=artist,
    )


def _expand_base_palette(mood: Mood) -> tuple[str, ...]:
    base = MOOD_PALETTES[mood]
    return tuple(base[slot % len(base)].lower() for slot in range(PALETTE_SLOTS))


def _hex_hue(color: str) -> float:
    red, green, blue = _hex_to_rgb(color)
    hue, _lightness, _saturation = colorsys.rgb_to_hls(red, green, blue)
    return hue * 360.0


def _hex_to_rgb(color: str) -> tuple[float, float, float]:
    value = color.lstrip("#")
    return (
        int(value[0:2], 16) / 255.0,
        int(value[2:4], 16) / 255.0,
        int(value[4:6], 16) / 255.0,
    )


def _hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    red, green, blue = colorsys.hls_to_rgb(
        hue / 360.0, lightness / 100.0, saturation / 100.0
    )
    return "#{:02x}{:02x}{:02x}".format(
        round(red * 255), round(green * 255), round(blue * 255)
    )
