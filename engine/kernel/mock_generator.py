"""
Mock generator for deterministic testing and UX timing simulation.

Replays golden patch files the way a model's reply arrives: the frame
(MESSAGE, separators and header lines) a line at a time, then the markup
payload in fixed-size character chunks that cut through tags and
attribute values. The streaming preview has to cope with both.

Tests use the instant profile; the others are for watching the preview
build up in the editor.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

GOLDEN_DIR = Path(__file__).parent / "tests" / "fixtures" / "golden"


@dataclass(frozen=True)
class StreamProfile:
    think_ms: int
    line_ms: int  # between frame lines
    chunk_ms: int  # between markup chunks
    chunk_chars: int


PROFILES: dict[str, StreamProfile] = {
    "instant": StreamProfile(think_ms=0, line_ms=0, chunk_ms=0, chunk_chars=40),
    "realistic": StreamProfile(think_ms=800, line_ms=60, chunk_ms=30, chunk_chars=16),
    "slow": StreamProfile(think_ms=3000, line_ms=300, chunk_ms=150, chunk_chars=8),
}


def split_frame(text: str) -> tuple[list[str], str]:
    """
    Split a golden reply into frame lines and the markup payload.

    The payload is everything after the second separator line. A reply
    with fewer separators is all frame.
    """
    lines = text.splitlines(keepends=True)
    separators = [i for i, line in enumerate(lines) if line.strip() == "---"]
    if len(separators) < 2:
        return lines, ""
    cut = separators[1] + 1
    return lines[:cut], "".join(lines[cut:])


def chunk_markup(markup: str, size: int) -> list[str]:
    return [markup[i : i + size] for i in range(0, len(markup), size)]


class MockGenerator:
    """Replays golden patch replies frame-first, markup in chunks."""

    def __init__(self, golden_dir: Path = GOLDEN_DIR, scenario: str | None = None):
        self.golden_dir = golden_dir
        self.scenario = scenario

    def load(self, scenario: str) -> str:
        path = self.golden_dir / f"{scenario}.txt"
        if not path.exists():
            raise FileNotFoundError(f"Golden file not found: {path}")
        return path.read_text()

    async def stream(
        self,
        scenario: str | None = None,
        profile: str = "instant",
    ) -> AsyncIterator[str]:
        """
        Stream a golden reply.

        Args:
            scenario: Golden file name without extension (e.g., "add_section").
                Defaults to the scenario given at construction.
            profile: Stream profile ("instant", "realistic", "slow")

        Yields:
            Frame lines with their line endings, then markup chunks of
            profile.chunk_chars characters

        Raises:
            FileNotFoundError: If the golden file does not exist
            ValueError: If the profile is not recognized or no scenario is set
        """
        timing = PROFILES.get(profile)
        if timing is None:
            raise ValueError(f"Unknown stream profile: {profile!r}. Valid profiles: {list(PROFILES)}")

        scenario = scenario or self.scenario
        if not scenario:
            raise ValueError("No scenario given")

        frame, markup = split_frame(self.load(scenario))
        pieces = [(line, timing.line_ms) for line in frame]
        pieces += [(chunk, timing.chunk_ms) for chunk in chunk_markup(markup, timing.chunk_chars)]

        if timing.think_ms > 0:
            await asyncio.sleep(timing.think_ms / 1000)

        for i, (piece, delay_ms) in enumerate(pieces):
            yield piece
            if i < len(pieces) - 1 and delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)

    def list_scenarios(self) -> list[str]:
        """Return names of all available golden file scenarios."""
        return sorted(p.stem for p in self.golden_dir.glob("*.txt"))
