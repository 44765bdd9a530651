"""
Timing engine: randomized delays and structured wait sequences that pace
browser actions so they resemble human timing.

Two pacing profiles exist:
  NORMAL: longer waits for stability
  FAST:   short literal sequences and (unless a scale is configured) a
           0.5 scale, selected without changing any call site

Callers pick a NamedSequence, never raw numbers, when they want a named wait.
Usage:
    from leadscraper.timing import PacingConfig, TimingEngine, NamedSequence
    timing = TimingEngine(PacingConfig.from_config(config))
    await timing.wait_sequence(page, NamedSequence.PRE_CONTACT_EXTRACT)
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("lead_scraper")


class PacingProfile(str, Enum):
    NORMAL = "normal"
    FAST = "fast"


class NamedSequence(str, Enum):
    """Closed set of literal wait sequences known to the engine."""

    PRE_CONTACT_EXTRACT = "pre-contact-extract"


# Durations in milliseconds, before scaling.
SEQUENCES: dict = {
    PacingProfile.NORMAL: {
        NamedSequence.PRE_CONTACT_EXTRACT: (1000, 1200, 1400, 1500, 1600, 1700, 1800, 1900, 2000),
    },
    PacingProfile.FAST: {
        NamedSequence.PRE_CONTACT_EXTRACT: (250, 300, 350),
    },
}

# Post-render settle window in seconds: (min, max)
SETTLE_WINDOWS = {
    PacingProfile.NORMAL: (2.0, 5.0),
    PacingProfile.FAST: (0.2, 0.6),
}

DEFAULT_MIN_ROWS = 10
DEFAULT_FAST_MIN_ROWS = 5


@dataclass(frozen=True)
class BackoffSpec:
    """Shape of the increasing-backoff fallback (all durations in ms)."""

    base: int = 500
    factor: float = 1.2
    max: int = 1000
    steps: int = 1
    jitter: float = 0.15


@dataclass(frozen=True)
class PacingConfig:
    profile: PacingProfile = PacingProfile.NORMAL
    scale: float = 1.0
    min_rows: int = DEFAULT_MIN_ROWS

    @property
    def is_fast(self) -> bool:
        return self.profile is PacingProfile.FAST

    @property
    def settle_window(self) -> tuple:
        return SETTLE_WINDOWS[self.profile]

    @classmethod
    def from_config(cls, config: dict) -> "PacingConfig":
        """
        Derive pacing settings from a loaded config dict.

        timing_scale wins when present; otherwise FAST mode halves every wait.
        min_rows wins when present; otherwise FAST uses fast_min_rows (>= 1).
        """
        fast = bool(config.get("fast_mode", False))
        profile = PacingProfile.FAST if fast else PacingProfile.NORMAL

        raw_scale = config.get("timing_scale")
        if raw_scale is None:
            scale = 0.5 if fast else 1.0
        else:
            try:
                scale = max(0.0, float(raw_scale))
            except (TypeError, ValueError):
                scale = 1.0

        min_rows = config.get("min_rows")
        if min_rows is None:
            if fast:
                min_rows = max(1, int(config.get("fast_min_rows") or DEFAULT_FAST_MIN_ROWS))
            else:
                min_rows = DEFAULT_MIN_ROWS

        return cls(profile=profile, scale=scale, min_rows=int(min_rows))


class TimingEngine:
    """
    Computes randomized delays and runs wait sequences against a page.

    Args:
        pacing: Injected PacingConfig (profile + global scale).
        rng: Random source; pass a seeded random.Random for reproducible runs.
    """

    def __init__(self, pacing: PacingConfig = None, rng: random.Random = None):
        self.pacing = pacing or PacingConfig()
        self._rng = rng or random.Random()

    @property
    def scale(self) -> float:
        return self.pacing.scale

    def compute_delay(self, min_s: float = 0.5, max_s: float = 1.0, scale: float = None) -> float:
        """Uniform random seconds in [min_s, max_s), multiplied by scale."""
        if scale is None:
            scale = self.scale
        return (self._rng.random() * (max_s - min_s) + min_s) * scale

    def _scaled(self, ms: float) -> int:
        return max(0, round(ms * self.scale))

    def backoff_delays(self, backoff: BackoffSpec = None) -> list:
        """Return the scaled millisecond waits the backoff generator would produce."""
        backoff = backoff or BackoffSpec()
        waits = []
        delay = backoff.base
        for _ in range(max(1, backoff.steps)):
            jitter_amt = delay * backoff.jitter * (self._rng.random() * 2 - 1)
            clamped = min(max(delay + jitter_amt, backoff.base), backoff.max)
            waits.append(self._scaled(clamped))
            delay = min(round(delay * backoff.factor), backoff.max)
        return waits

    def resolve_sequence(self, sequence: NamedSequence) -> tuple:
        """Literal durations registered for a sequence under the active profile."""
        return SEQUENCES.get(self.pacing.profile, {}).get(sequence, ())

    async def sleep_ms(self, page, ms: int) -> None:
        if page is None:
            await asyncio.sleep(ms / 1000)
        else:
            await page.wait_for_timeout(ms)

    async def wait_sequence(
        self,
        page,
        sequence: NamedSequence = None,
        backoff: BackoffSpec = None,
        *,
        sequence_ms: list = None,
    ) -> list:
        """
        Wait through a named sequence, an explicit sequence, or the backoff
        fallback, in that order of preference.

        Returns the list of (scaled) milliseconds actually waited.
        """
        named = self.resolve_sequence(sequence) if sequence is not None else ()
        if named:
            waits = [self._scaled(ms) for ms in named]
            source = f"sequence '{sequence.value}'"
        elif sequence_ms:
            waits = [self._scaled(ms) for ms in sequence_ms]
            source = "explicit sequence"
        else:
            waits = self.backoff_delays(backoff)
            source = "backoff"

        logger.debug(
            f"  [pace] {source} ({self.pacing.profile.value}, scale={self.scale}): {waits}"
        )
        for ms in waits:
            await self.sleep_ms(page, ms)
        return waits
