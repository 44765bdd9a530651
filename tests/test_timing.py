"""
Unit tests for the timing engine and pacing configuration.
"""
import asyncio
import random

import pytest

from conftest import FakePage, FixedRandom
from leadscraper.timing import (
    BackoffSpec,
    NamedSequence,
    PacingConfig,
    PacingProfile,
    TimingEngine,
)


def test_compute_delay_stays_in_range():
    engine = TimingEngine(PacingConfig(), rng=random.Random(42))
    for _ in range(2000):
        d = engine.compute_delay(2, 5, 1)
        assert 2 <= d < 5


def test_compute_delay_scaled_range():
    engine = TimingEngine(PacingConfig(), rng=random.Random(7))
    for _ in range(2000):
        d = engine.compute_delay(2, 5, 0.5)
        assert 1 <= d < 2.5


def test_compute_delay_uses_injected_scale_by_default():
    engine = TimingEngine(PacingConfig(scale=2.0), rng=FixedRandom(0.0))
    assert engine.compute_delay(1, 3) == 2.0


def test_named_sequence_normal_profile():
    page = FakePage()
    engine = TimingEngine(PacingConfig(profile=PacingProfile.NORMAL, scale=1.0))
    waits = asyncio.run(engine.wait_sequence(page, NamedSequence.PRE_CONTACT_EXTRACT))
    assert waits == [1000, 1200, 1400, 1500, 1600, 1700, 1800, 1900, 2000]
    assert page.slept == waits


def test_named_sequence_fast_profile_is_shorter_and_scaled():
    page = FakePage()
    engine = TimingEngine(PacingConfig(profile=PacingProfile.FAST, scale=0.5))
    waits = asyncio.run(engine.wait_sequence(page, NamedSequence.PRE_CONTACT_EXTRACT))
    assert waits == [125, 150, 175]
    assert page.slept == [125, 150, 175]


def test_explicit_sequence_is_scaled():
    page = FakePage()
    engine = TimingEngine(PacingConfig(scale=1.5))
    waits = asyncio.run(engine.wait_sequence(page, sequence_ms=[100, 200]))
    assert waits == [150, 300]


def test_backoff_without_jitter_grows_by_factor_until_max():
    engine = TimingEngine(PacingConfig(), rng=FixedRandom(0.5))  # zero jitter
    waits = engine.backoff_delays(BackoffSpec(base=500, factor=1.2, max=1000, steps=5))
    assert waits == [500, 600, 720, 864, 1000]


def test_backoff_jitter_is_clamped_to_base_and_max():
    low = TimingEngine(PacingConfig(), rng=FixedRandom(0.0))     # -15%
    high = TimingEngine(PacingConfig(), rng=FixedRandom(0.999))  # ~+15%
    backoff = BackoffSpec(base=500, factor=2.0, max=900, steps=3)
    assert low.backoff_delays(backoff) == [500, 765, 765]
    assert high.backoff_delays(backoff)[0] == 575
    assert high.backoff_delays(backoff)[-1] == 900


def test_backoff_default_is_single_wait_within_bounds(fake_page):
    engine = TimingEngine(PacingConfig(), rng=random.Random(3))
    waits = asyncio.run(engine.wait_sequence(fake_page))
    assert len(waits) == 1
    assert 500 <= waits[0] <= 1000
    assert fake_page.slept == waits


def test_zero_scale_waits_zero():
    engine = TimingEngine(PacingConfig(scale=0.0), rng=random.Random(1))
    assert engine.backoff_delays(BackoffSpec(steps=3)) == [0, 0, 0]


def test_wait_sequence_without_page_sleeps():
    engine = TimingEngine(PacingConfig(scale=0.0))
    assert asyncio.run(engine.wait_sequence(None, sequence_ms=[5, 5])) == [0, 0]


@pytest.mark.parametrize(
    "config, expected",
    [
        ({}, PacingConfig(PacingProfile.NORMAL, 1.0, 10)),
        ({"fast_mode": True}, PacingConfig(PacingProfile.FAST, 0.5, 5)),
        ({"fast_mode": True, "fast_min_rows": 3}, PacingConfig(PacingProfile.FAST, 0.5, 3)),
        ({"fast_mode": True, "timing_scale": 0.8}, PacingConfig(PacingProfile.FAST, 0.8, 5)),
        ({"timing_scale": 2, "min_rows": 4}, PacingConfig(PacingProfile.NORMAL, 2.0, 4)),
        ({"timing_scale": -1}, PacingConfig(PacingProfile.NORMAL, 0.0, 10)),
    ],
)
def test_pacing_config_from_config(config, expected):
    assert PacingConfig.from_config(config) == expected


def test_settle_window_depends_on_profile():
    assert PacingConfig(PacingProfile.FAST).settle_window == (0.2, 0.6)
    assert PacingConfig(PacingProfile.NORMAL).settle_window == (2.0, 5.0)
