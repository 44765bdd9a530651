"""
Tests for the list readiness wait protocol.
"""
import asyncio

import pytest

from conftest import FakePage, FixedRandom
from leadscraper.errors import ElementWaitTimeout
from leadscraper.timing import PacingConfig, PacingProfile, TimingEngine
from leadscraper.waits import (
    LEAD_ROW_SELECTOR,
    LOAD_SIGNAL_TIMEOUT,
    ListReadinessWaiter,
    ReadinessOutcome,
)


def make_waiter(profile=PacingProfile.NORMAL, scale=1.0, min_rows=10, rnd=0.0):
    pacing = PacingConfig(profile=profile, scale=scale, min_rows=min_rows)
    return ListReadinessWaiter(TimingEngine(pacing, rng=FixedRandom(rnd)))


def test_happy_path_runs_steps_in_order():
    page = FakePage()
    result = asyncio.run(make_waiter().wait(page, timeout=4000))

    kinds = [c[0] for c in page.calls]
    assert kinds == ["selector", "selector", "function", "load", "timeout"]
    assert page.calls[0] == ("selector", LEAD_ROW_SELECTOR, "visible", 4000)
    assert page.calls[1] == ("selector", LEAD_ROW_SELECTOR, "attached", 4000)
    assert page.calls[2] == ("function", [LEAD_ROW_SELECTOR, 10], 4000)
    assert page.calls[3] == ("load", "domcontentloaded", LOAD_SIGNAL_TIMEOUT)

    assert result.outcome is ReadinessOutcome.READY
    assert not result.degraded
    assert result.min_count == 10
    # FixedRandom(0.0) → lower edge of the normal (2s, 5s) window
    assert result.settle_ms == 2000
    assert page.slept == [2000]


def test_visibility_timeout_is_fatal():
    page = FakePage(fail={"selector:visible"})
    with pytest.raises(ElementWaitTimeout) as exc_info:
        asyncio.run(make_waiter().wait(page, ".rows", timeout=1500))

    assert exc_info.value.selector == ".rows"
    assert exc_info.value.timeout_ms == 1500
    assert ".rows" in str(exc_info.value)
    # Nothing runs after the failed visibility wait
    assert len(page.calls) == 1


def test_row_count_timeout_degrades_and_continues():
    page = FakePage(fail={"function"})
    result = asyncio.run(make_waiter().wait(page))

    assert result.outcome is ReadinessOutcome.ROWS_TIMED_OUT
    assert result.degraded
    # Load signal and settle still happen
    assert [c[0] for c in page.calls][-2:] == ["load", "timeout"]


def test_row_count_timeout_is_logged(caplog):
    page = FakePage(fail={"function"})
    with caplog.at_level("WARNING", logger="lead_scraper"):
        asyncio.run(make_waiter().wait(page, ".rows"))
    assert sum("Row count timeout" in r.getMessage() for r in caplog.records) == 1


def test_load_signal_timeout_is_swallowed():
    page = FakePage(fail={"load"})
    result = asyncio.run(make_waiter().wait(page))
    assert result.outcome is ReadinessOutcome.READY
    assert page.calls[-1][0] == "timeout"


def test_load_signal_can_be_skipped():
    page = FakePage()
    asyncio.run(make_waiter().wait(page, wait_for_load=False))
    assert "load" not in [c[0] for c in page.calls]


def test_fast_profile_lowers_min_count_and_settle():
    page = FakePage()
    waiter = make_waiter(profile=PacingProfile.FAST, scale=1.0, min_rows=5, rnd=0.0)
    result = asyncio.run(waiter.wait(page))
    assert result.min_count == 5
    assert page.calls[2][1] == [LEAD_ROW_SELECTOR, 5]
    assert result.settle_ms == 200


def test_explicit_min_count_wins():
    page = FakePage()
    result = asyncio.run(make_waiter().wait(page, min_count=25))
    assert result.min_count == 25
    assert page.calls[2][1] == [LEAD_ROW_SELECTOR, 25]


def test_settle_delay_is_scaled():
    page = FakePage()
    result = asyncio.run(make_waiter(scale=0.5, rnd=0.0).wait(page))
    assert result.settle_ms == 1000
