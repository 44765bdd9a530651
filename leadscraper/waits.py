"""
Readiness waits for freshly rendered result lists.

The lead list is ready once rows are visible, attached, and at least
`min_count` of them exist. A short randomized settle delay follows so the
caller never acts on a list in the same instant it appears.

Only the visibility/attachment waits are fatal. A list that never reaches
`min_count` rows is reported as degraded and the caller continues with
whatever is rendered.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from playwright.async_api import Page, TimeoutError as PlaywrightTimeout

from leadscraper.errors import ElementWaitTimeout
from leadscraper.timing import TimingEngine

logger = logging.getLogger("lead_scraper")

# Sales Navigator lead row title link.
LEAD_ROW_SELECTOR = 'a[data-control-name^="view_lead_panel"]'

DEFAULT_TIMEOUT = 10_000
# Secondary "content loaded" wait, independent of the primary timeout.
LOAD_SIGNAL_TIMEOUT = 500

_COUNT_PREDICATE = "([sel, n]) => document.querySelectorAll(sel).length >= n"


class ReadinessOutcome(str, Enum):
    READY = "ready"
    ROWS_TIMED_OUT = "rows_timed_out"


@dataclass
class ReadinessResult:
    selector: str
    min_count: int
    outcome: ReadinessOutcome
    settle_ms: int = 0

    @property
    def degraded(self) -> bool:
        """True when fewer than min_count rows were rendered in time."""
        return self.outcome is ReadinessOutcome.ROWS_TIMED_OUT


class ListReadinessWaiter:
    """
    Composite visibility / attachment / count / settle wait.

    Args:
        timing: TimingEngine supplying the settle delay and the pacing profile
                (min_count default and settle window come from it).
        timeout: Default bound in ms for the visibility and row-count waits.
    """

    def __init__(self, timing: TimingEngine, timeout: int = DEFAULT_TIMEOUT):
        self._timing = timing
        self._timeout = timeout

    async def _wait_for_state(self, page: Page, selector: str, state: str, timeout: int) -> None:
        try:
            await page.wait_for_selector(selector, state=state, timeout=timeout)
        except PlaywrightTimeout as exc:
            logger.warning(f"  [wait] '{selector}' not {state} after {timeout}ms")
            raise ElementWaitTimeout(selector, timeout, state=state) from exc

    async def _wait_for_count(self, page: Page, selector: str, min_count: int, timeout: int) -> bool:
        try:
            await page.wait_for_function(_COUNT_PREDICATE, arg=[selector, min_count], timeout=timeout)
            return True
        except PlaywrightTimeout:
            return False

    async def _wait_for_load_signal(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=LOAD_SIGNAL_TIMEOUT)
        except PlaywrightTimeout:
            pass

    async def wait(
        self,
        page: Page,
        selector: str = LEAD_ROW_SELECTOR,
        *,
        min_count: int = None,
        timeout: int = None,
        wait_for_load: bool = True,
    ) -> ReadinessResult:
        """
        Wait until the list behind `selector` is ready to interact with.

        Raises:
            ElementWaitTimeout: the selector never became visible (or attached).
        """
        if min_count is None:
            min_count = self._timing.pacing.min_rows
        if timeout is None:
            timeout = self._timeout

        await self._wait_for_state(page, selector, "visible", timeout)
        # 'attached' normally resolves at once after 'visible'.
        await self._wait_for_state(page, selector, "attached", timeout)
        logger.debug(f"  [wait] '{selector}' visible")

        outcome = ReadinessOutcome.READY
        if not await self._wait_for_count(page, selector, min_count, timeout):
            outcome = ReadinessOutcome.ROWS_TIMED_OUT
            logger.warning(
                f"  [wait] Row count timeout: fewer than {min_count} rows for "
                f"'{selector}' after {timeout}ms. Continuing with rendered rows."
            )

        if wait_for_load:
            await self._wait_for_load_signal(page)

        low, high = self._timing.pacing.settle_window
        settle_ms = round(self._timing.compute_delay(low, high) * 1000)
        await page.wait_for_timeout(settle_ms)
        logger.debug(f"  [wait] List ready ({outcome.value}), settled {settle_ms}ms")

        return ReadinessResult(
            selector=selector,
            min_count=min_count,
            outcome=outcome,
            settle_ms=settle_ms,
        )
