"""Shared fixtures: fake Playwright pages and deterministic random sources."""

import random

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout


class FixedRandom(random.Random):
    """random.Random whose random() always returns the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


class FakePage:
    """
    Records every wait primitive call. Any primitive listed in `fail` raises
    Playwright's TimeoutError instead of returning.
    """

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail:
            raise PlaywrightTimeout(f"Timeout exceeded in {name}")

    async def wait_for_selector(self, selector, *, state=None, timeout=None):
        self.calls.append(("selector", selector, state, timeout))
        self._maybe_fail(f"selector:{state}")

    async def wait_for_function(self, expression, *, arg=None, timeout=None):
        self.calls.append(("function", arg, timeout))
        self._maybe_fail("function")

    async def wait_for_load_state(self, state=None, *, timeout=None):
        self.calls.append(("load", state, timeout))
        self._maybe_fail("load")

    async def wait_for_timeout(self, timeout):
        self.calls.append(("timeout", timeout))

    @property
    def slept(self) -> list:
        return [c[1] for c in self.calls if c[0] == "timeout"]


@pytest.fixture
def fake_page():
    return FakePage()
