"""
asc-bridge — browser verification session.

Purpose
- Load a provisioned URL in a disposable Firefox page and reduce the page's
  asynchronous signals to exactly one ``VerificationVerdict``.

Functional requirements
- Firefox is launched with native module scripts enabled (modern) or disabled (legacy).
- Five producers race into one result slot, first writer wins:
  uncaught script error, failed request, renderer crash, console error, and the
  ``PASS!`` success marker (which must equal the expected templated line).
- Navigation runs in the background; a navigation exception is a request failure.
- No timeout at this layer. Listeners are removed and the browser context is torn
  down on every path.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from asc_bridge.constants import CONSOLE_ERROR_PREFIX, SUCCESS_PREFIX, expected_success_log

MODULE_SCRIPTS_PREF = "dom.moduleScripts.enabled"

logger = structlog.get_logger(__name__)

BrowserLauncher = Callable[[bool], AbstractAsyncContextManager[Any]]


class FailureCause(StrEnum):
    SCRIPT_ERROR = "script_error"
    REQUEST_FAILED = "request_failed"
    CRASH = "crash"
    CONSOLE_ERROR = "console_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class Success:
    log_line: str


@dataclass(frozen=True, slots=True)
class Failure:
    """A failed session. ``transport`` marks browser-automation layer failures."""

    cause: FailureCause
    message: str
    transport: bool = False


VerificationVerdict = Success | Failure


class VerificationFailure(RuntimeError):
    """Raised when a verdict is a ``Failure``; the message is carried unmodified."""

    def __init__(self, failure: Failure) -> None:
        self.failure = failure
        super().__init__(failure.message)

    @property
    def cause(self) -> FailureCause:
        return self.failure.cause


def expect_success(verdict: VerificationVerdict) -> Success:
    if isinstance(verdict, Failure):
        raise VerificationFailure(verdict)
    return verdict


class VerdictSlot:
    """Single-assignment result slot; later offers are discarded."""

    def __init__(self) -> None:
        self._future: asyncio.Future[VerificationVerdict] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def offer(self, verdict: VerificationVerdict) -> bool:
        if self._future.done():
            logger.debug("verdict_discarded", verdict=repr(verdict))
            return False
        self._future.set_result(verdict)
        return True

    async def wait(self) -> VerificationVerdict:
        return await asyncio.shield(self._future)


@asynccontextmanager
async def launch_firefox(modern_browser: bool) -> AsyncIterator[Any]:
    """Start Playwright Firefox; legacy mode disables native module scripts."""

    playwright = await async_playwright().start()
    try:
        browser = await playwright.firefox.launch(
            firefox_user_prefs={MODULE_SCRIPTS_PREF: modern_browser},
        )
        try:
            yield browser
        finally:
            await browser.close()
    finally:
        await playwright.stop()


def _listeners(slot: VerdictSlot, expected_log: str) -> dict[str, Callable[[Any], None]]:
    def on_page_error(error: Any) -> None:
        message = getattr(error, "message", None) or str(error)
        slot.offer(Failure(FailureCause.SCRIPT_ERROR, message))

    def on_request_failed(request: Any) -> None:
        reason = request.failure or "request failed"
        slot.offer(Failure(FailureCause.REQUEST_FAILED, f"{reason}: {request.url}", transport=True))

    def on_crash(_page: Any) -> None:
        slot.offer(Failure(FailureCause.CRASH, "page crashed"))

    def on_console(message: Any) -> None:
        kind = message.type
        text = message.text
        if kind == "error":
            slot.offer(Failure(FailureCause.CONSOLE_ERROR, CONSOLE_ERROR_PREFIX + text))
        elif kind == "log" and text.startswith(SUCCESS_PREFIX):
            if text == expected_log:
                slot.offer(Success(text))
            else:
                slot.offer(
                    Failure(
                        FailureCause.CONSOLE_ERROR,
                        f"unexpected success marker {text!r}, expected {expected_log!r}",
                    )
                )

    return {
        "pageerror": on_page_error,
        "requestfailed": on_request_failed,
        "crash": on_crash,
        "console": on_console,
    }


async def _navigate(page: Any, url: str, slot: VerdictSlot) -> None:
    try:
        await page.goto(url)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - any navigation error becomes a verdict
        slot.offer(
            Failure(
                FailureCause.REQUEST_FAILED,
                str(exc),
                transport=isinstance(exc, PlaywrightError),
            )
        )


async def verify(
    url: str,
    *,
    modern_browser: bool,
    launcher: BrowserLauncher = launch_firefox,
    expected_log: str | None = None,
) -> VerificationVerdict:
    """Run one session against ``url`` and return the first verdict produced."""

    expected = expected_log if expected_log is not None else expected_success_log(modern_browser)
    logger.info("verification_started", url=url, modern_browser=modern_browser)

    async with launcher(modern_browser) as browser:
        context = await browser.new_context()
        try:
            page = await context.new_page()
            slot = VerdictSlot()
            listeners = _listeners(slot, expected)
            for event, callback in listeners.items():
                page.on(event, callback)

            navigation = asyncio.create_task(_navigate(page, url, slot), name="asc-navigate")
            try:
                verdict = await slot.wait()
            finally:
                for event, callback in listeners.items():
                    page.remove_listener(event, callback)
                if not navigation.done():
                    navigation.cancel()
                await asyncio.gather(navigation, return_exceptions=True)
        finally:
            await context.close()

    if isinstance(verdict, Success):
        logger.info("verification_passed", url=url, log_line=verdict.log_line)
    else:
        logger.warning(
            "verification_failed",
            url=url,
            cause=verdict.cause.value,
            detail=verdict.message,
            transport=verdict.transport,
        )
    return verdict


__all__ = [
    "BrowserLauncher",
    "Failure",
    "FailureCause",
    "MODULE_SCRIPTS_PREF",
    "Success",
    "VerdictSlot",
    "VerificationFailure",
    "VerificationVerdict",
    "expect_success",
    "launch_firefox",
    "verify",
]
