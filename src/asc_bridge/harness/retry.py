"""
asc-bridge — retry supervision for verification attempts.

Functional requirements
- Attempts run strictly sequentially with a fixed backoff between them.
- Success propagates immediately.
- On the final attempt any failure propagates as ``VerificationFailure`` carrying the
  last failure's cause and message unmodified.
- ``lenient`` policy retries every failed verdict on non-final attempts;
  ``strict`` retries only transport-level failures.
- Config, compile and provisioning errors are fatal and never retried.
- Under ``lenient`` any other exception an attempt raises counts as a failed attempt;
  once retries are spent it propagates unmodified.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from playwright.async_api import Error as PlaywrightError

from asc_bridge.bridge.compiler import CompileError
from asc_bridge.config.loader import ConfigLoadError
from asc_bridge.config.project import ConfigError
from asc_bridge.config.schema import ConfigValidationError, RetryPolicy
from asc_bridge.constants import DEFAULT_BACKOFF_SECONDS, DEFAULT_MAX_ATTEMPTS
from asc_bridge.harness.errors import ProvisionError
from asc_bridge.harness.session import (
    Failure,
    FailureCause,
    Success,
    VerificationFailure,
    VerificationVerdict,
)
from asc_bridge.observability.logging import correlation_scope

FATAL_ERRORS: tuple[type[BaseException], ...] = (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
    CompileError,
    ProvisionError,
)

AttemptFn = Callable[[], Awaitable[VerificationVerdict]]
Sleep = Callable[[float], Awaitable[object]]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RetryAttempt:
    index: int
    outcome: VerificationVerdict


def is_transport_failure(verdict: VerificationVerdict) -> bool:
    return isinstance(verdict, Failure) and verdict.transport


class RetrySupervisor:
    """Runs an attempt function until it succeeds or the attempt budget is spent."""

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        policy: RetryPolicy = RetryPolicy.LENIENT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.policy = RetryPolicy(policy)
        self._sleep = sleep
        self.last_attempt: RetryAttempt | None = None

    def should_retry(self, verdict: Failure, *, index: int) -> bool:
        if index >= self.max_attempts - 1:
            return False
        if self.policy is RetryPolicy.STRICT:
            return is_transport_failure(verdict)
        return True

    async def run(self, attempt_fn: AttemptFn) -> Success:
        for index in range(self.max_attempts):
            with correlation_scope(attempt_id=str(index + 1)):
                verdict, raised = await _run_attempt(attempt_fn, self.policy)
                self.last_attempt = RetryAttempt(index=index, outcome=verdict)

                if isinstance(verdict, Success):
                    logger.info("verification_attempt_passed", attempt=index + 1)
                    return verdict

                if not self.should_retry(verdict, index=index):
                    logger.error(
                        "verification_attempts_exhausted",
                        attempt=index + 1,
                        max_attempts=self.max_attempts,
                        cause=verdict.cause.value,
                        policy=self.policy.value,
                    )
                    if raised is not None:
                        raise raised
                    raise VerificationFailure(verdict)

                logger.warning(
                    "verification_attempt_retrying",
                    attempt=index + 1,
                    max_attempts=self.max_attempts,
                    cause=verdict.cause.value,
                    transport=verdict.transport,
                    backoff_seconds=self.backoff_seconds,
                )
            await self._sleep(self.backoff_seconds)

        raise AssertionError("unreachable: retry loop always returns or raises")


async def run_with_retry(
    attempt_fn: AttemptFn,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    policy: RetryPolicy = RetryPolicy.LENIENT,
    sleep: Sleep = asyncio.sleep,
) -> Success:
    supervisor = RetrySupervisor(
        max_attempts=max_attempts,
        backoff_seconds=backoff_seconds,
        policy=policy,
        sleep=sleep,
    )
    return await supervisor.run(attempt_fn)


async def _run_attempt(
    attempt_fn: AttemptFn, policy: RetryPolicy
) -> tuple[VerificationVerdict, Exception | None]:
    """Run one attempt; the second item is the exception to re-raise on give-up."""

    try:
        return await attempt_fn(), None
    except FATAL_ERRORS:
        raise
    except VerificationFailure as exc:
        return exc.failure, None
    except PlaywrightError as exc:
        return Failure(FailureCause.REQUEST_FAILED, str(exc), transport=True), None
    except Exception as exc:
        if policy is RetryPolicy.STRICT:
            raise
        message = f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__
        return Failure(FailureCause.CRASH, message), exc


__all__ = [
    "AttemptFn",
    "FATAL_ERRORS",
    "RetryAttempt",
    "RetrySupervisor",
    "is_transport_failure",
    "run_with_retry",
]
