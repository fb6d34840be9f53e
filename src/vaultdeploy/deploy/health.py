"""Health polling after the service starts.

Polling is synchronous and bounded: it stops on the first successful probe
and gives up after ``max_attempts``. A service that never reports healthy is
not an error; the caller reports the deployment as started without a
confirmed-healthy guarantee.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..shared.process import CommandResult
from .compose import health_url


@dataclass
class HealthCheckResult:
    """Result of health polling."""

    healthy: bool
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe."""

    ok: bool
    error: str | None = None


class HealthProbe(Protocol):
    def __call__(self) -> ProbeResult: ...


class ExecRuntime(Protocol):
    def exec(
        self, service: str, args: Sequence[str], timeout: float | None = None
    ) -> CommandResult: ...


class ExecHealthProbe:
    """Probe the health endpoint with curl inside the running container."""

    def __init__(
        self,
        runtime: ExecRuntime,
        service: str,
        url: str | None = None,
        timeout_seconds: float = 5.0,
    ):
        self.runtime = runtime
        self.service = service
        self.url = url or health_url()
        self.timeout_seconds = timeout_seconds

    def __call__(self) -> ProbeResult:
        args = ["curl", "-k", "-s", "--fail", "--max-time", f"{self.timeout_seconds:g}", self.url]
        # curl bounds the request, the process timeout bounds a hung exec
        result = self.runtime.exec(self.service, args, timeout=self.timeout_seconds)
        if result.ok:
            return ProbeResult(True)
        return ProbeResult(False, result.diagnostic)


class HttpsHealthProbe:
    """Probe the published HTTPS port from the host.

    Certificate verification is off: the certificate is self-signed.
    """

    def __init__(self, url: str, timeout_seconds: float = 5.0):
        self.url = url
        self.timeout_seconds = timeout_seconds

    def __call__(self) -> ProbeResult:
        try:
            response = httpx.get(self.url, verify=False, timeout=self.timeout_seconds)
        except httpx.ConnectError:
            return ProbeResult(False, "Connection refused")
        except httpx.TimeoutException:
            return ProbeResult(False, "Request timeout")
        except httpx.HTTPError as e:
            return ProbeResult(False, str(e))

        if response.status_code == 200:
            return ProbeResult(True)
        return ProbeResult(False, f"HTTP {response.status_code}")


class HealthPoller:
    """Poll a health probe at a fixed interval."""

    def __init__(
        self,
        max_attempts: int = 10,
        interval_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize health poller.

        Args:
            max_attempts: Maximum number of probe attempts.
            interval_seconds: Seconds slept between attempts.
            sleep: Sleep function.
            clock: Monotonic clock used for elapsed time.
        """
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.clock = clock

    def wait_for_healthy(
        self,
        probe: HealthProbe,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
    ) -> HealthCheckResult:
        """Probe until healthy or out of attempts.

        Args:
            probe: Health probe to run on each attempt.
            on_attempt: Optional callback called with (attempt, max_attempts, error)
                       for progress reporting.

        Returns:
            HealthCheckResult with status information.
        """
        start = self.clock()
        last_error: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            outcome = probe()
            if outcome.ok:
                return HealthCheckResult(
                    healthy=True,
                    attempts=attempt,
                    elapsed_seconds=self.clock() - start,
                )
            last_error = outcome.error

            if on_attempt:
                on_attempt(attempt, self.max_attempts, last_error)

            # No sleep after the final attempt
            if attempt < self.max_attempts:
                self.sleep(self.interval_seconds)

        return HealthCheckResult(
            healthy=False,
            attempts=self.max_attempts,
            elapsed_seconds=self.clock() - start,
            error=f"Service not confirmed healthy after {self.max_attempts} attempts. "
            f"Last error: {last_error}",
        )
