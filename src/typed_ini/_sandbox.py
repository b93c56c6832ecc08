"""Safety check run before any real substitution.

The candidate text is substituted by a restricted copy of the evaluator,
on a separate worker thread. Every invokable operation in that copy is
replaced with a refusal, so the trial run can read bindings and the
environment but cannot act. If the trial raises, times out or is
cancelled, the text is rejected. The trial's output is discarded.
"""

from __future__ import annotations

from concurrent.futures import CancelledError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from ._environment import EnvironmentRepository, OsEnvironment, expand_placeholders
from ._evaluator import Evaluator
from ._logging import Logger, LogLevel, safe_log
from ._types import SecurityViolation

DEFAULT_TIMEOUT = 10.0


def _trial(
    evaluator: Evaluator, texts: list[str], environment: EnvironmentRepository | None
) -> None:
    # one substitution per value, exactly as the real pass runs them
    for text in texts:
        stage = evaluator.substitute(text)
        if environment is not None:
            expand_placeholders(stage, environment)


class Sandbox:
    """Approves or rejects text before it is substituted for real."""

    def __init__(
        self,
        evaluator: Evaluator,
        environment: EnvironmentRepository | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
        logger: Logger | None = None,
    ) -> None:
        self.evaluator = evaluator
        self.environment = environment or OsEnvironment()
        self.timeout = timeout
        self.logger = logger

    def check(self, text: str, expand_environment: bool = False) -> None:
        """Return if *text* is safe to substitute; raise ``SecurityViolation`` otherwise."""
        self._run([text], expand_environment)

    def approve_all(self, raw_values: list[str], expand_environment: bool = False) -> None:
        """Check every raw value of a document in a single trial run.

        Each value is substituted on its own, so a reference can never span
        two values.
        """
        self._run(list(raw_values), expand_environment)

    def _run(self, texts: list[str], expand_environment: bool) -> None:
        restricted = self.evaluator.restricted()
        environment = self.environment if expand_environment else None

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="typed-ini-sandbox")
        future = executor.submit(_trial, restricted, texts, environment)
        try:
            future.result(timeout=self.timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            self._reject(f"trial substitution did not finish within {self.timeout}s")
            raise SecurityViolation(f"timed out after {self.timeout}s") from exc
        except CancelledError as exc:
            self._reject("trial substitution was cancelled")
            raise SecurityViolation("trial substitution was cancelled") from exc
        except Exception as exc:
            self._reject(str(exc))
            raise SecurityViolation(str(exc)) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        safe_log(self.logger, LogLevel.debug, f"Sandbox approved {len(texts)} values")

    def _reject(self, reason: str) -> None:
        safe_log(self.logger, LogLevel.error, f"Sandbox rejected substitution: {reason}")
