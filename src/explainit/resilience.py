"""
Resilience layer around the request dispatcher.

Every explanation request runs through ResilienceController.execute, which
bounds each provider call with a timeout, retries retryable failures with
exponential backoff and converts every failure into one of the user-facing
error kinds. Requests never raise: they resolve to a DispatchResult that is
either a success, a classified failure, or a cancellation.

Key Features:
- Per-call timeout enforced on the event loop, independent of the HTTP client
- Bounded retry loop with exponential backoff (1x, 2x, 4x the base delay)
- 5xx, 429, timeouts and network failures retried; other 4xx never retried
- Credential-error flag computed from the original failure classification
- AbortSignal cancels the in-flight call and any pending backoff sleep
- Attempt history for logging and diagnostics
"""
# src/explainit/resilience.py
import asyncio
import functools
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from explainit import config
from explainit.dispatcher import dispatch
from explainit.exceptions import CredentialError, ExplainItError, RequestTimeoutError, classify_failure
from explainit.logging_config import get_logger
from explainit.providers import ProviderDescriptor
from explainit.sanitize import mask_credential

logger = get_logger("resilience")

OUTCOME_SUCCESS = "success"
OUTCOME_RETRYABLE = "retryable"
OUTCOME_FATAL = "fatal"
OUTCOME_CANCELLED = "cancelled"


class RequestCancelled(Exception):
    """Raised inside the controller when the request's AbortSignal fires."""


class AbortSignal:
    """One-shot cancellation flag shared by a request and whoever may abort it."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class DispatchAttempt:
    """A single attempt within one request."""
    index: int
    elapsed: float
    outcome: str
    reason: Optional[str] = None


@dataclass
class DispatchResult:
    """Terminal result of a request."""
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    user_action: Optional[str] = None
    is_credential_error: bool = False
    cancelled: bool = False
    attempts: List[DispatchAttempt] = field(default_factory=list)

    @classmethod
    def from_error(cls, error: ExplainItError, attempts: Optional[List[DispatchAttempt]] = None):
        return cls(
            success=False,
            error=error.message,
            error_code=error.error_code,
            user_action=error.user_action,
            is_credential_error=isinstance(error, CredentialError),
            attempts=attempts or [],
        )

    @classmethod
    def cancelled_result(cls, attempts: Optional[List[DispatchAttempt]] = None):
        return cls(success=False, error="Request cancelled", error_code="CANCELLED",
                   cancelled=True, attempts=attempts or [])

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "text": self.text, "isCredentialError": False}
        payload = {
            "success": False,
            "error": self.error,
            "errorCode": self.error_code,
            "isCredentialError": self.is_credential_error,
        }
        if self.cancelled:
            payload["cancelled"] = True
        return payload


class ResilienceController:
    """Timeout, retry and classification policy for provider calls."""

    def __init__(
        self,
        dispatch_func: Callable[..., str] = dispatch,
        timeout: float = config.DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = 2,
        retry_delay: float = 1.0
    ):
        self.dispatch_func = dispatch_func
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given 0-based attempt."""
        return self.retry_delay * (2 ** attempt)

    async def execute(
        self,
        provider: ProviderDescriptor,
        credential: str,
        prompt: str,
        signal: Optional[AbortSignal] = None,
        *,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        max_tokens: int = config.DEFAULT_MAX_TOKENS
    ) -> DispatchResult:
        """Run the request to a terminal DispatchResult. Never raises for dispatch failures."""
        signal = signal or AbortSignal()
        retries = max(0, self.max_retries if max_retries is None else max_retries)
        call_timeout = self.timeout if timeout is None else timeout
        attempts: List[DispatchAttempt] = []

        for attempt in range(retries + 1):
            if signal.aborted:
                return DispatchResult.cancelled_result(attempts)

            started = time.monotonic()
            try:
                text = await self._call_once(provider, credential, prompt, signal,
                                             call_timeout, max_tokens)
            except RequestCancelled:
                attempts.append(DispatchAttempt(attempt, time.monotonic() - started,
                                                OUTCOME_CANCELLED))
                logger.info("Request cancelled", provider=provider.id, attempt=attempt)
                return DispatchResult.cancelled_result(attempts)
            except Exception as e:
                error = classify_failure(e, provider.id)
                elapsed = time.monotonic() - started

                if not error.retryable:
                    attempts.append(DispatchAttempt(attempt, elapsed, OUTCOME_FATAL, error.message))
                    logger.error(
                        "Request failed",
                        provider=provider.id,
                        credential=mask_credential(credential),
                        attempt=attempt,
                        error_code=error.error_code,
                        error=error.message
                    )
                    return DispatchResult.from_error(error, attempts)

                attempts.append(DispatchAttempt(attempt, elapsed, OUTCOME_RETRYABLE, error.message))
                if attempt == retries:
                    logger.error(
                        "Max retries exceeded",
                        provider=provider.id,
                        attempt=attempt,
                        error_code=error.error_code,
                        error=error.message
                    )
                    return DispatchResult.from_error(error, attempts)

                logger.warning(
                    "Attempt failed, retrying",
                    provider=provider.id,
                    attempt=attempt,
                    error_code=error.error_code,
                    error=error.message
                )

                if self.retry_delay > 0:
                    try:
                        await self._race(asyncio.sleep(self.backoff_delay(attempt)), signal, None)
                    except RequestCancelled:
                        logger.info("Request cancelled during backoff", provider=provider.id)
                        return DispatchResult.cancelled_result(attempts)
                continue

            attempts.append(DispatchAttempt(attempt, time.monotonic() - started, OUTCOME_SUCCESS))
            logger.info(
                "Request succeeded",
                provider=provider.id,
                attempts=len(attempts),
                text_length=len(text)
            )
            return DispatchResult(success=True, text=text, attempts=attempts)

    async def _call_once(
        self,
        provider: ProviderDescriptor,
        credential: str,
        prompt: str,
        signal: AbortSignal,
        timeout: float,
        max_tokens: int
    ) -> str:
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(
            None,
            functools.partial(
                self.dispatch_func,
                provider,
                credential,
                prompt,
                timeout=timeout,
                max_tokens=max_tokens,
            ),
        )
        try:
            return await self._race(call, signal, timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(provider=provider.id, timeout=timeout)

    @staticmethod
    async def _race(awaitable, signal: AbortSignal, timeout: Optional[float]):
        """Await awaitable unless the signal fires or timeout elapses first."""
        work = asyncio.ensure_future(awaitable)
        aborted = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {work, aborted},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for fut in (work, aborted):
                if not fut.done():
                    fut.cancel()

        if signal.aborted:
            if work.done() and not work.cancelled():
                work.exception()
            raise RequestCancelled()
        if work in done:
            return work.result()
        raise asyncio.TimeoutError()
