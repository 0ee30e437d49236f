"""
Onboarding Error Handling.

Two layers:
- ErrorCode / OnboardingError: transport-level failures from the save and
  profile endpoints, with a retryable flag.
- FailureKind: what the failure means to the state machine (suspend, retry,
  block navigation, reject locally).

Transport errors are converted to typed results at the persistence boundary
and never reach the route guard.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCode(Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    API_ERROR = "API_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class FailureKind(Enum):
    """State-machine meaning of a failure."""
    AUTH_UNRESOLVED = "auth_unresolved"                # transient, suspend
    PROFILE_UNAVAILABLE = "profile_unavailable"        # transient, suspend, never redirect
    SAVE_FAILED = "save_failed"                        # recoverable, retry or proceed
    COMPLETION_MARK_FAILED = "completion_mark_failed"  # must retry, blocks /home
    INVALID_SELECTION = "invalid_selection"            # local validation, never thrown

    @property
    def blocking(self) -> bool:
        """Blocking failures get an inline banner with retry."""
        return self in (FailureKind.COMPLETION_MARK_FAILED, FailureKind.INVALID_SELECTION)


class OnboardingError(Exception):
    """Failure talking to the onboarding endpoints."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Any = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.retryable = retryable

    def __repr__(self) -> str:
        return f"OnboardingError({self.code.value}, {self.message!r}, retryable={self.retryable})"


def _extract_message(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("error"), str):
                return value["error"]
    if isinstance(body, str) and body.strip():
        return body.strip()
    return None


def error_from_status(status: int, body: Any = None) -> OnboardingError:
    """
    Map an HTTP status (and parsed body) to an OnboardingError.

    0 means the request never got a response.
    """
    message = _extract_message(body)

    if status == 0:
        return OnboardingError(ErrorCode.NETWORK_ERROR, message or "Network error", body, retryable=True)
    if status in (401, 403):
        return OnboardingError(ErrorCode.AUTH_ERROR, message or "Unauthorized", body, retryable=False)
    if 400 <= status < 500:
        return OnboardingError(ErrorCode.VALIDATION_ERROR, message or "Invalid request", body, retryable=False)
    if status >= 500:
        return OnboardingError(ErrorCode.API_ERROR, message or "Server error", body, retryable=True)
    return OnboardingError(ErrorCode.UNKNOWN_ERROR, message or f"Unexpected status {status}", body)


def error_from_response(response: httpx.Response) -> OnboardingError:
    """Parse a non-success httpx response. JSON bodies first, then text."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    return error_from_status(response.status_code, body)


def error_from_exception(error: BaseException) -> OnboardingError:
    """Normalise anything raised during a request."""
    if isinstance(error, OnboardingError):
        return error
    if isinstance(error, httpx.TransportError):
        return OnboardingError(ErrorCode.NETWORK_ERROR, str(error) or "Network error", retryable=True)
    if isinstance(error, Exception) and str(error):
        return OnboardingError(ErrorCode.UNKNOWN_ERROR, str(error))
    return OnboardingError(ErrorCode.UNKNOWN_ERROR, "An unexpected error occurred")


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, OnboardingError) and error.retryable


def user_friendly_message(error: OnboardingError) -> str:
    """Text for the inline banner / transient notice."""
    match error.code:
        case ErrorCode.NETWORK_ERROR:
            return "Connection error. Please check your internet connection and try again."
        case ErrorCode.AUTH_ERROR:
            return "Authentication error. Please sign in again."
        case ErrorCode.API_ERROR:
            return "Server error. Please try again in a moment."
        case _:
            return error.message


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call `fn` until it succeeds.

    Makes one initial attempt plus up to `max_retries` retries, waiting
    base_delay * 2**attempt between them. Non-retryable OnboardingErrors are
    raised immediately. The last error is re-raised when retries run out.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except OnboardingError as e:
            if not e.retryable or attempt >= max_retries:
                raise
            last_error: Exception = e
        except Exception as e:
            if attempt >= max_retries:
                raise
            last_error = e

        delay = base_delay * (2 ** attempt)
        logger.warning(f"Attempt {attempt + 1} failed ({last_error}), retrying in {delay:.1f}s")
        attempt += 1
        await sleep(delay)
