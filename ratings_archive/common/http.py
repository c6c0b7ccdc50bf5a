"""Async HTTP client with content negotiation, URL rewriting and retries.

Establishment files are fetched with an exponential backoff retry policy;
reference datasets are fetched once and paced by the caller.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Awaitable, Callable, Iterable, Protocol

import aiohttp
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from ratings_archive.common.constants import (
    ACCEPT_BY_FORMAT,
    API_VERSION,
    DEFAULT_LANGUAGE,
    USER_AGENT,
    WELSH_LANGUAGE,
)
from ratings_archive.common.errors import StageError
from ratings_archive.common.logging import get_logger, log_event

RETRYABLE_STATUS_CODES = {504}
NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)
BODY_EXCERPT_CHARS = 500


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 5
    initial_delay: float = 1.0
    attempt_timeout: float = 120.0


class Rewrite(Protocol):
    from_prefix: str
    to_prefix: str


class HttpRequestError(StageError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, url: str | None = None, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.body = body


class RetryableHttpError(HttpRequestError):
    error_code = "HTTP_RETRYABLE"


class UndecodableBodyError(HttpRequestError):
    error_code = "UNDECODABLE_BODY"


class FetchExhaustedError(HttpRequestError):
    error_code = "FETCH_EXHAUSTED"

    def __init__(self, message: str, *, url: str, attempts: int, last_error: BaseException | None) -> None:
        status = getattr(last_error, "status", None)
        body = getattr(last_error, "body", None)
        super().__init__(message, url=url, status=status, body=body)
        self.attempts = attempts
        self.last_error = last_error


class FetchOutcome(enum.Enum):
    SUCCEED = "succeed"
    RETRY = "retry"
    FAIL = "fail"


def classify_attempt(status: int | None = None, error: BaseException | None = None) -> FetchOutcome:
    """Decide what a single attempt's result means for the retry loop.

    Network-level failures (connection errors, timeouts) and gateway
    timeouts are transient; every other non-2xx status is permanent.
    """
    if error is not None:
        if isinstance(error, NETWORK_ERRORS):
            return FetchOutcome.RETRY
        return FetchOutcome.FAIL
    if status is not None and 200 <= status < 300:
        return FetchOutcome.SUCCEED
    if status in RETRYABLE_STATUS_CODES:
        return FetchOutcome.RETRY
    return FetchOutcome.FAIL


def build_headers(fmt: str, language: str | None = None) -> dict[str, str]:
    accept = ACCEPT_BY_FORMAT.get(fmt)
    if accept is None:
        raise ValueError(f"Unsupported format: {fmt}")
    return {
        "User-Agent": USER_AGENT,
        "x-api-version": API_VERSION,
        "Accept": accept,
        "Accept-Language": WELSH_LANGUAGE if language == WELSH_LANGUAGE else DEFAULT_LANGUAGE,
    }


def rewrite_url(url: str, rewrites: Iterable[Rewrite]) -> str:
    for rewrite in rewrites:
        if url.startswith(rewrite.from_prefix):
            return rewrite.to_prefix + url[len(rewrite.from_prefix) :]
    return url


def _excerpt(body: str | None) -> str:
    if not body:
        return ""
    return body[:BODY_EXCERPT_CHARS]


class HttpClient:
    def __init__(
        self,
        *,
        base_url: str = "",
        reference_endpoints: dict[str, str] | None = None,
        url_rewrites: Iterable[Rewrite] = (),
        retry: RetryConfig | None = None,
        session: Any = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.reference_endpoints = dict(reference_endpoints or {})
        self.url_rewrites = tuple(url_rewrites)
        self.retry = retry or RetryConfig()
        self.session = session
        self.sleep = sleep
        self.logger = logger or get_logger()
        self._owns_session = session is None

    async def __aenter__(self) -> "HttpClient":
        if self.session is None:
            self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None

    async def _attempt(self, url: str, headers: dict[str, str]) -> str:
        if self.session is None:
            raise RuntimeError("HttpClient used outside of its async context")

        status: int | None = None
        body: str | None = None
        error: BaseException | None = None
        decode_error: UnicodeDecodeError | None = None
        try:
            timeout = aiohttp.ClientTimeout(total=self.retry.attempt_timeout)
            async with self.session.get(url, headers=headers, timeout=timeout) as response:
                status = response.status
                try:
                    body = await response.text()
                except UnicodeDecodeError as exc:
                    decode_error = exc
        except NETWORK_ERRORS as exc:
            error = exc

        outcome = classify_attempt(status, error)
        if outcome is FetchOutcome.SUCCEED:
            if decode_error is not None:
                raise UndecodableBodyError(
                    f"Response body from {url} is not valid text: {decode_error}", url=url, status=status
                ) from decode_error
            return body or ""
        if outcome is FetchOutcome.RETRY:
            if error is not None:
                raise RetryableHttpError(f"Network failure fetching {url}: {error!r}", url=url) from error
            raise RetryableHttpError(f"Retryable HTTP status {status} from {url}", url=url, status=status, body=_excerpt(body))
        raise HttpRequestError(
            f"HTTP status {status} from {url}: {_excerpt(body)}",
            url=url,
            status=status,
            body=_excerpt(body),
        )

    def _log_retry(self, url: str) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            delay = retry_state.next_action.sleep if retry_state.next_action else None
            error = retry_state.outcome.exception() if retry_state.outcome else None
            log_event(
                self.logger,
                f"retrying {url} in {delay}s after: {error}",
                level=logging.WARNING,
                document=url,
                event="FETCH_RETRY",
                status="retry",
                attempt=retry_state.attempt_number,
                error_code=getattr(error, "error_code", None),
            )

        return _before_sleep

    async def fetch_document(self, url: str, *, fmt: str = "xml", language: str | None = None) -> str:
        """Fetch an establishment data file, retrying transient failures."""
        target = rewrite_url(url, self.url_rewrites)
        headers = build_headers(fmt, language)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential(multiplier=self.retry.initial_delay, exp_base=2, min=0),
            retry=retry_if_exception_type(RetryableHttpError),
            sleep=self.sleep,
            before_sleep=self._log_retry(target),
            reraise=False,
        )
        try:
            return await retrying(self._attempt, target, headers)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            attempts = exc.last_attempt.attempt_number
            raise FetchExhaustedError(
                f"Giving up on {target} after {attempts} attempts: {last_error}",
                url=target,
                attempts=attempts,
                last_error=last_error,
            ) from last_error

    def reference_url(self, kind: str) -> str:
        endpoint = self.reference_endpoints.get(kind)
        if endpoint is None:
            raise ValueError(f"Unknown reference dataset: {kind}")
        return f"{self.base_url}/{endpoint}"

    async def fetch_reference_dataset(self, kind: str, *, language: str | None = None, fmt: str = "json") -> str:
        """Fetch one reference dataset in a single attempt."""
        return await self._attempt(self.reference_url(kind), build_headers(fmt, language))
