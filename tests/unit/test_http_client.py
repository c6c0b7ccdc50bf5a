from __future__ import annotations

import asyncio

import aiohttp
import pytest

from ratings_archive.common.config_loader import UrlRewrite
from ratings_archive.common.http import (
    FetchExhaustedError,
    FetchOutcome,
    HttpClient,
    HttpRequestError,
    RetryableHttpError,
    RetryConfig,
    UndecodableBodyError,
    build_headers,
    classify_attempt,
    rewrite_url,
)

REWRITES = (
    UrlRewrite(
        from_prefix="http://ratings.food.gov.uk/OpenDataFiles/",
        to_prefix="https://ratings.food.gov.uk/api/open-data-files/",
    ),
)


class FakeResponse:
    def __init__(self, status: int, body: str | BaseException = ""):
        self.status = status
        self._body = body

    async def text(self) -> str:
        if isinstance(self._body, BaseException):
            raise self._body
        return self._body


class FakeRequest:
    def __init__(self, outcome):
        self._outcome = outcome

    async def __aenter__(self):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *_exc):
        return None


class FakeSession:
    def __init__(self, outcomes: list):
        self.outcomes = list(outcomes)
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return FakeRequest(self.outcomes.pop(0))


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _client(outcomes: list, **kwargs) -> tuple[HttpClient, FakeSession, RecordingSleep]:
    session = FakeSession(outcomes)
    sleep = RecordingSleep()
    client = HttpClient(session=session, sleep=sleep, url_rewrites=REWRITES, **kwargs)
    return client, session, sleep


def test_fetch_document_success_on_first_attempt():
    client, session, sleep = _client([FakeResponse(200, "<FHRSEstablishment/>")])

    body = asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert body == "<FHRSEstablishment/>"
    assert len(session.calls) == 1
    assert sleep.delays == []


def test_fetch_document_retries_gateway_timeouts_with_doubling_delay():
    outcomes = [FakeResponse(504, "busy")] * 4 + [FakeResponse(200, "ok")]
    client, session, sleep = _client(outcomes)

    body = asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert body == "ok"
    assert len(session.calls) == 5
    assert sleep.delays == [1, 2, 4, 8]


def test_fetch_document_gives_up_after_five_gateway_timeouts():
    client, session, sleep = _client([FakeResponse(504, "busy")] * 6)

    with pytest.raises(FetchExhaustedError) as excinfo:
        asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert len(session.calls) == 5
    assert sleep.delays == [1, 2, 4, 8]
    assert excinfo.value.attempts == 5
    assert excinfo.value.status == 504
    assert isinstance(excinfo.value.last_error, RetryableHttpError)


def test_fetch_document_does_not_retry_other_error_statuses():
    client, session, sleep = _client([FakeResponse(404, "no such file")])

    with pytest.raises(HttpRequestError) as excinfo:
        asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert not isinstance(excinfo.value, (RetryableHttpError, FetchExhaustedError))
    assert excinfo.value.status == 404
    assert "no such file" in str(excinfo.value)
    assert len(session.calls) == 1
    assert sleep.delays == []


def test_fetch_document_retries_network_errors_and_timeouts():
    outcomes = [
        aiohttp.ClientConnectionError("reset"),
        asyncio.TimeoutError(),
        FakeResponse(200, "ok"),
    ]
    client, session, sleep = _client(outcomes)

    assert asyncio.run(client.fetch_document("https://example.test/a.xml")) == "ok"
    assert len(session.calls) == 3
    assert sleep.delays == [1, 2]


def test_fetch_document_respects_configured_attempts_and_delay():
    client, session, sleep = _client(
        [FakeResponse(504)] * 3,
        retry=RetryConfig(max_attempts=3, initial_delay=0.5, attempt_timeout=5),
    )

    with pytest.raises(FetchExhaustedError):
        asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert len(session.calls) == 3
    assert sleep.delays == [0.5, 1.0]
    assert session.calls[0][1]["timeout"].total == 5


def test_fetch_document_rewrites_redirect_host_and_negotiates_format():
    client, session, _sleep = _client([FakeResponse(200, "{}")])

    asyncio.run(
        client.fetch_document(
            "http://ratings.food.gov.uk/OpenDataFiles/FHRS123cy-GB.json",
            fmt="json",
            language="cy-GB",
        )
    )

    url, kwargs = session.calls[0]
    assert url == "https://ratings.food.gov.uk/api/open-data-files/FHRS123cy-GB.json"
    assert kwargs["headers"]["Accept"] == "application/json"
    assert kwargs["headers"]["Accept-Language"] == "cy-GB"


def test_fetch_reference_dataset_is_single_attempt():
    client, session, sleep = _client(
        [FakeResponse(504, "busy")],
        base_url="https://api.example.test/",
        reference_endpoints={"authorities": "Authorities"},
    )

    with pytest.raises(HttpRequestError):
        asyncio.run(client.fetch_reference_dataset("authorities", fmt="xml"))

    assert session.calls[0][0] == "https://api.example.test/Authorities"
    assert session.calls[0][1]["headers"]["Accept"] == "application/xml"
    assert sleep.delays == []


def test_fetch_reference_dataset_rejects_unknown_kind():
    client, _session, _sleep = _client([], base_url="https://api.example.test")

    with pytest.raises(ValueError):
        asyncio.run(client.fetch_reference_dataset("missing"))


def test_classify_attempt_covers_status_and_network_outcomes():
    assert classify_attempt(200) is FetchOutcome.SUCCEED
    assert classify_attempt(204) is FetchOutcome.SUCCEED
    assert classify_attempt(504) is FetchOutcome.RETRY
    assert classify_attempt(503) is FetchOutcome.FAIL
    assert classify_attempt(404) is FetchOutcome.FAIL
    assert classify_attempt(error=aiohttp.ServerDisconnectedError()) is FetchOutcome.RETRY
    assert classify_attempt(error=asyncio.TimeoutError()) is FetchOutcome.RETRY
    assert classify_attempt(error=RuntimeError("bug")) is FetchOutcome.FAIL


def test_rewrite_url_only_replaces_exact_prefix():
    assert (
        rewrite_url("http://ratings.food.gov.uk/OpenDataFiles/FHRS1en-GB.xml", REWRITES)
        == "https://ratings.food.gov.uk/api/open-data-files/FHRS1en-GB.xml"
    )
    unmatched = "https://mirror.example.test/http://ratings.food.gov.uk/OpenDataFiles/FHRS1en-GB.xml"
    assert rewrite_url(unmatched, REWRITES) == unmatched


def test_build_headers_defaults_to_english_and_fixed_fingerprint():
    headers = build_headers("xml", "fr-FR")

    assert headers["Accept-Language"] == "en-GB"
    assert headers["Accept"] == "application/xml"
    assert headers["x-api-version"] == "2"
    assert headers["User-Agent"].startswith("Mozilla/5.0")

    with pytest.raises(ValueError):
        build_headers("csv")


def _bad_bytes() -> UnicodeDecodeError:
    return UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")


def test_undecodable_body_is_a_permanent_failure():
    client, session, sleep = _client([FakeResponse(200, _bad_bytes())])

    with pytest.raises(UndecodableBodyError) as excinfo:
        asyncio.run(client.fetch_document("https://example.test/a.xml"))

    assert isinstance(excinfo.value, HttpRequestError)
    assert excinfo.value.status == 200
    assert len(session.calls) == 1
    assert sleep.delays == []


def test_undecodable_gateway_timeout_body_is_still_retried():
    client, session, sleep = _client([FakeResponse(504, _bad_bytes()), FakeResponse(200, "ok")])

    assert asyncio.run(client.fetch_document("https://example.test/a.xml")) == "ok"
    assert len(session.calls) == 2
    assert sleep.delays == [1]
