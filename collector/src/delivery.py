"""
InfluxDB v2 line protocol writer.

Owns one persistent ``httpx.AsyncClient`` (connection pooling and TLS
sessions are reused across cycles) and a destination URL that is built once
at construction::

    <base_url>/api/v2/write?org=<org>&bucket=<bucket>&precision=<precision>

Every :meth:`InfluxWriter.write` issues exactly one POST and classifies the
result:

- ``Success``      -- HTTP 1xx/2xx/3xx, with the response body if one was sent.
- ``Rejected``     -- HTTP 4xx/5xx, carrying the status code.
- ``LocalFailure`` -- no HTTP status: DNS, refused connection, timeout, TLS,
  or a write on a closed writer.

There is no retry and no buffering; a failed payload is dropped by the
caller.  Termination signals are blocked while a request is in flight and the
previous signal mask is always restored.

The ``Authorization: Token <secret>`` header is sent only when the
``INFLUXDB_TOKEN`` environment variable is set and non-empty.  The token is
re-read on every write.

CHANGELOG:
- 2026-10-18: Block termination signals during a request
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import httpx

from collector.src.errors import WriterConstructionError
from collector.src.line_protocol import Precision, join_lines

logger = logging.getLogger(__name__)

WRITE_PATH = "/api/v2/write"
"""InfluxDB v2 write endpoint path."""

TOKEN_ENV_VAR = "INFLUXDB_TOKEN"
"""Environment variable holding the InfluxDB API token."""

_DEFAULT_TIMEOUT_S = 10.0

_TERMINATION_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT")
    if hasattr(signal, name)
)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Success:
    """The server accepted the payload.

    Attributes:
        body: Response body, or ``None`` when the server sent none.
    """

    body: str | None = None


@dataclass(frozen=True, slots=True)
class Rejected:
    """The server answered with an HTTP error status.

    Attributes:
        status_code: The HTTP status (400-599).
        body: Response body (InfluxDB sends a JSON error object), if any.
    """

    status_code: int
    body: str | None = None


@dataclass(frozen=True, slots=True)
class LocalFailure:
    """The request failed before any HTTP status was received.

    Attributes:
        reason: Human-readable cause.
    """

    reason: str


DeliveryOutcome = Success | Rejected | LocalFailure


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_write_url(
    base_url: str,
    org: str,
    bucket: str,
    precision: Precision | str,
) -> httpx.URL:
    """Compose the full write URL.

    A base URL without a scheme defaults to ``https://``.  Any path on the
    base URL is replaced by the write path.

    Raises:
        WriterConstructionError: If the URL cannot be composed.
    """
    if not base_url:
        raise WriterConstructionError("InfluxDB base URL must not be empty")
    if not org or not bucket:
        raise WriterConstructionError("InfluxDB org and bucket must not be empty")
    try:
        precision = Precision(precision)
    except ValueError as exc:
        raise WriterConstructionError(f"invalid precision {precision!r}") from exc

    if "://" not in base_url:
        base_url = f"https://{base_url}"

    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise WriterConstructionError(f"invalid InfluxDB URL '{base_url}': {exc}") from exc

    if url.scheme not in ("http", "https"):
        raise WriterConstructionError(f"unsupported URL scheme '{url.scheme}'")
    if not url.host:
        raise WriterConstructionError(f"InfluxDB URL '{base_url}' has no host")
    if url.userinfo:
        raise WriterConstructionError("credentials in the InfluxDB URL are not allowed")

    return url.copy_with(
        path=WRITE_PATH,
        params={"org": org, "bucket": bucket, "precision": precision.value},
    )


@contextlib.contextmanager
def block_termination_signals() -> Iterator[None]:
    """Block termination signals in the calling thread for the block's duration.

    Signals arriving meanwhile stay pending and are delivered once the
    previous mask is restored.  A no-op where ``pthread_sigmask`` is missing.
    """
    if not hasattr(signal, "pthread_sigmask"):
        yield
        return
    previous = signal.pthread_sigmask(signal.SIG_BLOCK, _TERMINATION_SIGNALS)
    try:
        yield
    finally:
        signal.pthread_sigmask(signal.SIG_SETMASK, previous)


def classify_response(response: httpx.Response) -> DeliveryOutcome:
    """Map an HTTP response to a delivery outcome."""
    body = response.text or None
    if response.status_code < 400:
        return Success(body=body)
    return Rejected(status_code=response.status_code, body=body)


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class InfluxWriter:
    """Long-lived InfluxDB writer reusing one HTTP client.

    Args:
        base_url: InfluxDB base URL, ``scheme://host[:port]``.
        org: InfluxDB organisation.
        bucket: InfluxDB bucket.
        precision: Timestamp precision of the lines that will be written.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).

    Raises:
        WriterConstructionError: If the destination URL cannot be built.

    Usage::

        async with InfluxWriter("https://influx.example.com", "org", "bucket") as w:
            outcome = await w.write(["instant,meter=1 voltage_l1_n=230.1 1700000000"])
    """

    def __init__(
        self,
        base_url: str,
        org: str,
        bucket: str,
        precision: Precision | str = Precision.S,
        *,
        timeout: float = _DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = build_write_url(base_url, org, bucket, precision)
        self._precision = Precision(precision)
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=True,
            transport=transport,
        )
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def url(self) -> str:
        """The full write URL."""
        return str(self._url)

    @property
    def precision(self) -> Precision:
        """Timestamp precision declared to the server."""
        return self._precision

    @property
    def closed(self) -> bool:
        """True once :meth:`aclose` has been called."""
        return self._closed

    async def write(self, payload: str | Sequence[str]) -> DeliveryOutcome:
        """POST one payload of line protocol lines.

        Args:
            payload: Either a ready payload string or a sequence of lines,
                which is joined with a newline after every line.

        Returns:
            The classified :data:`DeliveryOutcome`.  The writer remains
            usable whatever the outcome.
        """
        if self._closed:
            return LocalFailure(reason="writer is closed")

        body = payload if isinstance(payload, str) else join_lines(payload)
        try:
            content = body.encode("utf-8")
        except UnicodeEncodeError as exc:
            logger.warning("Write failed (payload not encodable): %s", exc)
            return LocalFailure(reason=f"payload not encodable: {exc}")

        with block_termination_signals():
            try:
                response = await self._client.post(
                    self._url,
                    content=content,
                    headers=self._headers(),
                )
            except httpx.HTTPError as exc:
                logger.warning("Write failed (local error): %s: %s", type(exc).__name__, exc)
                return LocalFailure(reason=f"{type(exc).__name__}: {exc}")

        outcome = classify_response(response)
        if isinstance(outcome, Rejected):
            logger.warning(
                "Write rejected (HTTP %d): %s",
                outcome.status_code,
                outcome.body or "<no body>",
            )
        else:
            logger.debug("Write accepted (HTTP %d)", response.status_code)
        return outcome

    async def aclose(self) -> None:
        """Release the HTTP client.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()

    async def __aenter__(self) -> InfluxWriter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "text/plain; charset=utf-8",
        }
        token = os.environ.get(TOKEN_ENV_VAR)
        if token:
            headers["Authorization"] = f"Token {token}"
        return headers
