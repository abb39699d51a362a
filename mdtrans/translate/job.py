"""
Submit-then-poll translation backend.

The backend is a hosted LLM pipeline application:

    POST {base_url}/applications/{app_id}/async     {"input": text}
        -> {"id": job_id}
    GET  {base_url}/applications/{app_id}/debug/{job_id}
        -> {"debug": [{"block": node_id, "output": ...}, ...]}

An empty ``debug`` list means the job is still running; it is polled
again after ``poll_interval`` seconds: one poll plus up to ``retry_limit``
more, within ``poll_deadline`` seconds. Fields wrapped in a ``data``
envelope are accepted as well. The translation is the ``output`` of the
entry produced by the configured output node.

Non-2xx responses raise ``BackendHTTPError`` immediately; the client's
rerun loop decides whether to try again.
"""

from __future__ import annotations

import functools
import logging
from typing import Optional

import httpx

from mdtrans.config import POLL_DEADLINE_MARGIN, POLL_INTERVAL, RETRY_LIMIT
from mdtrans.errors import (
    BackendHTTPError,
    ConfigurationError,
    MaxPollExceeded,
    OutputNodeMissing,
    RetryExhausted,
    TranslationBackendError,
)
from mdtrans.keys import KeyManager
from mdtrans.translate.base import TranslationContext, TranslationResult, Translator
from mdtrans.translate.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


class JobTranslator(Translator):
    """Translator backed by an asynchronous job service.

    Identifiers and credentials not passed explicitly are read from the
    ``KeyManager`` (services ``job_url``, ``job_app``, ``job_output_node``,
    ``job_key``, ``job_secret``, ``job_user``).

    Usage:
        translator = JobTranslator(app_id="...", output_node_id="...")
        result = await translator.translate("Hello world")
    """

    def __init__(
        self,
        app_id: Optional[str] = None,
        output_node_id: Optional[str] = None,
        base_url: Optional[str] = None,
        access_key: Optional[str] = None,
        access_secret: Optional[str] = None,
        user: Optional[str] = None,
        retry_limit: int = RETRY_LIMIT,
        poll_interval: float = POLL_INTERVAL,
        poll_deadline: Optional[float] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        key_manager: Optional[KeyManager] = None,
    ):
        self._keys = key_manager
        self.app_id = app_id or self._lookup("job_app")
        self.output_node_id = output_node_id or self._lookup("job_output_node")
        self.base_url = base_url or self._lookup("job_url")
        self.access_key = access_key or self._lookup("job_key")
        self.access_secret = access_secret or self._lookup("job_secret") or ""
        self.user = user or self._lookup("job_user") or ""

        missing = [
            service for service, value in (
                ("job_app", self.app_id),
                ("job_output_node", self.output_node_id),
                ("job_url", self.base_url),
                ("job_key", self.access_key),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Job backend is missing: {', '.join(missing)}. "
                "Run 'mdtrans keys set <service> <value>' or set the environment variables."
            )

        self.retry_limit = retry_limit
        self.poll_interval = poll_interval
        if poll_deadline is None:
            poll_deadline = (retry_limit + 1) * poll_interval + POLL_DEADLINE_MARGIN
        self.poll_deadline = poll_deadline
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _lookup(self, service: str) -> Optional[str]:
        if self._keys is None:
            self._keys = KeyManager()
        return self._keys.get_key(service)

    @property
    def name(self) -> str:
        return f"job-{self.app_id}"

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "x-langlink-access-key": self.access_key,
                    "x-langlink-access-secret": self.access_secret,
                    "x-langlink-user": self.user,
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _check(response: httpx.Response) -> dict:
        if not response.is_success:
            raise BackendHTTPError(response.status_code, response.text, str(response.request.url))
        return response.json()

    @staticmethod
    def _field(payload: dict, name: str):
        if name in payload:
            return payload[name]
        envelope = payload.get("data")
        return envelope.get(name) if isinstance(envelope, dict) else None

    async def submit(self, text: str) -> str:
        """Start a job and return its id."""
        response = await self._get_client().post(
            f"/applications/{self.app_id}/async",
            json={"input": text},
        )
        payload = self._check(response)
        job_id = self._field(payload, "id")
        if not job_id:
            raise TranslationBackendError(f"Submit response carries no job id: {payload!r:.200}")
        logger.debug("Submitted job %s (%d chars)", job_id, len(text))
        return str(job_id)

    async def poll(self, job_id: str) -> list[dict]:
        """Fetch the node results of a job; empty while it is running."""
        response = await self._get_client().get(f"/applications/{self.app_id}/debug/{job_id}")
        payload = self._check(response)
        return self._field(payload, "debug") or []

    async def translate(
        self,
        text: str,
        context: TranslationContext | None = None,
    ) -> TranslationResult:
        job_id = await self.submit(text)
        try:
            nodes = await retry_async(
                functools.partial(self.poll, job_id),
                RetryPolicy(self.retry_limit + 1, self.poll_interval, self.poll_deadline),
                retry_on=(),
                result_predicate=lambda nodes: not nodes,
            )
        except RetryExhausted as e:
            raise MaxPollExceeded(e.attempts, job_id) from None

        for node in nodes:
            if node.get("block") == self.output_node_id:
                output = node.get("output")
                if not isinstance(output, str):
                    raise TranslationBackendError(f"Job {job_id} returned a non-text output: {output!r:.200}")
                return TranslationResult(
                    text=output,
                    source_text=text,
                    metadata={"translator": self.name, "job_id": job_id},
                )
        raise OutputNodeMissing(self.output_node_id, job_id)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
