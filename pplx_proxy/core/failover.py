"""Send-with-retry across the session pool."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx
from fastapi import Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from ..logging import mask_token
from ..settings import Settings
from ..translator.stream_translator import StreamTranslator
from .exceptions import (
    ConfigurationError,
    RetriesExhaustedError,
    SessionIndexError,
    SessionRetryableError,
)
from .models import ModelTable
from .openai_format import SSE_DONE, build_completion, build_stream_chunk, encode_sse
from .prompt import Prompt
from .session_pool import Session, SessionPool
from .upstream import PerplexityClient

logger = logging.getLogger("pplx-proxy")

DisconnectChecker = Callable[[], Awaitable[bool]]
ClientFactory = Callable[..., PerplexityClient]


class AttemptOutcome(Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class AttemptResult:
    outcome: AttemptOutcome
    response: Optional[Response] = None
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class CompletionJob:
    """Everything one inbound request needs for an attempt.

    ``prompt`` is never modified; each attempt starts again from its text.
    """

    prompt: Prompt
    upstream_model: str
    public_model: str
    search: bool = False
    stream: bool = True
    is_incognito: bool = True


class FailoverController:
    """Runs a request against successive sessions until one is committed.

    A streaming attempt is committed once the first output delta has been
    produced: from then on the response belongs to the caller and later
    failures end the stream instead of triggering another attempt. A
    buffered attempt is committed when translation completes.

    Each attempt asks the pool for the next index, so concurrent requests
    interleave on the shared cursor and a request is not guaranteed to visit
    every session before giving up.
    """

    def __init__(
        self,
        pool: SessionPool,
        settings: Settings,
        models: ModelTable,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.pool = pool
        self.settings = settings
        self.models = models
        self._client_factory = client_factory or self._default_client_factory

    def _default_client_factory(
        self, session: Session, *, model: str, search: bool
    ) -> PerplexityClient:
        return PerplexityClient(
            session.token,
            model=model,
            search=search,
            proxy=self.settings.upstream_proxy,
            timeout=self.settings.timeout,
            connect_timeout=self.settings.connect_timeout,
        )

    async def send(
        self,
        job: CompletionJob,
        disconnect_checker: Optional[DisconnectChecker] = None,
    ) -> Response:
        """Return the first committed response.

        Raises:
            ConfigurationError: If the pool is empty.
            RetriesExhaustedError: If every attempt failed.
        """
        max_attempts = len(self.pool)
        if max_attempts == 0:
            raise ConfigurationError("No sessions available")

        logger.info(
            "Received request for model %s (stream=%s, search=%s) with %d max attempts",
            job.public_model,
            job.stream,
            job.search,
            max_attempts,
        )

        last_error: Optional[BaseException] = None
        for attempt in range(max_attempts):
            result = await self._attempt(job, attempt, max_attempts, disconnect_checker)
            if result.outcome is AttemptOutcome.SUCCESS and result.response is not None:
                logger.info("Request for %s succeeded on attempt %d", job.public_model, attempt + 1)
                return result.response
            if result.outcome is AttemptOutcome.FATAL and result.error is not None:
                raise result.error
            last_error = result.error
            logger.warning(
                "Attempt %d/%d for %s failed: %s", attempt + 1, max_attempts, job.public_model, last_error
            )

        logger.error("All %d attempts failed for model %s", max_attempts, job.public_model)
        raise RetriesExhaustedError(max_attempts, str(last_error) if last_error else None)

    async def _attempt(
        self,
        job: CompletionJob,
        attempt: int,
        max_attempts: int,
        disconnect_checker: Optional[DisconnectChecker],
    ) -> AttemptResult:
        query = job.prompt.text

        try:
            index = self.pool.select_next()
            session = self.pool.get(index)
        except ConfigurationError as exc:
            return AttemptResult(AttemptOutcome.FATAL, error=exc)
        except SessionIndexError as exc:
            return AttemptResult(AttemptOutcome.RETRYABLE, error=exc)

        logger.info(
            "Attempt %d/%d using session %d (%s)",
            attempt + 1,
            max_attempts,
            index,
            mask_token(session.token),
        )

        client = self._client_factory(session, model=job.upstream_model, search=job.search)
        resp: Optional[httpx.Response] = None
        committed = False
        try:
            if job.prompt.images:
                await client.upload_images(job.prompt.images)
            if len(query) > self.settings.max_chat_history_length:
                await client.upload_text(query)
                query = self.settings.prompt_for_file

            resp = await client.open_ask_stream(query, job.is_incognito)
            translator = StreamTranslator(job.upstream_model, self.models, self.settings)

            if job.stream:
                response = await self._commit_stream(
                    job, client, resp, translator, disconnect_checker
                )
            else:
                async for _ in translator.iter_deltas(resp.aiter_lines(), disconnect_checker):
                    pass
                response = JSONResponse(
                    content=build_completion(translator.state.full_text, job.public_model)
                )
            committed = job.stream
            return AttemptResult(AttemptOutcome.SUCCESS, response=response)
        except SessionRetryableError as exc:
            return AttemptResult(AttemptOutcome.RETRYABLE, error=exc)
        except httpx.HTTPError as exc:
            return AttemptResult(
                AttemptOutcome.RETRYABLE, error=SessionRetryableError(f"{exc.__class__.__name__}: {exc}")
            )
        finally:
            if not committed:
                if resp is not None:
                    await resp.aclose()
                await client.aclose()

    async def _commit_stream(
        self,
        job: CompletionJob,
        client: PerplexityClient,
        resp: httpx.Response,
        translator: StreamTranslator,
        disconnect_checker: Optional[DisconnectChecker],
    ) -> StreamingResponse:
        """Pull the first delta, then hand the rest of the body to the caller.

        Read errors raised here propagate to the attempt loop and are
        retried; nothing has been sent yet.
        """
        deltas = translator.iter_deltas(resp.aiter_lines(), disconnect_checker)
        try:
            first: Optional[str] = await deltas.__anext__()
        except StopAsyncIteration:
            first = None
        except BaseException:
            await deltas.aclose()
            raise

        logger.info("Streaming response committed for model %s", job.public_model)
        released = False

        async def release() -> None:
            # Called from the body's finally and as the background task; the body may never start
            nonlocal released
            if released:
                return
            released = True
            await deltas.aclose()
            await resp.aclose()
            await client.aclose()

        async def iterator() -> AsyncIterator[bytes]:
            chunk_count = 0
            try:
                if first is not None:
                    chunk_count += 1
                    yield encode_sse(build_stream_chunk(first, job.public_model))
                    async for delta in deltas:
                        chunk_count += 1
                        yield encode_sse(build_stream_chunk(delta, job.public_model))
                if not translator.state.cancelled:
                    yield SSE_DONE
            except asyncio.CancelledError:
                logger.info("Streaming response for %s cancelled by client", job.public_model)
                raise
            except Exception as exc:
                logger.error("Error during streaming for %s: %s", job.public_model, exc)
                raise
            finally:
                logger.debug("Stream completed for %s, total chunks: %d", job.public_model, chunk_count)
                await release()

        return StreamingResponse(
            iterator(),
            media_type="text/event-stream",
            headers={"cache-control": "no-cache", "connection": "keep-alive"},
            background=BackgroundTask(release),
        )
