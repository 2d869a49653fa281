"""Periodic session token refresh and the on-disk session snapshot."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from ..core.exceptions import UpstreamStatusError
from ..core.session_pool import Session, SessionPool
from ..core.upstream import PerplexityClient
from ..logging import mask_token
from ..settings import Settings

logger = logging.getLogger("pplx-proxy")

# Model preference is irrelevant for the session endpoint
REFRESH_MODEL = "claude2"

RefreshClientFactory = Callable[[Session], PerplexityClient]


def read_state_file(path: Path) -> Optional[list[Session]]:
    """Load sessions saved by a previous run.

    Returns None when the file is missing or unreadable. Entries may use
    either ``session_key`` or ``SessionKey``.
    """
    if not path.exists():
        logger.info("No session state file at %s, will create on first refresh", path)
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read session state file %s: %s", path, exc)
        return None

    entries = data.get("sessions") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        logger.error("Session state file %s has no sessions list", path)
        return None

    sessions: list[Session] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        token = entry.get("session_key") or entry.get("SessionKey")
        if isinstance(token, str) and token:
            sessions.append(Session(token))
    return sessions


def write_state_file(path: Path, sessions: list[Session]) -> None:
    payload: dict[str, Any] = {"sessions": [session.to_dict() for session in sessions]}
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp_path, path)


class SessionRefresher:
    """Background job that rolls every session token on a fixed interval.

    Each run refreshes all sessions concurrently. A session whose refresh
    fails keeps its previous token. The pool is then replaced in one step
    and the result saved to the state file.
    """

    def __init__(
        self,
        pool: SessionPool,
        settings: Settings,
        client_factory: Optional[RefreshClientFactory] = None,
    ) -> None:
        self.pool = pool
        self.settings = settings
        self.interval = settings.refresh_interval
        self.state_path = Path(settings.state_file)
        self._client_factory = client_factory or self._default_client_factory
        self._task: Optional[asyncio.Task] = None

    def _default_client_factory(self, session: Session) -> PerplexityClient:
        return PerplexityClient(
            session.token,
            model=REFRESH_MODEL,
            proxy=self.settings.upstream_proxy,
            timeout=self.settings.timeout,
            connect_timeout=self.settings.connect_timeout,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def load_state(self) -> bool:
        """Replace the pool with the saved sessions, if any were saved."""
        sessions = read_state_file(self.state_path)
        if sessions is None:
            return False
        self.pool.replace(sessions)
        logger.info("Loaded %d sessions from %s", len(sessions), self.state_path)
        return True

    def start(self) -> None:
        if self.interval <= 0:
            logger.info("Session refresh disabled (refresh_interval=%s)", self.interval)
            return
        if self.is_running:
            logger.info("Session refresher is already running")
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Session refresher started with interval %ss", self.interval)

    async def stop(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session refresher stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.refresh_all()
            except Exception:
                logger.exception("Session refresh run failed")

    async def refresh_all(self) -> list[Session]:
        """Refresh every session once and persist the result."""
        current = self.pool.snapshot()
        if not current:
            logger.info("No sessions to refresh")
            return []

        logger.info("Starting refresh of %d sessions", len(current))
        updated = list(
            await asyncio.gather(
                *(self._refresh_one(index, session) for index, session in enumerate(current))
            )
        )
        self.pool.replace(updated)
        logger.info("All %d sessions have been refreshed", len(updated))

        try:
            await asyncio.to_thread(write_state_file, self.state_path, updated)
            logger.info("Saved %d sessions to %s", len(updated), self.state_path)
        except OSError as exc:
            logger.error("Failed to save session state to %s: %s", self.state_path, exc)
        return updated

    async def _refresh_one(self, index: int, session: Session) -> Session:
        client = self._client_factory(session)
        try:
            token = await client.fetch_refreshed_token()
        except (UpstreamStatusError, httpx.HTTPError) as exc:
            logger.warning(
                "Failed to refresh session %d (%s): %s", index, mask_token(session.token), exc
            )
            return session
        finally:
            await client.aclose()
        return Session(token)
