"""Latest-release lookup against the GitHub REST API.

The release ``name`` is the version string hosts compare against (for
example ``"hostd v2.3.1"``); ``tag_name`` is used when a release has no
name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp
from pydantic import BaseModel, Field

from hostprobe.core.exceptions import UpstreamError

from .http import DEFAULT_MAX_RESPONSE_SIZE, fetch_json


if TYPE_CHECKING:
    from types import TracebackType


class ReleaseConfig(BaseModel):
    """Which repository's latest release is considered known-good."""

    api_url: str = Field(default="https://api.github.com", min_length=1)
    org: str = Field(default="SiaFoundation", min_length=1)
    repo: str = Field(default="hostd", min_length=1)
    timeout: float = Field(default=10.0, ge=0.1, le=120.0)
    max_response_size: int = Field(default=DEFAULT_MAX_RESPONSE_SIZE, ge=1024)


class ReleaseClient:
    """Async client returning the latest release string of one repository."""

    def __init__(
        self, config: ReleaseConfig | None = None, session: aiohttp.ClientSession | None = None
    ) -> None:
        self._config = config or ReleaseConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ReleaseClient:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/vnd.github+json"}
            )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def latest_release(self) -> str:
        """Return the latest release name of ``org/repo``.

        Raises:
            UpstreamError: If the request fails or the release has no name.
        """
        if self._session is None:
            raise UpstreamError("release client is not open")
        cfg = self._config
        data = await fetch_json(
            self._session,
            f"{cfg.api_url.rstrip('/')}/repos/{cfg.org}/{cfg.repo}/releases/latest",
            timeout=cfg.timeout,
            max_size=cfg.max_response_size,
        )
        name = (data.get("name") or data.get("tag_name")) if isinstance(data, dict) else None
        if not name or not isinstance(name, str):
            raise UpstreamError(f"no release found for {cfg.org}/{cfg.repo}")
        return name
