"""Chain state client for the explorer HTTP API.

Only the consensus state is needed: the tip index (to catch hosts that are
out of sync) and the network's v2 hard-fork heights (to decide whether
legacy generations are still probed).

Examples:
    ```python
    async with ExplorerClient(ExplorerConfig()) as explorer:
        state = await explorer.consensus_state()
        state.tip_height
    ```
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import aiohttp
from pydantic import BaseModel, Field, SecretStr, model_validator

from hostprobe.core.exceptions import FormatError, UpstreamError
from hostprobe.models.consensus import ChainIndex, ConsensusState, NetworkParams

from .http import DEFAULT_MAX_RESPONSE_SIZE, fetch_json


if TYPE_CHECKING:
    from types import TracebackType


class ExplorerConfig(BaseModel):
    """Explorer API endpoint and credentials.

    The password is never written in the YAML file; it is read from the
    environment variable named by ``password_env`` when that variable is set.
    """

    url: str = Field(default="https://api.siascan.com", min_length=1)
    password_env: str = Field(
        default="EXPLORER_API_PASSWORD",  # pragma: allowlist secret
        min_length=1,
        description="Environment variable holding the API password",
    )
    password: SecretStr | None = Field(default=None, description="Loaded from password_env")
    timeout: float = Field(default=10.0, ge=0.1, le=120.0)
    max_response_size: int = Field(default=DEFAULT_MAX_RESPONSE_SIZE, ge=1024)

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        if isinstance(data, dict) and "password" not in data:
            env_var = data.get("password_env", "EXPLORER_API_PASSWORD")  # pragma: allowlist secret
            if value := os.getenv(env_var):
                data = {**data, "password": SecretStr(value)}
        return data


class ExplorerClient:
    """Async client for ``/consensus/state`` and ``/consensus/network``.

    Owns its ``aiohttp.ClientSession`` when used as an async context
    manager; a caller-provided session is used as-is and never closed.
    """

    def __init__(
        self, config: ExplorerConfig | None = None, session: aiohttp.ClientSession | None = None
    ) -> None:
        self._config = config or ExplorerConfig()
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> ExplorerClient:
        if self._session is None:
            self._session = aiohttp.ClientSession()
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

    async def _get(self, path: str) -> Any:
        if self._session is None:
            raise UpstreamError("explorer client is not open")
        auth = None
        if self._config.password is not None:
            auth = aiohttp.BasicAuth("", self._config.password.get_secret_value())
        return await fetch_json(
            self._session,
            self._config.url.rstrip("/") + path,
            timeout=self._config.timeout,
            max_size=self._config.max_response_size,
            auth=auth,
        )

    async def consensus_state(self) -> ConsensusState:
        """Fetch the current tip and network parameters.

        Raises:
            UpstreamError: If either request fails or returns malformed data.
        """
        state = await self._get("/consensus/state")
        network = await self._get("/consensus/network")
        if not isinstance(state, dict) or not isinstance(network, dict):
            raise UpstreamError("explorer returned a non-object consensus document")
        try:
            return ConsensusState(
                index=ChainIndex.from_dict(state.get("index") or {}),
                network=NetworkParams.from_dict(network),
            )
        except (FormatError, TypeError, ValueError) as e:
            raise UpstreamError(f"invalid consensus state: {e}") from e
