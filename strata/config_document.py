"""Persisted configuration document.

The orchestrator only needs two things from the server configuration:
its recorded version and a way to merge a patch back in. Any object with
that shape satisfies ConfigAccessor; JsonConfigDocument is the file-backed
implementation used by the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import orjson


@runtime_checkable
class ConfigAccessor(Protocol):
    async def get_version(self) -> str | None: ...

    async def merge(self, patch: dict[str, Any]) -> None: ...


class JsonConfigDocument:
    """Server configuration stored as a JSON object on disk."""

    def __init__(self, path: Path, default_version: str | None = None) -> None:
        self._path = Path(path)
        self._default_version = default_version

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        data = orjson.loads(self._path.read_bytes())
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not contain a JSON object")
        return data

    async def get_version(self) -> str | None:
        data = await self.load()
        return data.get("version") or self._default_version

    async def merge(self, patch: dict[str, Any]) -> None:
        """Shallow-merge `patch` into the document and write it back."""
        data = await self.load()
        data.update(patch)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
