"""Serve dependency bundle assets in front of the host's static file handler."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable, Dict, TypeVar, Union
from urllib.parse import unquote, urlsplit

from .bundle.engine import BuildEngine
from .config import MF_DEP_PREFIX, MF_STATIC_PREFIX, MF_VA_PREFIX, BuildContext
from .errors import AssetNotFoundError

logger = logging.getLogger(__name__)

IMMUTABLE_CACHE_CONTROL = "max-age=31536000,immutable"
REMOTE_ENTRY_PATTERN = re.compile(r"remoteEntry\.js")

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class AssetRequest:
    is_managed: bool
    relative_path: str
    public_path: str


@dataclass(slots=True)
class AssetResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)


def classify(request_path: str, public_path: str) -> AssetRequest:
    """Strip the public path and report whether the request targets a bundle asset."""

    path = unquote(urlsplit(request_path).path)
    is_managed = any(
        path.startswith(f"{public_path}{prefix}")
        for prefix in (MF_VA_PREFIX, MF_DEP_PREFIX, MF_STATIC_PREFIX)
    )
    if path.startswith(public_path):
        path = "/" + path[len(public_path):]
    return AssetRequest(is_managed=is_managed, relative_path=path[1:], public_path=public_path)


def content_type_for(path: str) -> str:
    guessed, _ = mimetypes.guess_type(path)
    if guessed is None and path.endswith((".js", ".mjs")):
        guessed = "application/javascript"
    return guessed or "application/octet-stream"


class AssetGateway:
    """Hold managed asset requests until the in-flight build has finished, then serve them."""

    def __init__(self, context: BuildContext, engine: BuildEngine) -> None:
        self.context = context
        self.engine = engine

    def classify(self, request_path: str) -> AssetRequest:
        return classify(request_path, self.context.public_path)

    async def handle(
        self,
        request_path: str,
        call_next: Callable[[], Awaitable[T]],
    ) -> Union[AssetResponse, T]:
        request = self.classify(request_path)
        if not request.is_managed:
            return await call_next()
        return await self.serve(request)

    async def serve(self, request: AssetRequest) -> AssetResponse:
        # Bind to the build running when the request arrived, not a later one.
        signal = self.engine.current_signal()
        if signal is not None:
            logger.debug("Waiting for in-flight build before serving %s", request.relative_path)
            await signal.wait()

        path = self._resolve(request.relative_path)
        try:
            body = await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise AssetNotFoundError(path) from exc

        headers = {"content-type": content_type_for(path.name)}
        if not REMOTE_ENTRY_PATTERN.search(path.name):
            headers["cache-control"] = IMMUTABLE_CACHE_CONTROL
        return AssetResponse(status=200, body=body, headers=headers)

    def _resolve(self, relative_path: str) -> Path:
        parts = PurePosixPath(relative_path).parts
        if not parts or ".." in parts:
            raise AssetNotFoundError(relative_path)
        root = self.context.output_dir.resolve()
        candidate = (root / PurePosixPath(*parts)).resolve()
        if not candidate.is_relative_to(root):
            raise AssetNotFoundError(relative_path)
        return candidate
