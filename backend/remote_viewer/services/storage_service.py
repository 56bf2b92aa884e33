import json
import logging
import os
import tempfile
from typing import Any
from urllib.parse import urljoin

import httpx

from remote_viewer.config import Settings
from remote_viewer.core.exceptions import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

NO_FOLDER_CONFIGURED = "No media folder configured. Set MEDIA_ROOT or DATA_DIR."
NO_REMOTE_CONFIGURED = "No remote base URL configured. Set REMOTE_MEDIA_BASE."


def local_file_path(config: Settings, filename: str) -> str:
    data_dir = config.data_dir
    if not data_dir:
        raise ConfigurationError(NO_FOLDER_CONFIGURED)
    return os.path.join(data_dir, filename)


def read_local_file(path: str) -> bytes | None:
    """Return the file's bytes, or None if it doesn't exist yet."""
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None


def write_json_atomic(path: str, payload: Any) -> None:
    """Write JSON next to `path` then rename over it, creating parent folders as needed."""
    dirpath = os.path.dirname(path) or "."
    os.makedirs(dirpath, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", dir=dirpath)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)
    logger.debug("Wrote %s", path)


async def fetch_published_file(config: Settings, filename: str) -> bytes | None:
    """
    GET a file from the published remote base URL. Returns None on 404.
    Read-only: this path never mutates the remote.
    """
    if not config.remote_read_enabled:
        raise ConfigurationError(NO_REMOTE_CONFIGURED)
    url = urljoin(config.REMOTE_MEDIA_BASE, filename)
    try:
        async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT_SECONDS, follow_redirects=True) as client:
            resp = await client.get(url, headers={"Cache-Control": "no-cache"})
    except httpx.HTTPError as e:
        logger.error("Fetching %s failed: %s", url, e)
        raise TransportError(f"Failed to fetch {url}: {e}") from e
    if resp.status_code == 404:
        logger.warning("Remote %s not found", url)
        return None
    if resp.status_code >= 400:
        raise TransportError(f"Failed to fetch {url}: HTTP {resp.status_code}")
    return resp.content
