"""
FTP transport for the shared remote folder.

An FtpSession is one logged-in control connection. Every blocking ftplib call runs
in a worker thread; the socket timeout bounds how long a stalled server can hold a
session open. Uploads go to a temporary name and are renamed over the target, so a
broken transfer never leaves a truncated document behind.
"""
import asyncio
import ftplib
import io
import json
import logging
import posixpath
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from remote_viewer.config import Settings
from remote_viewer.core.exceptions import ConfigurationError, NotFoundError, TransportError

logger = logging.getLogger(__name__)

FTP_NOT_CONFIGURED = "FTP not configured. Set FTP_HOST, FTP_USER, FTP_PASS, FTP_REMOTE_PATH."


def require_ftp_config(config: Settings) -> None:
    if not config.ftp_enabled:
        raise ConfigurationError(FTP_NOT_CONFIGURED)


def remote_base_dir(remote_path: str) -> str:
    """"/media/videos/index.json" -> "/media/videos" """
    return posixpath.dirname(remote_path)


def _is_missing(error: Exception) -> bool:
    return isinstance(error, ftplib.error_perm) and str(error).startswith("550")


def encode_json(payload: Any) -> bytes:
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


class FtpSession:
    def __init__(self, ftp: ftplib.FTP, base_dir: str):
        self._ftp = ftp
        self.base_dir = base_dir

    def path_for(self, filename: str) -> str:
        return posixpath.join(self.base_dir, filename) if self.base_dir else filename

    async def download(self, filename: str) -> bytes:
        """Fetch a file. Raises NotFoundError when the server reports 550."""
        target = self.path_for(filename)
        buffer = io.BytesIO()
        try:
            await asyncio.to_thread(self._ftp.retrbinary, f"RETR {target}", buffer.write)
        except ftplib.all_errors as e:
            if _is_missing(e):
                raise NotFoundError(f"{target} not found on FTP server") from e
            raise TransportError(f"FTP download of {target} failed: {e}") from e
        logger.debug("Downloaded %s (%d bytes)", target, buffer.tell())
        return buffer.getvalue()

    async def upload(self, filename: str, data: bytes) -> str:
        target = self.path_for(filename)
        try:
            await asyncio.to_thread(self._upload_replace, target, data)
        except ftplib.all_errors as e:
            raise TransportError(f"FTP upload of {target} failed: {e}") from e
        logger.info("Uploaded %s (%d bytes)", target, len(data))
        return target

    async def upload_json(self, filename: str, payload: Any) -> str:
        return await self.upload(filename, encode_json(payload))

    def _ensure_dir(self) -> None:
        if not self.base_dir or self.base_dir in (".", "/"):
            return
        current = "/" if self.base_dir.startswith("/") else ""
        for part in self.base_dir.strip("/").split("/"):
            current = posixpath.join(current, part) if current else part
            try:
                self._ftp.mkd(current)
            except ftplib.error_perm:
                pass  # already exists

    def _discard(self, path: str) -> None:
        try:
            self._ftp.delete(path)
        except ftplib.all_errors as cleanup_error:
            logger.warning("Could not remove temporary upload %s: %s", path, cleanup_error)

    def _upload_replace(self, target: str, data: bytes) -> None:
        self._ensure_dir()
        temp = posixpath.join(posixpath.dirname(target), f".{posixpath.basename(target)}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self._ftp.storbinary(f"STOR {temp}", io.BytesIO(data))
            try:
                self._ftp.rename(temp, target)
                return
            except ftplib.error_perm as e:
                # Some servers refuse to rename onto an existing file
                logger.debug("Rename onto %s refused (%s); replacing it", target, e)
            self._ftp.delete(target)
        except ftplib.all_errors:
            self._discard(temp)
            raise

        # target is gone; temp is the only copy until one of these succeeds
        try:
            self._ftp.rename(temp, target)
            return
        except ftplib.all_errors as e:
            logger.warning("Rename of %s to %s failed after delete: %s", temp, target, e)
        try:
            self._ftp.storbinary(f"STOR {target}", io.BytesIO(data))
        except ftplib.all_errors as e:
            logger.error("Could not restore %s; new content kept at %s", target, temp)
            raise TransportError(f"FTP upload of {target} failed: {e}; new content kept at {temp}") from e
        self._discard(temp)


class FtpTransport:
    """Opens sessions against the configured FTP server."""

    def __init__(self, config: Settings):
        self.config = config

    def _connect(self) -> ftplib.FTP:
        cfg = self.config
        ftp: ftplib.FTP
        if cfg.FTP_SECURE:
            ftp = ftplib.FTP_TLS(timeout=cfg.FTP_TIMEOUT_SECONDS)
        else:
            ftp = ftplib.FTP(timeout=cfg.FTP_TIMEOUT_SECONDS)
        try:
            ftp.connect(cfg.FTP_HOST, cfg.FTP_PORT)
            ftp.login(cfg.FTP_USER, cfg.FTP_PASS)
            if isinstance(ftp, ftplib.FTP_TLS):
                ftp.prot_p()
        except BaseException:
            ftp.close()
            raise
        return ftp

    @staticmethod
    def _close(ftp: ftplib.FTP) -> None:
        try:
            ftp.quit()
        except ftplib.all_errors:
            ftp.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[FtpSession]:
        require_ftp_config(self.config)
        try:
            ftp = await asyncio.to_thread(self._connect)
        except ftplib.all_errors as e:
            logger.error("FTP connection to %s:%s failed: %s", self.config.FTP_HOST, self.config.FTP_PORT, e)
            raise TransportError(f"FTP connection failed: {e}") from e
        try:
            yield FtpSession(ftp, remote_base_dir(self.config.FTP_REMOTE_PATH))
        finally:
            await asyncio.to_thread(self._close, ftp)
