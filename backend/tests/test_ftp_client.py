import ftplib
from unittest.mock import MagicMock, call, patch

import pytest

from remote_viewer.config import Settings
from remote_viewer.core.exceptions import ConfigurationError, NotFoundError, TransportError
from remote_viewer.services.ftp_client import FtpSession, FtpTransport, remote_base_dir


def test_remote_base_dir():
    assert remote_base_dir("/media/videos/media-index.json") == "/media/videos"
    assert remote_base_dir("media-index.json") == ""


@pytest.mark.asyncio
async def test_download_collects_bytes():
    ftp = MagicMock()
    ftp.retrbinary.side_effect = lambda cmd, callback: [callback(b'{"chan'), callback(b'nels": {}}')]
    session = FtpSession(ftp, "/media")

    data = await session.download("schedule.json")

    assert data == b'{"channels": {}}'
    ftp.retrbinary.assert_called_once()
    assert ftp.retrbinary.call_args.args[0] == "RETR /media/schedule.json"


@pytest.mark.asyncio
async def test_download_missing_file():
    ftp = MagicMock()
    ftp.retrbinary.side_effect = ftplib.error_perm("550 No such file or directory")

    with pytest.raises(NotFoundError):
        await FtpSession(ftp, "/media").download("schedule.json")


@pytest.mark.asyncio
async def test_download_other_errors_are_transport_errors():
    ftp = MagicMock()
    ftp.retrbinary.side_effect = TimeoutError("timed out")

    with pytest.raises(TransportError):
        await FtpSession(ftp, "/media").download("schedule.json")


@pytest.mark.asyncio
async def test_upload_writes_temp_then_renames():
    ftp = MagicMock()
    session = FtpSession(ftp, "/media/videos")

    target = await session.upload("schedule.json", b"{}")

    assert target == "/media/videos/schedule.json"
    assert ftp.mkd.call_args_list == [call("/media"), call("/media/videos")]
    stor_cmd = ftp.storbinary.call_args.args[0]
    assert stor_cmd.startswith("STOR /media/videos/.schedule.json.")
    temp = stor_cmd[len("STOR "):]
    ftp.rename.assert_called_once_with(temp, "/media/videos/schedule.json")


@pytest.mark.asyncio
async def test_upload_replaces_when_rename_over_existing_is_refused():
    ftp = MagicMock()
    ftp.rename.side_effect = [ftplib.error_perm("553 File exists"), None]

    await FtpSession(ftp, "/media").upload("schedule.json", b"{}")

    ftp.delete.assert_called_once_with("/media/schedule.json")
    assert ftp.rename.call_count == 2


@pytest.mark.asyncio
async def test_failed_upload_cleans_up_temp_file():
    ftp = MagicMock()
    ftp.rename.side_effect = ftplib.error_perm("553 Not allowed")
    ftp.delete.side_effect = [ftplib.error_perm("550 No such file"), None]

    with pytest.raises(TransportError):
        await FtpSession(ftp, "/media").upload("schedule.json", b"{}")

    temp = ftp.storbinary.call_args.args[0][len("STOR "):]
    assert ftp.delete.call_args_list[-1] == call(temp)


class RenameRefusingFtp:
    """ftplib.FTP stand-in over a dict that refuses every rename."""

    def __init__(self, files: dict[str, bytes], refuse_stor: tuple[str, ...] = ()):
        self.files = files
        self.refuse_stor = refuse_stor

    def mkd(self, path):
        raise ftplib.error_perm("550 exists")

    def storbinary(self, cmd, fp):
        path = cmd[len("STOR "):]
        if path in self.refuse_stor:
            raise ftplib.error_perm("553 Not allowed")
        self.files[path] = fp.read()

    def rename(self, source, target):
        raise ftplib.error_perm("553 Rename refused")

    def delete(self, path):
        if path not in self.files:
            raise ftplib.error_perm("550 No such file")
        del self.files[path]


@pytest.mark.asyncio
async def test_failed_rename_after_delete_writes_target_directly():
    files = {"/media/schedule.json": b"OLD"}

    await FtpSession(RenameRefusingFtp(files), "/media").upload("schedule.json", b"NEW")

    assert files == {"/media/schedule.json": b"NEW"}


@pytest.mark.asyncio
async def test_failed_replace_keeps_new_content_on_server():
    files = {"/media/schedule.json": b"OLD"}
    ftp = RenameRefusingFtp(files, refuse_stor=("/media/schedule.json",))

    with pytest.raises(TransportError) as exc_info:
        await FtpSession(ftp, "/media").upload("schedule.json", b"NEW")

    assert list(files.values()) == [b"NEW"]
    (temp,) = files
    assert temp.startswith("/media/.schedule.json.")
    assert temp in exc_info.value.detail


@pytest.mark.asyncio
async def test_failed_stor_removes_partial_temp_file():
    ftp = MagicMock()
    ftp.storbinary.side_effect = TimeoutError("timed out")

    with pytest.raises(TransportError):
        await FtpSession(ftp, "/media").upload("schedule.json", b"{}")

    temp = ftp.storbinary.call_args.args[0][len("STOR "):]
    ftp.delete.assert_called_once_with(temp)
    ftp.rename.assert_not_called()


@pytest.mark.asyncio
async def test_session_requires_configuration(tmp_path):
    transport = FtpTransport(Settings(_env_file=None, DATA_DIR=str(tmp_path)))
    with pytest.raises(ConfigurationError):
        async with transport.session():
            pass


@pytest.mark.asyncio
async def test_session_connect_failure(test_settings: Settings):
    with patch("ftplib.FTP") as ftp_cls:
        ftp_cls.return_value.connect.side_effect = ConnectionRefusedError("refused")
        with pytest.raises(TransportError):
            async with FtpTransport(test_settings).session():
                pass
        ftp_cls.return_value.close.assert_called_once()


@pytest.mark.asyncio
async def test_session_logs_in_and_quits(test_settings: Settings):
    with patch("ftplib.FTP") as ftp_cls:
        ftp = ftp_cls.return_value
        async with FtpTransport(test_settings).session() as session:
            assert session.base_dir == "/media"

    ftp_cls.assert_called_once_with(timeout=test_settings.FTP_TIMEOUT_SECONDS)
    ftp.connect.assert_called_once_with("ftp.test", 21)
    ftp.login.assert_called_once_with("viewer", "secret")
    ftp.quit.assert_called_once()
