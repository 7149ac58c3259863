"""
SFTP client backed by paramiko.

Opens an SSH connection, then an SFTP channel on it.  Whole files are read
into memory with ``getfo``; peak memory for a fetch is one file's size.
"""

from __future__ import annotations

import io
import socket
import stat
from datetime import datetime, timezone

import paramiko
from paramiko.ssh_exception import NoValidConnectionsError

from sheetsync_config.schema import TransportConfig
from sheetsync_kernel.exceptions import ConnectionFailedError, ConnectionFailureReason
from sheetsync_kernel.logging_config import get_logger

from sheetsync_ingestion.domain.types import RemoteEntry

logger = get_logger("ingestion.transport.sftp")


def classify_connect_error(exc: BaseException) -> ConnectionFailureReason:
    """Map a paramiko/socket connect failure to a diagnostic category."""
    if isinstance(exc, paramiko.AuthenticationException):
        return ConnectionFailureReason.AUTHENTICATION
    if isinstance(exc, socket.gaierror):
        return ConnectionFailureReason.DNS_LOOKUP
    if isinstance(exc, (ConnectionRefusedError, NoValidConnectionsError)):
        return ConnectionFailureReason.REFUSED
    if isinstance(exc, TimeoutError):
        return ConnectionFailureReason.TIMEOUT
    if "authentication" in str(exc).lower():
        return ConnectionFailureReason.AUTHENTICATION
    return ConnectionFailureReason.UNKNOWN


class ParamikoSftpClient:
    """RemoteFileClient over paramiko SSH + SFTP."""

    def __init__(self, host_key_policy: paramiko.MissingHostKeyPolicy | None = None):
        self._host_key_policy = host_key_policy or paramiko.WarningPolicy()
        self._ssh: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None

    def connect(self, config: TransportConfig) -> None:
        host = config.cleaned_host
        ssh = paramiko.SSHClient()
        ssh.load_system_host_keys()
        ssh.set_missing_host_key_policy(self._host_key_policy)
        try:
            ssh.connect(
                hostname=host,
                port=config.port,
                username=config.username,
                password=config.password,
                key_filename=config.private_key_path,
                timeout=config.connect_timeout,
                banner_timeout=config.connect_timeout,
                auth_timeout=config.connect_timeout,
                look_for_keys=False,
                allow_agent=False,
            )
            sftp = ssh.open_sftp()
        except (paramiko.SSHException, OSError) as exc:
            ssh.close()
            raise ConnectionFailedError(
                host=host,
                port=config.port,
                reason=classify_connect_error(exc),
                detail=str(exc) or type(exc).__name__,
                cause=exc,
            ) from exc
        self._ssh = ssh
        self._sftp = sftp
        logger.debug("sftp_channel_opened", extra={"host": host, "port": config.port})

    def _channel(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise ConnectionError("not connected")
        return self._sftp

    def fetch_file(self, path: str) -> bytes:
        buffer = io.BytesIO()
        try:
            self._channel().getfo(path, buffer)
        except (paramiko.SSHException, EOFError) as exc:
            raise ConnectionResetError(f"connection lost: {exc}") from exc
        return buffer.getvalue()

    def list_directory(self, path: str) -> list[RemoteEntry]:
        try:
            attrs = self._channel().listdir_attr(path)
        except (paramiko.SSHException, EOFError) as exc:
            raise ConnectionResetError(f"connection lost: {exc}") from exc
        entries = []
        for a in attrs:
            modified = (
                datetime.fromtimestamp(a.st_mtime, tz=timezone.utc)
                if a.st_mtime is not None
                else None
            )
            entries.append(
                RemoteEntry(
                    name=a.filename,
                    size=a.st_size or 0,
                    is_dir=stat.S_ISDIR(a.st_mode or 0),
                    modified_at=modified,
                    attributes={"mode": a.st_mode, "uid": a.st_uid, "gid": a.st_gid},
                )
            )
        return entries

    def close(self) -> None:
        sftp, ssh = self._sftp, self._ssh
        self._sftp = None
        self._ssh = None
        try:
            if sftp is not None:
                sftp.close()
        finally:
            if ssh is not None:
                ssh.close()
