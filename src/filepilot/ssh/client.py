from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Optional, Tuple

import paramiko

from filepilot.core.debug_support import timed
from filepilot.core.logging import get_logger

_CONNECT_TIMEOUT_S = 15
_KEEPALIVE_S = 30


@dataclass
class SSHConnInfo:
    host: str
    port: int = 22
    username: str = ""
    password: str = ""
    key_path: str = ""

    @classmethod
    def parse(cls, target: str, *, password: str = "", key_path: str = "") -> "SSHConnInfo":
        """Parse ``user@host[:port]``."""
        user, _, hostport = target.rpartition("@")
        host, _, port = hostport.partition(":")
        if not host:
            raise ValueError(f"invalid ssh target: {target!r}")
        return cls(host=host, port=int(port or 22), username=user, password=password, key_path=key_path)

    def __str__(self) -> str:
        user = f"{self.username}@" if self.username else ""
        return f"{user}{self.host}:{self.port}"


class SSHClientWrapper:
    """One SSH session with an SFTP channel, shared by a files backend.

    Usable as a context manager: ``with SSHClientWrapper(info) as ssh: ...``.
    """

    def __init__(self, info: Optional[SSHConnInfo] = None):
        self.info: Optional[SSHConnInfo] = info
        self.client: Optional[paramiko.SSHClient] = None
        self.sftp: Optional[paramiko.SFTPClient] = None
        self._log = get_logger("filepilot.ssh")

    @property
    def connected(self) -> bool:
        transport = self.client.get_transport() if self.client else None
        return bool(transport and transport.is_active())

    def connect(self, info: Optional[SSHConnInfo] = None) -> None:
        info = info or self.info
        if info is None:
            raise ValueError("SSH connection info not provided")
        self.info = info
        self._log.info(f"connecting to {info}")

        client = paramiko.SSHClient()
        client.load_system_host_keys()
        # Unknown hosts are accepted and remembered for this session only.
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        kwargs = dict(
            hostname=info.host,
            port=info.port,
            username=info.username or None,
            timeout=_CONNECT_TIMEOUT_S,
            allow_agent=True,
            look_for_keys=not info.password,
        )
        if info.key_path:
            kwargs["key_filename"] = info.key_path
        if info.password:
            kwargs["password"] = info.password
        client.connect(**kwargs)

        transport = client.get_transport()
        if transport is not None:
            transport.set_keepalive(_KEEPALIVE_S)
        self.client = client
        self.sftp = client.open_sftp()
        self._log.info(f"connected to {info}, SFTP ready")

    def close(self) -> None:
        if self.client is None:
            return
        self._log.info(f"closing {self.info}")
        try:
            if self.sftp:
                self.sftp.close()
        finally:
            self.sftp = None
            self.client.close()
            self.client = None

    def __enter__(self) -> "SSHClientWrapper":
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def run(self, command: str, *, timeout_s: Optional[float] = None) -> Tuple[int, str, str]:
        """Run ``command`` and return ``(exit_code, stdout, stderr)``; 124 on timeout."""
        if not self.client:
            raise RuntimeError("SSH client not connected")
        t0 = timed()
        self._log.debug(f"$ {command}")
        _stdin, stdout, stderr = self.client.exec_command(command, timeout=timeout_s)
        try:
            out = stdout.read().decode(errors="replace")
            err = stderr.read().decode(errors="replace")
            code = stdout.channel.recv_exit_status()
        except socket.timeout:
            out, err, code = "", "timeout", 124
        self._log.debug(f"exit={code} in {timed() - t0:.2f}s")
        return code, out, err
