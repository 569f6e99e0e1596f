"""
SSH Tunnel Session

A single long-lived SSH session to a jump host, shared by every probe of
every scan. Routers behind the jump host are reached by opening
``direct-tcpip`` channels through it.

The session exposes exactly four operations: connect, disconnect, status
and forward.
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import paramiko

from ssh_client import SSHClient, SSHClientError

logger = logging.getLogger(__name__)


class TunnelError(Exception):
    """Raised when the tunnel session cannot be established or is not connected."""
    pass


@dataclass
class TunnelStatus:
    """Snapshot of the tunnel session state."""
    connected: bool
    host: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SSHTunnel:
    """
    Jump-host session used to forward connections to routers.

    ``connect`` is idempotent while the session is alive and serialized by a
    lock, so concurrent callers never open duplicate sessions.
    """

    def __init__(self, timeout: float = 10):
        self.timeout = timeout
        self._client: Optional[SSHClient] = None
        self._host = ""
        self._lock = threading.Lock()

    def connect(
        self,
        host: str,
        username: str,
        password: Optional[str] = None,
        port: int = 22,
        key_file: Optional[str] = None
    ) -> None:
        """
        Open the tunnel session unless one is already connected.

        Raises:
            TunnelError: If the jump host cannot be reached or rejects us
        """
        with self._lock:
            if self._client is not None and self._client.connected:
                logger.debug(f"SSH tunnel already connected to {self._host}")
                return

            if self._client is not None:
                self._client.close()
                self._client = None

            client = SSHClient(
                hostname=host,
                port=port,
                username=username,
                auth_type="key" if key_file and not password else "password",
                key_file=key_file,
                password=password,
                timeout=self.timeout,
            )
            logger.info(f"Connecting SSH tunnel to {host}:{port}...")
            try:
                client.connect()
            except SSHClientError as e:
                raise TunnelError(f"SSH tunnel to {host} failed: {e}")

            transport = client.transport
            if transport is not None:
                transport.set_keepalive(30)

            self._client = client
            self._host = host
            logger.info(f"SSH tunnel connected to {host}")

    def disconnect(self) -> None:
        """Close the tunnel session. Safe to call when not connected."""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
                logger.info(f"SSH tunnel to {self._host} closed")

    def status(self) -> TunnelStatus:
        client = self._client
        return TunnelStatus(
            connected=client is not None and client.connected,
            host=self._host,
        )

    def forward(self, host: str, port: int, timeout: Optional[float] = None) -> paramiko.Channel:
        """
        Open a forwarded channel to host:port through the jump host.

        The channel open is bounded by ``timeout`` (the tunnel's own
        timeout when not given).

        Raises:
            TunnelError: If the session is not connected
            paramiko.ChannelException: If the jump host refuses the forward
            paramiko.SSHException / OSError: On timeout or a dropped session
        """
        client = self._client
        transport = client.transport if client is not None else None
        if transport is None or not transport.is_active():
            raise TunnelError("SSH tunnel not connected")

        logger.debug(f"Forwarding {host}:{port} through {self._host}")
        return transport.open_channel(
            "direct-tcpip",
            dest_addr=(host, port),
            src_addr=("127.0.0.1", 0),
            timeout=self.timeout if timeout is None else timeout,
        )

    def __repr__(self) -> str:
        state = "connected" if self.status().connected else "disconnected"
        return f"SSHTunnel({self._host or '-'}, {state})"
