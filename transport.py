"""
Transport Providers

Supply a duplex byte channel to a router's management port, either by
dialing it directly or by forwarding through the shared SSH tunnel.

Failures are split in two classes:
- DeviceUnreachable: the target host refused or timed out. Non-fatal,
  the device is simply offline.
- TunnelUnavailable: the tunnel session itself is absent or broken.
  Fatal, a scan must abort instead of reporting every device offline.
"""

import socket
import logging
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Optional

import paramiko

from tunnel import SSHTunnel, TunnelError

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base class for transport failures."""
    pass


class DeviceUnreachable(TransportError):
    """The target host could not be reached. Expected during scans."""
    pass


class TunnelUnavailable(TransportError):
    """The tunnel session is missing or broken. Fatal to a scan."""
    pass


class Transport:
    """Base transport. Subclasses implement acquire() and may override verify()."""

    def __init__(self, timeout: float = 5):
        self.timeout = timeout

    def acquire(self, host: str, port: int) -> ContextManager[Any]:
        """Context manager yielding an open channel to host:port, closed on exit."""
        raise NotImplementedError

    def verify(self) -> None:
        """Raise TunnelUnavailable if the transport itself is unusable."""
        return None


class DirectTransport(Transport):
    """Dials routers with a plain TCP connection."""

    @contextmanager
    def acquire(self, host: str, port: int) -> Iterator[socket.socket]:
        try:
            sock = socket.create_connection((host, port), timeout=self.timeout)
        except OSError as e:
            raise DeviceUnreachable(f"Cannot connect to {host}:{port}: {e}")

        try:
            yield sock
        finally:
            sock.close()

    def __repr__(self) -> str:
        return f"DirectTransport(timeout={self.timeout})"


class TunneledTransport(Transport):
    """Forwards connections to routers through a connected SSHTunnel."""

    def __init__(self, tunnel: Optional[SSHTunnel], timeout: float = 5):
        super().__init__(timeout)
        self.tunnel = tunnel

    def verify(self) -> None:
        if self.tunnel is None:
            raise TunnelUnavailable("SSH tunnel is not configured")
        status = self.tunnel.status()
        if not status.connected:
            host = f" to {status.host}" if status.host else ""
            raise TunnelUnavailable(f"SSH tunnel{host} is not connected")

    @contextmanager
    def acquire(self, host: str, port: int) -> Iterator[paramiko.Channel]:
        self.verify()

        try:
            channel = self.tunnel.forward(host, port, timeout=self.timeout)
        except TunnelError as e:
            raise TunnelUnavailable(f"SSH tunnel forward failed to {host}:{port}: {e}")
        except (paramiko.SSHException, OSError, EOFError) as e:
            # A dead session also surfaces here; only a live one means the host refused
            if not self.tunnel.status().connected:
                raise TunnelUnavailable(f"SSH tunnel dropped while forwarding to {host}:{port}: {e!r}")
            raise DeviceUnreachable(f"Forward to {host}:{port} failed: {e!r}")

        try:
            channel.settimeout(self.timeout)
            yield channel
        finally:
            channel.close()

    def __repr__(self) -> str:
        return f"TunneledTransport({self.tunnel!r}, timeout={self.timeout})"


def build_transport(settings, tunnel: Optional[SSHTunnel] = None) -> Transport:
    """
    Select the transport variant once from settings.

    Args:
        settings: Loaded Settings
        tunnel: Tunnel session to forward through when the tunnel is enabled

    Returns:
        TunneledTransport if settings enable the tunnel, else DirectTransport
    """
    timeout = settings.scan.timeout
    if settings.tunnel.enabled:
        logger.info(f"Using SSH tunnel via {settings.tunnel.host}")
        return TunneledTransport(tunnel, timeout=timeout)
    return DirectTransport(timeout=timeout)
