from __future__ import annotations

import logging
import socket

log = logging.getLogger(__name__)


class LivenessProbe:
    """Answers whether a game server process is accepting connections."""

    def is_alive(self, port: int) -> bool:
        raise NotImplementedError


class TcpLivenessProbe(LivenessProbe):
    """A local TCP connect to the server port; refusal or timeout means offline."""

    def __init__(self, host: str = "localhost", timeout: float = 1.0):
        self.host = host
        self.timeout = timeout

    def is_alive(self, port: int) -> bool:
        try:
            with socket.create_connection((self.host, int(port)), timeout=self.timeout):
                return True
        except (OSError, ValueError) as e:
            log.debug("[liveness] %s:%s not reachable: %s", self.host, port, e)
            return False


class StaticLivenessProbe(LivenessProbe):
    """Always reports the same state; used when the game server is not local."""

    def __init__(self, alive: bool):
        self.alive = alive

    def is_alive(self, port: int) -> bool:
        return self.alive
