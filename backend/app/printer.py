import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .errors import UpstreamUnreachable


@dataclass(frozen=True)
class ProxiedResponse:
    status: int
    reason: str
    content_type: Optional[str]
    body: bytes


class PrinterService:
    """
    Client for the local ESC/POS driver service (lists printers, prints tickets).

    Downstream error statuses are returned like any other response; only failures
    to get a response at all raise `UpstreamUnreachable`.
    """

    def __init__(self, base_url: str, *, timeout: float = 30.0, health_timeout: float = 4.0):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout

    def _url(self, path: str) -> str:
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def forward(
        self,
        method: str,
        path: str,
        *,
        body: Optional[bytes] = None,
        content_type: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ProxiedResponse:
        req = urllib.request.Request(self._url(path), data=body, method=method.upper())
        if content_type:
            req.add_header("Content-Type", content_type)
        try:
            with urllib.request.urlopen(req, timeout=timeout or self.timeout) as resp:
                return ProxiedResponse(
                    status=resp.status,
                    reason=resp.reason or "",
                    content_type=resp.headers.get("Content-Type"),
                    body=resp.read() or b"",
                )
        except urllib.error.HTTPError as e:
            # Downstream answered with an error status: relay it.
            return ProxiedResponse(
                status=e.code,
                reason=str(e.reason or ""),
                content_type=e.headers.get("Content-Type") if e.headers else None,
                body=e.read() or b"",
            )
        except urllib.error.URLError as e:
            raise UpstreamUnreachable(f"printer service unreachable: {e.reason}", detail=str(e)) from e
        except (socket.timeout, TimeoutError) as e:
            raise UpstreamUnreachable("printer service timed out", detail=str(e)) from e
        except OSError as e:
            # Connection reset mid-response, etc.
            raise UpstreamUnreachable(f"printer service unreachable: {e}", detail=str(e)) from e

    def check_health(self) -> ProxiedResponse:
        return self.forward("GET", "", timeout=self.health_timeout)


def get_printer(request: Request) -> PrinterService:
    return request.app.state.printer
