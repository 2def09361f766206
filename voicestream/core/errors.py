"""
Error taxonomy
==============
Every failure surfaced by a synthesizer is a ``SynthesisError`` subclass, so
callers never need to inspect raw ``httpx`` or ``grpc`` exception types.

- InvalidOption: rejected input, raised before any network call.
- TokenIssuanceFailure: the authorize endpoint refused or failed.
- TransportFailure: network / HTTP / RPC layer failure.
- UpstreamProtocolError: the service answered with an unexpected shape.

Transport errors carry whatever diagnostics were available: a short code,
the HTTP status, the status reason, and the decoded response body.
"""

from typing import Any, Optional

import grpc
import httpx


class SynthesisError(Exception):
    """Base class for all structured synthesis failures."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        status_message: Optional[str] = None,
        body: Any = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.status_message = status_message
        self.body = body
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "status_message": self.status_message,
            "body": self.body,
        }

    # ── Constructors from transport failures ──────────────────────────────────

    @classmethod
    def from_http_response(cls, response: httpx.Response) -> "SynthesisError":
        """Build an error from a non-2xx response whose body has been read."""
        body = _decode_body(response)
        message = _error_message(body) or f"HTTP {response.status_code} {response.reason_phrase}".strip()
        return cls(
            message,
            code=f"HTTP_{response.status_code}",
            status_code=response.status_code,
            status_message=response.reason_phrase,
            body=body,
        )

    @classmethod
    def from_http_error(cls, exc: httpx.HTTPError) -> "SynthesisError":
        message = str(exc).strip() or exc.__class__.__name__
        return cls(message, code=exc.__class__.__name__)

    @classmethod
    def from_rpc_error(cls, exc: grpc.RpcError) -> "SynthesisError":
        code = exc.code() if hasattr(exc, "code") else None
        details = exc.details() if hasattr(exc, "details") else None
        return cls(
            details or str(exc) or exc.__class__.__name__,
            code=getattr(code, "name", None),
        )


class InvalidOption(SynthesisError, ValueError):
    """An option value the target transport cannot express."""

    def __init__(self, message: str, *, option: str = "", value: Any = None) -> None:
        super().__init__(message, code="INVALID_OPTION")
        self.option = option
        self.value = value


class TokenIssuanceFailure(SynthesisError):
    """The short-lived bearer token could not be obtained."""


class TransportFailure(SynthesisError):
    """The request failed at the network, HTTP or RPC layer."""


class UpstreamProtocolError(SynthesisError):
    """The service responded, but not with the expected shape."""


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        text = response.text.strip()
        return text or None


def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for key in ("error_message", "detail", "error", "message"):
            val = body.get(key)
            if isinstance(val, str) and val:
                return val
    if isinstance(body, str) and body:
        return body[:200]
    return None
