from __future__ import annotations

__all__ = ("EtagProxyError", "ConfigurationError", "TransportError")


class EtagProxyError(Exception): ...


class ConfigurationError(EtagProxyError): ...


class TransportError(EtagProxyError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
