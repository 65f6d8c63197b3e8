from __future__ import annotations


class RelayError(Exception):
    """Base relay error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class MalformedEnvelopeError(RelayError):
    pass


class ConnectionSendError(RelayError):
    pass


class DispatcherClosedError(RelayError):
    pass


class HandlerNotInstalledError(RelayError):
    pass
