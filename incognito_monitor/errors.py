"""Errors raised by the node store, the RPC client and the dispatcher."""


class MonitorError(Exception):
    """Base class for every error this package raises on purpose."""


class PersistenceError(MonitorError):
    """The endpoint record could not be read or written."""


class NotFoundError(MonitorError):
    """A node name does not match any registered endpoint."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Node {name!r} is not registered")
        self.name = name


class RpcError(MonitorError):
    """A remote call failed: transport, HTTP status, body or node-reported error."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method
        self.message = message


class ConflictError(MonitorError):
    pass


class DuplicateNodeError(ConflictError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Node {name!r} already exists")
        self.name = name


class UnknownCommandError(MonitorError):
    pass
