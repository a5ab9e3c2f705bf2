from __future__ import annotations

from botocore.exceptions import ClientError


def no_sleep(_: float) -> None:
    return None


def client_error(code: str, operation: str, message: str = "", *, status: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeClock:
    """Monotonic clock that only moves when `sleep` is called."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        self.sleeps.append(seconds)
        self.now += seconds


__all__ = [
    "FakeClock",
    "client_error",
    "no_sleep",
]
