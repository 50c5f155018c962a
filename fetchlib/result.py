from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one fetch: status code, decoded data and error.

    When ``error`` is set ``data`` is None. ``status_code`` is the last HTTP status
    seen, or None when the call failed before a response arrived.
    """

    status_code: Optional[int] = None
    data: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def copy(self) -> "FetchResult[T]":
        return FetchResult(self.status_code, self.data, self.error)

    def describe(self) -> str:
        error = str(self.error) if self.error is not None else None
        return f"{{statusCode: {self.status_code!r}, data: {{{self.data!r}}}, error: {{{error!r}}}}}"

    def __str__(self) -> str:
        return self.describe()

    def _carry(self) -> "FetchResult[U]":
        # Payload type changes across a step, so only status and error are carried.
        return FetchResult(self.status_code, None, self.error)

    def _apply(self, step: Callable[[], Optional[U]]) -> "FetchResult[U]":
        if self.error is not None or self.data is None:
            return self._carry()
        try:
            return FetchResult(self.status_code, step(), None)
        except Exception as exc:
            return FetchResult(self.status_code, None, exc)

    def next(self, transform: Callable[[T], Optional[U]]) -> "FetchResult[U]":
        """Run ``transform(data)`` unless the result carries an error or no data."""
        return self._apply(lambda: transform(self.data))

    def next_with(self, transform: Callable[[T, "FetchResult[T]"], Optional[U]]) -> "FetchResult[U]":
        """Like :meth:`next`, passing the result along with the data."""
        return self._apply(lambda: transform(self.data, self))

    def next_result(self, transform: Callable[["FetchResult[T]"], Optional[U]]) -> "FetchResult[U]":
        """Like :meth:`next`, passing the whole result."""
        return self._apply(lambda: transform(self))

    def catch(self, handler: Callable[[BaseException], None]) -> "FetchResult[T]":
        """Call ``handler(error)`` if there is an error.

        Anything the handler raises propagates to the caller.
        """
        if self.error is not None:
            handler(self.error)
        return self

    def catch_status(self, handler: Callable[[Optional[int], BaseException], None]) -> "FetchResult[T]":
        if self.error is not None:
            handler(self.status_code, self.error)
        return self
