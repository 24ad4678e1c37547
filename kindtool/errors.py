"""Error helpers: wrapping with context, stack capture and error aggregates."""

from __future__ import annotations

import traceback
from collections.abc import Callable, Iterable, Iterator

__all__ = [
    "KindError",
    "Aggregate",
    "new",
    "new_without_stack",
    "errorf",
    "wrap",
    "wrapf",
    "with_stack",
    "stack_trace",
    "new_aggregate",
    "errors",
]


def _capture_stack() -> tuple[traceback.FrameSummary, ...]:
    # Drop the frames belonging to this helper and the public constructor.
    return tuple(traceback.extract_stack()[:-2])


class KindError(Exception):
    """An error with an optional message, an optional cause and a captured stack."""

    def __init__(
        self,
        message: str | None = None,
        cause: BaseException | None = None,
        stack: tuple[traceback.FrameSummary, ...] | None = None,
    ) -> None:
        super().__init__(message if message is not None else cause)
        self.message = message
        self.cause = cause
        self.stack = stack
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.message is None:
            return str(self.cause) if self.cause is not None else ""
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"

    def __repr__(self) -> str:
        return f"KindError({str(self)!r})"


def _causes(err: BaseException | None) -> Iterator[BaseException]:
    """Yield err and every error reachable through its ``cause`` chain."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        nxt = getattr(err, "cause", None)
        if not isinstance(nxt, BaseException):
            return
        err = nxt


def _is(err: BaseException, target: BaseException) -> bool:
    for e in _causes(err):
        if e is target:
            return True
        if isinstance(e, Aggregate) and e.contains(target):
            return True
    return False


class Aggregate(Exception):
    """Several errors carried together without one combined meaning."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors = list(errors)
        super().__init__(*self.errors)

    def _visit(self, match: Callable[[BaseException], bool]) -> bool:
        for err in self.errors:
            if isinstance(err, Aggregate):
                if err._visit(match):
                    return True
            elif match(err):
                return True
        return False

    def contains(self, target: BaseException) -> bool:
        """Report whether target occurs among the errors or their causes."""
        return self._visit(lambda err: _is(err, target))

    def __str__(self) -> str:
        if not self.errors:
            return ""
        if len(self.errors) == 1:
            return str(self.errors[0])
        seen: list[str] = []

        def collect(err: BaseException) -> bool:
            msg = str(err)
            if msg not in seen:
                seen.append(msg)
            return False

        self._visit(collect)
        if len(seen) == 1:
            return seen[0]
        return "[" + ", ".join(seen) + "]"

    def __repr__(self) -> str:
        return f"Aggregate({self.errors!r})"


def new(message: str) -> KindError:
    """Return an error with message, recording the current stack."""
    return KindError(message, stack=_capture_stack())


def new_without_stack(message: str) -> KindError:
    """Return an error with message and no recorded stack."""
    return KindError(message)


def _format(format: str, args: tuple) -> str:
    return format % args if args else format


def errorf(format: str, *args: object) -> KindError:
    """Return an error with a %-formatted message, recording the current stack."""
    return KindError(_format(format, args), stack=_capture_stack())


def wrap(err: BaseException | None, message: str) -> KindError | None:
    """Annotate err with message and a stack; None stays None."""
    if err is None:
        return None
    return KindError(message, cause=err, stack=_capture_stack())


def wrapf(err: BaseException | None, format: str, *args: object) -> KindError | None:
    """Annotate err with a %-formatted message and a stack; None stays None."""
    if err is None:
        return None
    return KindError(_format(format, args), cause=err, stack=_capture_stack())


def with_stack(err: BaseException | None) -> KindError | None:
    """Annotate err with the current stack; None stays None."""
    if err is None:
        return None
    return KindError(cause=err, stack=_capture_stack())


def stack_trace(err: BaseException | None) -> tuple[traceback.FrameSummary, ...] | None:
    """Return the deepest recorded stack in err's cause chain, or None."""
    found = None
    for e in _causes(err):
        stack = getattr(e, "stack", None)
        if stack is not None:
            found = stack
    return found


def _make_aggregate(errlist: Iterable[BaseException | None]) -> Aggregate | None:
    errs = [e for e in errlist if e is not None]
    return Aggregate(errs) if errs else None


def _flatten(agg: Aggregate | None) -> Aggregate | None:
    if agg is None:
        return None
    result: list[BaseException] = []
    for err in agg.errors:
        if isinstance(err, Aggregate):
            flat = _flatten(err)
            if flat is not None:
                result.extend(flat.errors)
        elif err is not None:
            result.append(err)
    return _make_aggregate(result)


def _reduce(err: BaseException | None) -> BaseException | None:
    if isinstance(err, Aggregate):
        if len(err.errors) == 1:
            return err.errors[0]
        if not err.errors:
            return None
    return err


def new_aggregate(errlist: Iterable[BaseException | None]) -> KindError | None:
    """Combine errors into one, flattened and reduced, with a stack; None if there are none."""
    return with_stack(_reduce(_flatten(_make_aggregate(errlist))))


def errors(err: BaseException | None) -> list[BaseException]:
    """Return the errors of the deepest Aggregate in err's cause chain, or an empty list."""
    found: Aggregate | None = None
    for e in _causes(err):
        if isinstance(e, Aggregate):
            found = e
    return list(found.errors) if found is not None else []