# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Design by contract utilities for :mod:`opfs`.

The decorators accept both plain callables and coroutine functions. For a
coroutine function the checks run around the *awaited* call, so a
postcondition sees the coroutine's result rather than the coroutine object.
Checks are inert unless ``OPFS_DBC`` is truthy or enforcement has been forced
on with :func:`enable_dbc` / :func:`dbc_enabled`.
"""

from __future__ import annotations

import inspect
import os
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from functools import wraps
from typing import Any, Protocol, TypeVar, cast

ContractResult = bool | tuple[bool, str] | None
ContractCallable = Callable[..., ContractResult | object]

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T", bound=object)

_ENV_FLAG = "OPFS_DBC"
_forced_state: bool | None = None


def _coerce_flag(value: str | None) -> bool:
    if value is None:
        return False
    lowered = value.strip().lower()
    return lowered not in {"", "0", "false", "off", "no"}


def dbc_active() -> bool:
    """Return ``True`` when DbC checks should run."""

    if _forced_state is not None:
        return _forced_state
    return _coerce_flag(os.getenv(_ENV_FLAG))


def _qualname(target: object) -> str:
    return getattr(target, "__qualname__", repr(target))


def enable_dbc() -> None:
    """Force DbC enforcement on."""

    global _forced_state
    _forced_state = True


def disable_dbc() -> None:
    """Force DbC enforcement off."""

    global _forced_state
    _forced_state = False


@contextmanager
def dbc_enabled(*, active: bool = True) -> Iterator[None]:
    """Temporarily set the DbC flag inside a ``with`` block."""

    global _forced_state
    previous = _forced_state
    _forced_state = active
    try:
        yield
    finally:
        _forced_state = previous


def _normalize_contract_result(
    result: ContractResult | object,
) -> tuple[bool, str | None]:
    if isinstance(result, tuple):
        sequence_result = cast(Sequence[object], result)
        if not sequence_result:
            msg = "Contract callables must not return empty tuples"
            raise TypeError(msg)
        outcome = bool(sequence_result[0])
        message = None if len(sequence_result) == 1 else str(sequence_result[1])
        return outcome, message
    if isinstance(result, bool):
        return result, None
    if result is None:
        return False, None
    return bool(result), None


def _contract_failure_message(
    *,
    kind: str,
    func: Callable[..., object],
    predicate: ContractCallable,
    args: tuple[object, ...],
    kwargs: Mapping[str, object],
    detail: str | None,
) -> str:
    predicate_name = getattr(predicate, "__name__", repr(predicate))
    base = (
        f"{kind} contract for {_qualname(func)} failed via {predicate_name}."
        f" Args={args!r} Kwargs={kwargs!r}"
    )
    if detail:
        return f"{base} Details: {detail}"
    return base


def _evaluate_contract(
    *,
    kind: str,
    func: Callable[..., object],
    predicate: ContractCallable,
    args: tuple[object, ...],
    kwargs: Mapping[str, object],
) -> None:
    try:
        result = predicate(*args, **kwargs)
    except AssertionError:
        raise
    except Exception as exc:  # pragma: no cover - diagnostics are important
        msg = (
            f"{kind} contract for {_qualname(func)} raised {type(exc).__name__}: {exc}"
        )
        raise AssertionError(msg) from exc
    outcome, detail = _normalize_contract_result(result)
    if not outcome:
        raise AssertionError(
            _contract_failure_message(
                kind=kind,
                func=func,
                predicate=predicate,
                args=args,
                kwargs=kwargs,
                detail=detail,
            )
        )


def _check_all(
    kind: str,
    func: Callable[..., object],
    predicates: tuple[ContractCallable, ...],
    args: tuple[object, ...],
    kwargs: Mapping[str, object],
) -> None:
    for predicate in predicates:
        _evaluate_contract(
            kind=kind, func=func, predicate=predicate, args=args, kwargs=kwargs
        )


def require(*predicates: ContractCallable) -> Callable[[F], F]:
    """Validate preconditions before invoking the wrapped callable."""

    if not predicates:
        msg = "@require expects at least one predicate"
        raise ValueError(msg)

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapped(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
                if dbc_active():
                    _check_all("require", func, predicates, args, kwargs)
                return await func(*args, **kwargs)

            return cast(F, async_wrapped)

        @wraps(func)
        def wrapped(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            if dbc_active():
                _check_all("require", func, predicates, args, kwargs)
            return func(*args, **kwargs)

        return cast(F, wrapped)

    return decorator


def ensure(*predicates: ContractCallable) -> Callable[[F], F]:
    """Validate postconditions once the callable returns or raises.

    Predicates receive the call's arguments plus ``result=`` on success or
    ``exception=`` on failure.
    """

    if not predicates:
        msg = "@ensure expects at least one predicate"
        raise ValueError(msg)

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapped(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
                if not dbc_active():
                    return await func(*args, **kwargs)
                try:
                    result = await func(*args, **kwargs)
                except BaseException as exc:
                    _check_all(
                        "ensure", func, predicates, args, {**kwargs, "exception": exc}
                    )
                    raise
                _check_all("ensure", func, predicates, args, {**kwargs, "result": result})
                return result

            return cast(F, async_wrapped)

        @wraps(func)
        def wrapped(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            if not dbc_active():
                return func(*args, **kwargs)
            try:
                result = func(*args, **kwargs)
            except BaseException as exc:
                _check_all(
                    "ensure", func, predicates, args, {**kwargs, "exception": exc}
                )
                raise
            _check_all("ensure", func, predicates, args, {**kwargs, "result": result})
            return result

        return cast(F, wrapped)

    return decorator


def skip_invariant(func: F) -> F:
    """Mark a method so invariants are not evaluated around it."""

    class _InvariantSkippable(Protocol):
        __dbc_skip_invariant__: bool

    skippable_func = cast(_InvariantSkippable, func)
    skippable_func.__dbc_skip_invariant__ = True
    return func


def _check_invariants(
    predicates: tuple[ContractCallable, ...],
    *,
    instance: object,
    func: Callable[..., object],
) -> None:
    _check_all("invariant", func, predicates, (instance,), {})


def _wrap_init_with_invariants(
    cls: type[object],
    *,
    predicates: tuple[ContractCallable, ...],
) -> None:
    original_init = cls.__init__

    @wraps(original_init)
    def init_wrapper(self: object, *args: object, **kwargs: object) -> None:
        original_init(self, *args, **kwargs)
        if dbc_active():
            _check_invariants(predicates, instance=self, func=original_init)

    type.__setattr__(cls, "__init__", init_wrapper)


def _should_wrap_invariants(attribute_name: str, attribute: object) -> bool:
    if attribute_name.startswith("_"):
        return False
    if getattr(attribute, "__dbc_skip_invariant__", False):
        return False
    if isinstance(attribute, (staticmethod, classmethod, property)):
        return False
    return callable(attribute)


def _wrap_method_with_invariants(
    method: Callable[..., Any],
    *,
    predicates: tuple[ContractCallable, ...],
) -> Callable[..., Any]:
    if inspect.iscoroutinefunction(method):

        @wraps(method)
        async def async_wrapper(self: object, *args: object, **kwargs: object) -> Any:  # noqa: ANN401
            if not dbc_active():
                return await method(self, *args, **kwargs)
            _check_invariants(predicates, instance=self, func=method)
            try:
                return await method(self, *args, **kwargs)
            finally:
                _check_invariants(predicates, instance=self, func=method)

        return async_wrapper

    @wraps(method)
    def wrapper(self: object, *args: object, **kwargs: object) -> Any:  # noqa: ANN401
        if not dbc_active():
            return method(self, *args, **kwargs)
        _check_invariants(predicates, instance=self, func=method)
        try:
            return method(self, *args, **kwargs)
        finally:
            _check_invariants(predicates, instance=self, func=method)

    return wrapper


def invariant(*predicates: ContractCallable) -> Callable[[type[T]], type[T]]:
    """Enforce invariants before and after public method calls.

    Private methods, properties and methods marked with
    :func:`skip_invariant` are left alone.
    """

    if not predicates:
        msg = "@invariant expects at least one predicate"
        raise ValueError(msg)
    predicate_tuple = tuple(predicates)

    def decorator(cls: type[T]) -> type[T]:
        _wrap_init_with_invariants(cls, predicates=predicate_tuple)
        for attribute_name, attribute in list(cls.__dict__.items()):
            if not _should_wrap_invariants(attribute_name, attribute):
                continue
            setattr(
                cls,
                attribute_name,
                _wrap_method_with_invariants(attribute, predicates=predicate_tuple),
            )
        return cls

    return decorator


__all__ = [
    "ContractResult",
    "dbc_active",
    "dbc_enabled",
    "disable_dbc",
    "enable_dbc",
    "ensure",
    "invariant",
    "require",
    "skip_invariant",
]
