"""Executors that turn a verified function span into a running entry point."""

import asyncio
import builtins
import inspect
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Protocol, Union

from ..context import ExecutionContext
from ..errors import ExecutionError
from ..integrity import content_hash
from ..models import Span

EntryPoint = Callable[[ExecutionContext], Union[Any, Awaitable[Any]]]

ENTRY_POINT_NAME = "main"

BLOCKED_BUILTINS = frozenset(
    {
        "__import__",
        "breakpoint",
        "compile",
        "eval",
        "exec",
        "exit",
        "globals",
        "help",
        "input",
        "locals",
        "open",
        "quit",
        "vars",
    }
)


def restricted_builtins() -> dict[str, Any]:
    return {
        name: getattr(builtins, name)
        for name in dir(builtins)
        if name not in BLOCKED_BUILTINS
    }


async def invoke_entry_point(entry: EntryPoint, ctx: ExecutionContext) -> Any:
    """Call ``entry(ctx)``; sync callables run in a worker thread."""
    if inspect.iscoroutinefunction(entry) or inspect.iscoroutinefunction(
        getattr(entry, "__call__", None)
    ):
        return await entry(ctx)
    result = await asyncio.to_thread(entry, ctx)
    if inspect.isawaitable(result):
        result = await result
    return result


def entry_point_source(entry: EntryPoint) -> str:
    """Source of the module defining ``entry``; what its function span carries."""
    module = inspect.getmodule(entry)
    if module is None:
        raise ValueError(f"Cannot locate the module of {entry!r}")
    return inspect.getsource(module)


def code_digest(code: str | None) -> str | None:
    if code is None:
        return None
    return content_hash(code.encode("utf-8"))


class ICodeExecutor(Protocol):
    """Runs verified code against a capability context."""

    async def execute(self, function: Span, ctx: ExecutionContext) -> Any:
        """Invoke the function's entry point and return its result."""
        ...


class PythonSourceExecutor:
    """Compiles the ``code`` field of a function span and calls ``main(ctx)``.

    The module body runs with a reduced builtins table: no imports, no file
    access, no nested eval/exec.

    Compiling, running the module body and calling a sync ``main`` all
    happen in one worker thread, so a boot timeout fires even when the code
    never yields. A thread that has timed out cannot be killed; it runs to
    completion in the background and its result is discarded. An async
    ``main`` is awaited on the event loop and is cancelled normally.
    """

    def __init__(self, entry_point: str = ENTRY_POINT_NAME):
        self._entry_point = entry_point
        self._builtins = restricted_builtins()

    async def execute(self, function: Span, ctx: ExecutionContext) -> Any:
        if not function.code:
            raise ExecutionError(f"Function {function.id} carries no code")

        result = await asyncio.to_thread(self._run, function, ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _run(self, function: Span, ctx: ExecutionContext) -> Any:
        namespace: dict[str, Any] = {
            "__builtins__": dict(self._builtins),
            "__name__": f"ledger_function_{function.id}",
        }
        try:
            code = compile(function.code, f"<function:{function.id}>", "exec")
        except SyntaxError as e:
            raise ExecutionError(
                f"Function {function.id} does not compile: {e.msg}",
                detail={"line": e.lineno},
            ) from e

        exec(code, namespace)

        entry = namespace.get(self._entry_point)
        if not callable(entry):
            raise ExecutionError(
                f"Function {function.id} must define {self._entry_point}(ctx)"
            )
        # An async main only builds its coroutine here.
        return entry(ctx)


class RegistryExecutor:
    """Looks entry points up by function id, with an optional fallback.

    Every entry is bound to the digest of the code its function span must
    carry. A span whose ``code`` does not match is refused before anything
    runs; ids that are not registered go to the fallback.
    """

    def __init__(
        self,
        entries: Mapping[str, EntryPoint] | None = None,
        fallback: ICodeExecutor | None = None,
    ):
        self._entries: dict[str, tuple[EntryPoint, str]] = {}
        self._fallback = fallback
        for function_id, entry in (entries or {}).items():
            self.register(function_id, entry)

    def register(
        self, function_id: str, entry: EntryPoint, code: str | None = None
    ) -> None:
        """Register an entry point.

        ``code`` is the source the function span must carry; it defaults to
        the source of the module defining ``entry``.
        """
        if code is None:
            code = entry_point_source(entry)
        self._entries[function_id] = (entry, code_digest(code))

    def __contains__(self, function_id: str) -> bool:
        return function_id in self._entries

    async def execute(self, function: Span, ctx: ExecutionContext) -> Any:
        registered = self._entries.get(function.id)
        if registered is None:
            if self._fallback is not None:
                return await self._fallback.execute(function, ctx)
            raise ExecutionError(f"No entry point registered for {function.id}")

        entry, expected = registered
        if code_digest(function.code) != expected:
            raise ExecutionError(
                f"Function {function.id} code does not match its registered entry point",
                detail={"expected": expected, "found": code_digest(function.code)},
            )
        return await invoke_entry_point(entry, ctx)
