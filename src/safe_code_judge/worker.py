from __future__ import annotations

import ast
import builtins
import contextlib
import io
import json
import sys
import types
from typing import Any, Callable

_real_import = builtins.__import__

# Capability handles that are never handed to a submission, in any mode:
# network fetch, raw sockets, dynamic loading, messaging and process control.
# The C-level modules behind them are listed too.
CAPABILITY_MODULES = frozenset(
    {
        "_asyncio",
        "_ctypes",
        "_io",
        "_multiprocessing",
        "_posixshmem",
        "_posixsubprocess",
        "_signal",
        "_socket",
        "_ssl",
        "_thread",
        "_winapi",
        "asyncio",
        "builtins",
        "code",
        "codeop",
        "ctypes",
        "fcntl",
        "ftplib",
        "gc",
        "http",
        "imaplib",
        "importlib",
        "io",
        "marshal",
        "mmap",
        "msvcrt",
        "multiprocessing",
        "nt",
        "os",
        "pickle",
        "poplib",
        "posix",
        "pty",
        "resource",
        "runpy",
        "select",
        "selectors",
        "signal",
        "smtplib",
        "socket",
        "socketserver",
        "ssl",
        "subprocess",
        "sys",
        "telnetlib",
        "threading",
        "urllib",
        "webbrowser",
        "winreg",
        "xmlrpc",
        "zipimport",
    }
)

# Builtins needed for the submission to define functions and classes at all.
_STRUCTURAL_BUILTINS = frozenset({"__build_class__", "__name__"})

# Dunder names a module view keeps; every other `_` name is hidden.
_VISIBLE_DUNDERS = frozenset({"__name__", "__doc__", "__all__"})


def _module_view(module: types.ModuleType) -> types.ModuleType:
    """Return a stand-in for `module` exposing only its public surface.

    Private names are dropped, and so are attributes holding modules from
    other packages, so `random._os` or `typing.sys` never reach a submission.
    Submodules of the same package are kept as views of their own.

    Example:
        ```python
        view = _module_view(collections)
        hasattr(view, "_sys")  # False
        ```
    """
    view = types.ModuleType(module.__name__, module.__doc__)
    prefix = module.__name__ + "."
    for name, value in vars(module).items():
        if name.startswith("_") and name not in _VISIBLE_DUNDERS:
            continue
        if isinstance(value, types.ModuleType):
            if not value.__name__.startswith(prefix):
                continue
            value = _module_view(value)
        setattr(view, name, value)
    return view


def _import_guard(mode: str, allowed: set[str], blocked: set[str]) -> Callable[..., Any]:
    """Return the `__import__` a submission sees.

    Capability modules are refused first. Then allow mode requires the
    top-level package on the allowlist and restrict mode refuses the blocklist.
    What comes back is a module view, not the module itself.

    Example:
        ```python
        guard = _import_guard("allow", {"math"}, set())
        ```
    """

    def guarded_import(
        name: str,
        globals: dict[str, Any] | None = None,
        locals: dict[str, Any] | None = None,
        fromlist: Any = (),
        level: int = 0,
    ) -> Any:
        """Import `name` when the policy permits it.

        Example:
            ```python
            heapq = guarded_import("heapq")
            ```
        """
        if level:
            raise ImportError("Relative imports are not available to submissions")
        package = name.partition(".")[0]
        refused = package in CAPABILITY_MODULES or (
            mode != "allow" and package in blocked
        )
        if refused:
            raise ImportError(f"Import '{name}' is blocked by policy")
        if mode == "allow" and package not in allowed:
            raise ImportError(f"Import '{name}' is not allowed by policy")
        return _module_view(_real_import(name, globals, locals, fromlist, level))

    return guarded_import


def _submission_builtins(
    mode: str,
    allowed: set[str],
    blocked: set[str],
    guarded_import: Callable[..., Any],
) -> dict[str, Any]:
    """Build the builtins table a submission runs against.

    Allow mode is deny-by-default: only listed names, exception classes and
    the class-building hook survive.

    Example:
        ```python
        table = _submission_builtins("allow", {"len"}, set(), guard)
        ```
    """

    def permitted(name: str, value: Any) -> bool:
        """Decide whether one builtin is exposed.

        Example:
            ```python
            permitted("len", len)
            ```
        """
        if mode != "allow":
            return name not in blocked
        if name in allowed or name in _STRUCTURAL_BUILTINS:
            return True
        return isinstance(value, type) and issubclass(value, BaseException)

    table = {name: value for name, value in vars(builtins).items() if permitted(name, value)}
    table["__import__"] = guarded_import
    return table


def _format_error(exc: BaseException) -> str:
    """Format an exception as `Type: message`.

    Example:
        ```python
        _format_error(ValueError("bad"))  # "ValueError: bad"
        ```
    """
    return f"{type(exc).__name__}: {exc}"


def _case_error(exc: BaseException) -> str:
    """Format a per-case failure for the `actual` field.

    Example:
        ```python
        _case_error(ZeroDivisionError("division by zero"))  # "Error: division by zero"
        ```
    """
    message = str(exc) or type(exc).__name__
    return f"Error: {message}"


def parse_arguments(text: str) -> list[Any]:
    """Parse a test-case input literal into positional arguments.

    A comma list or a parenthesized tuple is spread into several arguments;
    any other literal is a single argument. Empty input means no arguments.

    Example:
        ```python
        parse_arguments("2, 3")      # [2, 3]
        parse_arguments("[1, 2]")    # [[1, 2]]
        ```
    """
    if not text.strip():
        return []
    value = ast.literal_eval(text.strip())
    if isinstance(value, tuple):
        return list(value)
    return [value]


def parse_expected(text: str) -> Any:
    """Parse the expected-value literal.

    Example:
        ```python
        parse_expected("[1, 2]")  # [1, 2]
        ```
    """
    return ast.literal_eval(text.strip())


def canonical(value: Any) -> Any:
    """Reduce a value to a form where `==` means structural equality.

    Sequences compare element-wise regardless of container type.

    Example:
        ```python
        canonical((1, [2, (3,)]))  # [1, [2, [3]]]
        ```
    """
    if isinstance(value, (list, tuple)):
        return [canonical(item) for item in value]
    if isinstance(value, dict):
        return {key: canonical(item) for key, item in value.items()}
    return value


def structurally_equal(actual: Any, expected: Any) -> bool:
    """Compare two values by content rather than identity or exact type.

    Example:
        ```python
        structurally_equal((1, 2), [1, 2])  # True
        ```
    """
    return bool(canonical(actual) == canonical(expected))


def _run_cases(
    func: Callable[..., Any],
    test_cases: list[dict[str, Any]],
    stdout_buffer: io.StringIO,
) -> list[dict[str, Any]]:
    """Invoke `func` once per test case, sequentially, isolating failures.

    Example:
        ```python
        rows = _run_cases(add, [{"input": "2, 3", "expected": "5"}], io.StringIO())
        ```
    """
    results: list[dict[str, Any]] = []
    for index, case in enumerate(test_cases, start=1):
        raw_input = str(case.get("input", ""))
        raw_expected = str(case.get("expected", ""))
        record = {
            "input": raw_input,
            "expected": raw_expected,
            "description": case.get("description") or f"Test {index}",
        }
        try:
            args = parse_arguments(raw_input)
            expected = parse_expected(raw_expected)
            # repr and __eq__ run submission code too; stdout is the reply channel.
            with contextlib.redirect_stdout(stdout_buffer):
                actual = func(*args)
                record["actual"] = repr(actual)
                record["pass"] = structurally_equal(actual, expected)
        except (Exception, SystemExit) as exc:
            record["actual"] = _case_error(exc)
            record["pass"] = False
        results.append(record)
    return results


class SubmissionLoadError(Exception):
    """The submission failed before any test case could run."""


def _emit(message: dict[str, Any]) -> None:
    """Write the single response document to the parent.

    Example:
        ```python
        _emit({"success": True, "results": []})
        ```
    """
    sys.stdout.write(json.dumps(message, default=str))
    sys.stdout.flush()


def _name_set(policy: dict[str, Any], key: str) -> set[str]:
    """Return one of the policy's name lists as a set.

    Example:
        ```python
        _name_set({"allowed_imports": ["math"]}, "allowed_imports")  # {"math"}
        ```
    """
    return {str(name) for name in policy.get(key, [])}


def _load_submission(
    source: str,
    function_name: str,
    builtins_table: dict[str, Any],
    stdout_buffer: io.StringIO,
) -> Callable[..., Any]:
    """Compile and execute the program once, then return its entry point.

    Example:
        ```python
        add = _load_submission("def add(a, b):\\n    return a + b\\n", "add", table, io.StringIO())
        ```
    """
    try:
        code = compile(source, "<submission>", "exec")
    except SyntaxError as exc:
        raise SubmissionLoadError(f"SyntaxError: {exc}") from exc

    namespace: dict[str, Any] = {"__builtins__": builtins_table, "__name__": "__submission__"}
    try:
        with contextlib.redirect_stdout(stdout_buffer):
            exec(code, namespace)
    except (Exception, SystemExit) as exc:
        raise SubmissionLoadError(_format_error(exc)) from exc

    entry = namespace.get(function_name)
    if not callable(entry):
        raise SubmissionLoadError(f"NameError: function '{function_name}' is not defined")
    return entry


def main() -> int:
    """Load the submission, run every case and report back on stdout.

    Example:
        ```python
        raise SystemExit(main())
        ```
    """
    request = json.loads(sys.stdin.read() or "{}")
    policy = request.get("policy", {})
    mode = str(policy.get("mode", "allow"))

    try:
        if mode not in ("allow", "restrict"):
            raise ValueError("mode must be 'allow' or 'restrict'")
        with open(str(request.get("program_path", "")), encoding="utf-8") as handle:
            source = handle.read()
        guard = _import_guard(
            mode, _name_set(policy, "allowed_imports"), _name_set(policy, "blocked_imports")
        )
        table = _submission_builtins(
            mode, _name_set(policy, "allowed_builtins"), _name_set(policy, "blocked_builtins"), guard
        )
        sink = io.StringIO()
        entry = _load_submission(source, str(request.get("function_name", "")), table, sink)
        results = _run_cases(entry, list(request.get("test_cases", [])), sink)
    except SubmissionLoadError as exc:
        _emit({"success": False, "error": str(exc)})
        return 1
    except Exception as exc:
        _emit({"success": False, "error": str(exc) or type(exc).__name__})
        return 1

    _emit({"success": True, "results": results})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
