from safe_code_judge import EvaluationPolicy, ExecutionRequest, IsolatedScriptExecutor, TestCase


def run(code: str, policy: EvaluationPolicy | None = None, function_name: str = "f"):
    executor = IsolatedScriptExecutor(policy or EvaluationPolicy(timeout_ms=5_000))
    return executor.run(
        ExecutionRequest(
            source=code,
            language="python",
            function_name=function_name,
            test_cases=[TestCase("", "1")],
        )
    )


def test_blocked_import_direct() -> None:
    """Verify that directly importing a capability module fails."""
    result = run("import os\ndef f():\n    return 1\n")
    assert result.error is not None
    assert "blocked by policy" in result.error


def test_blocked_import_alias() -> None:
    """Verify that aliasing a blocked module still fails."""
    result = run("import socket as s\ndef f():\n    return 1\n")
    assert "blocked by policy" in (result.error or "")


def test_blocked_import_from() -> None:
    """Verify that 'from x import y' on a blocked module fails."""
    result = run("from urllib.request import urlopen\ndef f():\n    return 1\n")
    assert "blocked by policy" in (result.error or "")


def test_network_and_process_handles_blocked_even_in_restrict_mode() -> None:
    policy = EvaluationPolicy(mode="restrict", blocked_imports=[], blocked_builtins=[], timeout_ms=5_000)
    for module in ("socket", "http.client", "subprocess", "multiprocessing", "ctypes", "importlib"):
        result = run(f"import {module}\ndef f():\n    return 1\n", policy=policy)
        assert "blocked by policy" in (result.error or ""), module


def test_unlisted_import_denied_by_default() -> None:
    result = run("import xml.dom\ndef f():\n    return 1\n")
    assert "not allowed by policy" in (result.error or "")


def test_allowlisted_import_works() -> None:
    code = "import math\nfrom collections import Counter\ndef f():\n    return int(math.sqrt(Counter('a')['a']))\n"
    result = run(code)
    assert result.error is None
    assert result.passed == 1


def test_dunder_import_bypass_attempt() -> None:
    """Attempt to bypass using __import__."""
    result = run("os = __import__('os')\ndef f():\n    return 1\n")
    assert "blocked by policy" in (result.error or "")


def test_eval_not_available_at_load_time() -> None:
    result = run("x = eval('1 + 1')\ndef f():\n    return x\n")
    assert "name 'eval' is not defined" in (result.error or "")


def test_open_inside_function_is_case_error() -> None:
    result = run("def f():\n    open('x.txt', 'w')\n    return 1\n")
    assert result.error is None
    assert result.results[0].ok is False
    assert result.results[0].actual == "Error: name 'open' is not defined"


def test_raising_system_exit_is_case_error() -> None:
    result = run("def f():\n    raise SystemExit(3)\n")
    assert result.error is None
    assert result.results[0].actual == "Error: 3"


def test_classes_can_be_defined() -> None:
    code = """
class Counter:
    def __init__(self):
        self.total = 0

    def add(self, n):
        self.total += n
        return self.total

def f():
    counter = Counter()
    counter.add(0)
    return counter.add(1)
"""
    result = run(code)
    assert result.error is None
    assert result.passed == 1


def test_low_level_process_and_socket_modules_blocked_in_restrict_mode() -> None:
    policy = EvaluationPolicy(mode="restrict", blocked_imports=[], blocked_builtins=[], timeout_ms=5_000)
    for module in ("_socket", "posix", "nt", "_posixsubprocess", "_io"):
        result = run(f"import {module}\ndef f():\n    return 1\n", policy=policy)
        assert "blocked by policy" in (result.error or ""), module


def test_allowed_modules_do_not_leak_capability_handles() -> None:
    cases = {
        "random": "random._os.getcwd()",
        "collections": "collections._sys.platform",
        "typing": "typing.sys.platform",
    }
    for module, expression in cases.items():
        code = f"import {module}\ndef f():\n    {expression}\n    return 1\n"
        result = run(code)
        assert result.error is None, module
        assert result.results[0].ok is False, module
        assert "has no attribute" in result.results[0].actual, module


def test_allowed_module_public_surface_still_works() -> None:
    code = """
import collections.abc
from collections import Counter
import random

def f():
    rng = random.Random(7)
    assert isinstance({}, collections.abc.Mapping)
    return Counter([rng.randint(1, 1)])[1]
"""
    result = run(code)
    assert result.error is None
    assert result.passed == 1


def test_output_from_repr_and_eq_stays_off_the_reply_channel() -> None:
    code = """
class Noisy:
    def __repr__(self):
        print("repr called")
        return "Noisy()"

    def __eq__(self, other):
        print("eq called")
        return other == 1

def f():
    return Noisy()
"""
    executor = IsolatedScriptExecutor(EvaluationPolicy(timeout_ms=5_000))
    result = executor.run(
        ExecutionRequest(
            source=code,
            language="python",
            function_name="f",
            test_cases=[TestCase("", "1"), TestCase("", "2")],
        )
    )
    assert result.error is None
    assert [item.actual for item in result.results] == ["Noisy()", "Noisy()"]
    assert [item.ok for item in result.results] == [True, False]
