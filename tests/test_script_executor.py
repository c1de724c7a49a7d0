import sys
import tempfile
import time
from pathlib import Path

import pytest

from safe_code_judge import EvaluationPolicy, ExecutionRequest, IsolatedScriptExecutor, TestCase
from safe_code_judge.execution import script_executor
from safe_code_judge.models import TIMEOUT_ACTUAL

EXECUTOR = IsolatedScriptExecutor(EvaluationPolicy(timeout_ms=5_000))

ADD = "def add(a, b):\n    return a + b\n"


def run(code: str, function_name: str, cases: list[TestCase], timeout_ms: int | None = None):
    return EXECUTOR.run(
        ExecutionRequest(
            source=code,
            language="python",
            function_name=function_name,
            test_cases=cases,
            timeout_ms=timeout_ms,
        )
    )


def test_add_example_scenario() -> None:
    result = run(ADD, "add", [TestCase("2, 3", "5"), TestCase("2, 3", "6")])

    assert result.error is None
    assert (result.passed, result.failed, result.total) == (1, 1, 2)
    first, second = result.results
    assert (first.actual, first.ok, first.description) == ("5", True, "Test 1")
    assert (second.actual, second.ok, second.description) == ("5", False, "Test 2")


def test_counts_match_case_count_when_no_error() -> None:
    cases = [TestCase(f"{n}, {n}", str(n * 2)) for n in range(6)]
    result = run(ADD, "add", cases)
    assert result.error is None
    assert result.passed + result.failed == result.total == len(cases)
    assert [item.input for item in result.results] == [case.input for case in cases]


def test_structurally_equal_fresh_collections_pass() -> None:
    code = """
def build(n):
    return list(range(n))

def pair(a, b):
    return (a, b)

def index(words):
    return {word: len(word) for word in words}
"""
    assert run(code, "build", [TestCase("3", "[0, 1, 2]")]).passed == 1
    assert run(code, "pair", [TestCase("1, 2", "[1, 2]")]).passed == 1
    assert run(code, "index", [TestCase("['ab', 'c']", "{'c': 1, 'ab': 2}")]).passed == 1


def test_string_results_use_python_literals() -> None:
    code = "def reverse(text):\n    return text[::-1]\n"
    result = run(code, "reverse", [TestCase('"hello world"', '"dlrow olleh"', "reverse string")])
    assert result.passed == 1
    assert result.results[0].actual == "'dlrow olleh'"
    assert result.results[0].description == "reverse string"


def test_failure_in_one_case_does_not_abort_others() -> None:
    code = """
def pick(values, index):
    if index == 2:
        raise ValueError("bad index")
    return values[index]
"""
    cases = [
        TestCase("[1, 2, 3], 0", "1"),
        TestCase("[1, 2, 3], 2", "3"),
        TestCase("[1, 2, 3], 1", "2"),
    ]
    result = run(code, "pick", cases)

    assert result.error is None
    assert (result.passed, result.failed) == (2, 1)
    assert [item.ok for item in result.results] == [True, False, True]
    assert result.results[1].actual == "Error: bad index"


def test_malformed_literal_is_a_case_error() -> None:
    result = run(ADD, "add", [TestCase("not a literal", "5"), TestCase("1, 1", "2")])
    assert result.error is None
    assert result.results[0].ok is False
    assert result.results[0].actual.startswith("Error:")
    assert result.results[1].ok is True


def test_all_cases_failing_is_not_a_harness_error() -> None:
    result = run(ADD, "add", [TestCase("1, 1", "3"), TestCase("2, 2", "5")])
    assert result.error is None
    assert result.passed == 0
    assert len(result.results) == 2


def test_printing_does_not_corrupt_channel() -> None:
    code = "print('loading')\ndef echo(x):\n    print('noise', x)\n    return x\n"
    result = run(code, "echo", [TestCase("[1, 2]", "[1, 2]")])
    assert result.error is None
    assert result.passed == 1


def test_syntax_error_is_harness_failure() -> None:
    result = run("def add(a, b)\n    return a + b\n", "add", [TestCase("1, 2", "3"), TestCase("2, 2", "4")])
    assert result.error is not None
    assert "SyntaxError" in result.error
    assert result.results == []
    assert (result.passed, result.failed, result.total) == (0, 2, 2)


def test_load_time_exception_is_harness_failure() -> None:
    result = run("x = 1 / 0\n" + ADD, "add", [TestCase("1, 2", "3")])
    assert result.error == "ZeroDivisionError: division by zero"
    assert result.results == []


def test_missing_function_is_harness_failure() -> None:
    result = run(ADD, "subtract", [TestCase("1, 2", "-1")])
    assert result.error == "NameError: function 'subtract' is not defined"
    assert result.results == []


def test_infinite_loop_times_out_within_budget() -> None:
    code = "def spin(x):\n    while True:\n        pass\n"
    cases = [TestCase("1", "1"), TestCase("2", "2")]

    start = time.perf_counter()
    result = run(code, "spin", cases, timeout_ms=200)
    elapsed = time.perf_counter() - start

    assert elapsed < 2.0
    assert result.timed_out is True
    assert result.error == "Execution timed out after 200 ms"
    assert len(result.results) == 2
    assert all(item.actual == TIMEOUT_ACTUAL and not item.ok for item in result.results)
    assert all("Timeout" in item.actual for item in result.results)


def test_module_level_infinite_loop_times_out() -> None:
    result = run("while True:\n    pass\n", "f", [TestCase("1", "1")], timeout_ms=300)
    assert result.timed_out is True
    assert result.failed == 1


def test_program_directory_is_removed_on_success_and_timeout(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))

    run(ADD, "add", [TestCase("1, 2", "3")])
    run("def spin():\n    while True:\n        pass\n", "spin", [TestCase("", "None")], timeout_ms=200)
    run("def broken(:\n", "broken", [TestCase("", "None")])

    assert list(tmp_path.iterdir()) == []


def test_submission_runs_in_its_program_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    seen: list[str] = []
    original = script_executor.IsolatedScriptExecutor._execute

    def spy(self, payload, workdir, timeout_ms):
        seen.append(workdir)
        assert Path(payload["program_path"]).parent == Path(workdir)
        assert Path(payload["program_path"]).read_text(encoding="utf-8") == ADD
        return original(self, payload, workdir, timeout_ms)

    monkeypatch.setattr(script_executor.IsolatedScriptExecutor, "_execute", spy)
    result = run(ADD, "add", [TestCase("1, 2", "3")])

    assert result.passed == 1
    assert len(seen) == 1
    assert not Path(seen[0]).exists()


def _fake_worker(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, body: str) -> None:
    worker = tmp_path / "fake_worker.py"
    worker.write_text(body, encoding="utf-8")
    monkeypatch.setattr(script_executor, "_worker_path", lambda: worker)


def test_worker_crash_is_harness_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_worker(tmp_path, monkeypatch, "import sys\nsys.stderr.write('worker exploded\\n')\nsys.exit(3)\n")
    result = run(ADD, "add", [TestCase("1, 2", "3")])
    assert result.error == "worker exploded"
    assert result.results == []
    assert result.failed == 1


def test_worker_invalid_json_is_harness_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_worker(tmp_path, monkeypatch, "print('definitely not json')\n")
    result = run(ADD, "add", [TestCase("1, 2", "3")])
    assert result.error == "Worker returned invalid JSON"
    assert result.results == []


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_worker_killed_by_signal_is_harness_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_worker(tmp_path, monkeypatch, "import os, signal\nos.kill(os.getpid(), signal.SIGKILL)\n")
    result = run(ADD, "add", [TestCase("1, 2", "3")])
    assert result.error == "Worker terminated by signal 9"


def test_interpret_silent_exit_reports_exit_code() -> None:
    result = EXECUTOR._interpret("", "", 5, total=2)
    assert result.error == "Worker exited with code 5 without a response"
    assert (result.passed, result.failed, result.total) == (0, 2, 2)


def test_zero_timeout_is_honoured_not_replaced_by_default() -> None:
    result = run(ADD, "add", [TestCase("1, 2", "3")], timeout_ms=0)
    assert result.timed_out is True
    assert result.error == "Execution timed out after 0 ms"
