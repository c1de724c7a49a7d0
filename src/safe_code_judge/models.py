from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

TIMEOUT_ACTUAL = "Timeout — execution exceeded the limit (possible infinite loop)"


@dataclass(slots=True)
class TestCase:
    """One declarative test case: argument literal(s) and the expected literal.

    Example:
        ```python
        case = TestCase(input="2, 3", expected="5", description="adds")
        ```
    """

    __test__ = False

    input: str
    expected: str
    description: str | None = None

    @classmethod
    def coerce(cls, value: "TestCase | Mapping[str, Any]") -> "TestCase":
        """Build a test case from a `TestCase` or a plain mapping.

        Example:
            ```python
            case = TestCase.coerce({"input": "2, 3", "expected": "5"})
            ```
        """
        if isinstance(value, cls):
            return value
        description = value.get("description")
        return cls(
            input=str(value.get("input", "")),
            expected=str(value.get("expected", "")),
            description=str(description) if description else None,
        )

    def label(self, index: int) -> str:
        """Return the description, or the 1-based ordinal label.

        Example:
            ```python
            TestCase("1", "1").label(3)  # "Test 3"
            ```
        """
        return self.description or f"Test {index}"


@dataclass(slots=True)
class ExecutionRequest:
    """One evaluation request handed to an executor.

    Example:
        ```python
        req = ExecutionRequest(source="def f(): return 1", language="python", function_name="f", test_cases=[])
        ```
    """

    source: str
    language: str
    function_name: str
    test_cases: list[TestCase] = field(default_factory=list)
    timeout_ms: int | None = None


@dataclass(slots=True)
class CaseResult:
    """Outcome for a single test case.

    Example:
        ```python
        res = CaseResult(input="2, 3", expected="5", actual="5", ok=True, description="Test 1")
        ```
    """

    input: str
    expected: str
    actual: str
    ok: bool
    description: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CaseResult":
        """Build a case result from the worker's JSON record.

        Example:
            ```python
            res = CaseResult.from_dict({"input": "1", "expected": "1", "actual": "1", "pass": True, "description": "Test 1"})
            ```
        """
        return cls(
            input=str(raw.get("input", "")),
            expected=str(raw.get("expected", "")),
            actual=str(raw.get("actual", "")),
            ok=bool(raw.get("pass", False)),
            description=str(raw.get("description", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the plain external representation.

        Example:
            ```python
            payload = res.to_dict()  # {"input": ..., "pass": True, ...}
            ```
        """
        return {
            "input": self.input,
            "expected": self.expected,
            "actual": self.actual,
            "pass": self.ok,
            "description": self.description,
        }

    def describe(self, index: int) -> str:
        """Render a one-line console summary for this case.

        Example:
            ```python
            line = res.describe(1)  # "✓ Test 1: Input(2, 3) → Expected(5) Got(5)"
            ```
        """
        mark = "✓" if self.ok else "✗"
        return f"{mark} Test {index}: Input({self.input}) → Expected({self.expected}) Got({self.actual})"


@dataclass(slots=True)
class RunResult:
    """Aggregate verdict for one evaluation call.

    `error` is set only for harness-level failures (load errors, runtime
    provisioning, isolation faults) and timeouts. Harness failures carry no
    case results; a timeout carries one synthesized failure per case.

    Example:
        ```python
        result = RunResult(passed=1, failed=1, total=2)
        ```
    """

    passed: int
    failed: int
    total: int
    results: list[CaseResult] = field(default_factory=list)
    error: str | None = None
    timed_out: bool = False

    @classmethod
    def from_cases(cls, results: Iterable[CaseResult]) -> "RunResult":
        """Aggregate a completed list of case results.

        Example:
            ```python
            result = RunResult.from_cases([res])
            ```
        """
        collected = list(results)
        passed = sum(1 for item in collected if item.ok)
        return cls(
            passed=passed,
            failed=len(collected) - passed,
            total=len(collected),
            results=collected,
        )

    @classmethod
    def harness_failure(cls, error: str, total: int) -> "RunResult":
        """Build a result for a failure that invalidates the whole run.

        Example:
            ```python
            result = RunResult.harness_failure("SyntaxError: invalid syntax", total=3)
            ```
        """
        return cls(passed=0, failed=total, total=total, results=[], error=error)

    @classmethod
    def timeout(cls, test_cases: Iterable[TestCase], timeout_ms: int) -> "RunResult":
        """Build the synthesized result for a run that exceeded its budget.

        Example:
            ```python
            result = RunResult.timeout([TestCase("1", "1")], timeout_ms=200)
            ```
        """
        results = [
            CaseResult(
                input=case.input,
                expected=case.expected,
                actual=TIMEOUT_ACTUAL,
                ok=False,
                description=case.label(index),
            )
            for index, case in enumerate(test_cases, start=1)
        ]
        return cls(
            passed=0,
            failed=len(results),
            total=len(results),
            results=results,
            error=f"Execution timed out after {timeout_ms} ms",
            timed_out=True,
        )

    @property
    def score(self) -> float:
        """Return the pass ratio in `[0.0, 1.0]`.

        Example:
            ```python
            RunResult(passed=1, failed=1, total=2).score  # 0.5
            ```
        """
        if self.total == 0:
            return 0.0
        return self.passed / self.total

    def summary(self) -> str:
        """Return the error text, or the `passed/total` headline.

        Example:
            ```python
            RunResult(passed=1, failed=1, total=2).summary()  # "1/2 test cases passed"
            ```
        """
        if self.error is not None:
            return self.error
        return f"{self.passed}/{self.total} test cases passed"

    def to_dict(self) -> dict[str, Any]:
        """Return the plain external representation.

        Example:
            ```python
            payload = result.to_dict()
            ```
        """
        return {
            "passed": self.passed,
            "failed": self.failed,
            "total": self.total,
            "results": [item.to_dict() for item in self.results],
            "error": self.error,
        }
