from __future__ import annotations

import json
import logging

from ..models import CaseResult, ExecutionRequest, RunResult
from ..policy import EvaluationPolicy
from .runtime import (
    DEFAULT_RUNTIME,
    LazyRuntime,
    RuntimeEvaluationError,
    RuntimeFault,
    RuntimeUnavailableError,
)

logger = logging.getLogger(__name__)

_QUOTES = "'\""


def build_case_program(source: str, function_name: str, raw_input: str) -> str:
    """Append the per-case harness to a JavaScript submission.

    The input literal is decoded as the elements of a JSON array and spread
    into the call; the return value comes back as JSON text.

    Example:
        ```python
        program = build_case_program("function add(a, b) { return a + b; }", "add", "2, 3")
        ```
    """
    encoded_args = json.dumps(f"[{raw_input}]")
    return (
        f"{source}\n"
        f";JSON.stringify({function_name}(...JSON.parse({encoded_args})));\n"
    )


def strip_quotes(text: str) -> str:
    """Trim whitespace and one surrounding quote character on each side.

    Example:
        ```python
        strip_quotes(' "abc" ')  # "abc"
        ```
    """
    value = text.strip()
    if value and value[0] in _QUOTES:
        value = value[1:]
    if value and value[-1] in _QUOTES:
        value = value[:-1]
    return value


class JavaScriptExecutor:
    """Evaluate JavaScript submissions in the shared, lazily started runtime.

    Cases run sequentially in the one cached interpreter. A case that runs
    past its budget is stopped by the host and fails on its own.

    Example:
        ```python
        executor = JavaScriptExecutor()
        ```
    """

    def __init__(
        self,
        runtime: LazyRuntime | None = None,
        policy: EvaluationPolicy | None = None,
    ) -> None:
        """Initialize with a runtime cache (the process-wide one by default).

        Example:
            ```python
            executor = JavaScriptExecutor(runtime=LazyRuntime(NodeRuntime.start))
            ```
        """
        self._runtime = runtime or DEFAULT_RUNTIME
        self._policy = policy or EvaluationPolicy()

    def run(self, request: ExecutionRequest) -> RunResult:
        """Evaluate each test case in order against the submission.

        `request.timeout_ms` bounds runtime provisioning and each case; without
        it the policy's load and run budgets apply.

        Example:
            ```python
            result = executor.run(ExecutionRequest(source=code, language="javascript", function_name="add", test_cases=cases))
            ```
        """
        load_timeout_ms = self._policy.runtime_load_timeout_ms
        case_timeout_ms = self._policy.timeout_ms
        if request.timeout_ms is not None:
            load_timeout_ms = case_timeout_ms = int(request.timeout_ms)
        try:
            runtime = self._runtime.acquire(timeout_ms=load_timeout_ms)
        except RuntimeUnavailableError as exc:
            logger.warning("JavaScript runtime unavailable: %s", exc)
            return RunResult.harness_failure(str(exc), len(request.test_cases))

        results: list[CaseResult] = []
        for index, case in enumerate(request.test_cases, start=1):
            program = build_case_program(request.source, request.function_name, case.input)
            try:
                actual = strip_quotes(runtime.evaluate(program, timeout_ms=case_timeout_ms))
            except RuntimeEvaluationError as exc:
                if isinstance(exc, RuntimeFault):
                    self._runtime.invalidate(runtime)
                results.append(
                    CaseResult(
                        input=case.input,
                        expected=case.expected,
                        actual=f"Error: {exc}",
                        ok=False,
                        description=case.label(index),
                    )
                )
                continue
            results.append(
                CaseResult(
                    input=case.input,
                    expected=case.expected,
                    actual=actual,
                    ok=actual == strip_quotes(case.expected),
                    description=case.label(index),
                )
            )
        return RunResult.from_cases(results)
