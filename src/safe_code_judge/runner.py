from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .execution.engine import Executor
from .execution.javascript_executor import JavaScriptExecutor
from .execution.script_executor import IsolatedScriptExecutor
from .models import ExecutionRequest, RunResult, TestCase
from .policy import EvaluationPolicy, resolve_policy

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "python"
LANGUAGE_ALIASES = {
    "python": "python",
    "py": "python",
    "python3": "python",
    "javascript": "javascript",
    "js": "javascript",
    "node": "javascript",
    "nodejs": "javascript",
    "mjs": "javascript",
}


def resolve_language(language: str | None) -> str:
    """Map a case-insensitive language identifier to its canonical name.

    Unknown or missing identifiers resolve to the isolated Python executor.

    Example:
        ```python
        resolve_language("JS")  # "javascript"
        ```
    """
    normalized = (language or "").strip().lower()
    return LANGUAGE_ALIASES.get(normalized, DEFAULT_LANGUAGE)


def default_executors(policy: EvaluationPolicy) -> dict[str, Executor]:
    """Build the executor table for one policy.

    Example:
        ```python
        table = default_executors(EvaluationPolicy())
        ```
    """
    return {
        "python": IsolatedScriptExecutor(policy),
        "javascript": JavaScriptExecutor(policy=policy),
    }


def evaluate(
    code: str,
    language: str | None,
    test_cases: Iterable[TestCase | Mapping[str, Any]],
    function_name: str,
    timeout_ms: int | None = None,
    *,
    policy: EvaluationPolicy | None = None,
    policy_file: str | None = None,
    executors: Mapping[str, Executor] | None = None,
) -> RunResult:
    """Run a submission against its test cases with the matching executor.

    Evaluation problems come back as data: harness failures and timeouts set
    `RunResult.error`, single-case failures live in that case's result. An
    unreadable policy file is a harness failure too; only passing both
    `policy` and `policy_file` raises.

    Example:
        ```python
        result = evaluate("def add(a, b):\\n    return a + b", "python", [{"input": "2, 3", "expected": "5"}], "add")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")

    raw_cases: list[TestCase | Mapping[str, Any]] = []
    try:
        raw_cases = list(test_cases or [])
        resolved_policy = resolve_policy(policy, policy_file)
        canonical = resolve_language(language)
        table = executors if executors is not None else default_executors(resolved_policy)
        request = ExecutionRequest(
            source=code,
            language=canonical,
            function_name=function_name,
            test_cases=[TestCase.coerce(case) for case in raw_cases],
            timeout_ms=timeout_ms,
        )
        executor = table[canonical]
        logger.debug(
            "Dispatching %d case(s) for %r to %s",
            len(request.test_cases),
            function_name,
            type(executor).__name__,
        )
        return executor.run(request)
    except Exception as exc:
        logger.exception("Evaluation failed outside the executor")
        return RunResult.harness_failure(str(exc) or type(exc).__name__, len(raw_cases))


def evaluate_dict(
    code: str,
    language: str | None,
    test_cases: Iterable[TestCase | Mapping[str, Any]],
    function_name: str,
    timeout_ms: int | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """Same as `evaluate`, returning the plain dictionary form.

    Example:
        ```python
        payload = evaluate_dict(code, "js", cases, "add")
        ```
    """
    return evaluate(code, language, test_cases, function_name, timeout_ms, **kwargs).to_dict()
