from __future__ import annotations

from typing import Protocol

from ..models import ExecutionRequest, RunResult


class Executor(Protocol):
    def run(self, request: ExecutionRequest) -> RunResult:
        """Evaluate one request and return its verdict as data.

        Implementations convert every failure into a `RunResult`; they do not
        raise for problems in the submission or its runtime.

        Example:
            ```python
            result = executor.run(ExecutionRequest(source=code, language="python", function_name="add", test_cases=cases))
            ```
        """
        ...
