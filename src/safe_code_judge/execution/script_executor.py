from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import Any

from ..models import CaseResult, ExecutionRequest, RunResult
from ..policy import EvaluationPolicy

logger = logging.getLogger(__name__)

PROGRAM_FILENAME = "submission.py"


def _worker_path() -> Path:
    """Return the absolute path to the worker module file.

    Example:
        ```python
        path = _worker_path()
        ```
    """
    return Path(__file__).resolve().parents[1] / "worker.py"


def _child_env() -> dict[str, str]:
    """Return the minimal environment handed to the worker process.

    Example:
        ```python
        env = _child_env()
        ```
    """
    env = {"PATH": "/usr/bin:/bin:/usr/local/bin", "LC_ALL": "C.UTF-8"}
    for name in ("LD_LIBRARY_PATH", "SYSTEMROOT"):
        if name in os.environ:
            env[name] = os.environ[name]
    return env


def _fault_message(returncode: int, stderr: str) -> str:
    """Describe a worker that exited without a usable response.

    Example:
        ```python
        _fault_message(-9, "")  # "Worker terminated by signal 9"
        ```
    """
    if returncode < 0:
        return f"Worker terminated by signal {-returncode}"
    lines = [line for line in stderr.strip().splitlines() if line.strip()]
    if lines:
        return lines[-1]
    return f"Worker exited with code {returncode} without a response"


class IsolatedScriptExecutor:
    """Run Python submissions in a separate, restricted worker process.

    Each call gets its own process and its own temporary program directory;
    both are released on every exit path.

    Example:
        ```python
        executor = IsolatedScriptExecutor(EvaluationPolicy(timeout_ms=2_000))
        ```
    """

    def __init__(self, policy: EvaluationPolicy | None = None) -> None:
        """Initialize the executor with an optional policy.

        Example:
            ```python
            executor = IsolatedScriptExecutor()
            ```
        """
        self._policy = policy or EvaluationPolicy()

    @property
    def policy(self) -> EvaluationPolicy:
        """Return the policy applied to every run.

        Example:
            ```python
            executor.policy.timeout_ms
            ```
        """
        return self._policy

    def run(self, request: ExecutionRequest) -> RunResult:
        """Evaluate one request in a fresh worker process.

        Example:
            ```python
            result = executor.run(ExecutionRequest(source=code, language="python", function_name="add", test_cases=cases))
            ```
        """
        timeout_ms = self._policy.timeout_ms
        if request.timeout_ms is not None:
            timeout_ms = int(request.timeout_ms)
        total = len(request.test_cases)
        with tempfile.TemporaryDirectory(prefix="scj-") as workdir:
            program_path = Path(workdir) / PROGRAM_FILENAME
            program_path.write_text(request.source, encoding="utf-8")
            payload = {
                "program_path": str(program_path),
                "function_name": request.function_name,
                "test_cases": [
                    {
                        "input": case.input,
                        "expected": case.expected,
                        "description": case.label(index),
                    }
                    for index, case in enumerate(request.test_cases, start=1)
                ],
                "policy": self._policy.to_payload(),
            }
            outcome = self._execute(payload, workdir, timeout_ms)

        if outcome is None:
            logger.warning("Submission exceeded %s ms; worker killed", timeout_ms)
            return RunResult.timeout(request.test_cases, timeout_ms)
        stdout, stderr, returncode = outcome
        return self._interpret(stdout, stderr, returncode, total)

    def _execute(
        self, payload: dict[str, Any], workdir: str, timeout_ms: int
    ) -> tuple[str, str, int] | None:
        """Race the worker against the countdown; `None` means the countdown won.

        Example:
            ```python
            outcome = executor._execute(payload, "/tmp/scj-x", 10_000)
            ```
        """
        cmd = [sys.executable, "-I", str(_worker_path())]
        start = time.perf_counter()
        with subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            cwd=workdir,
            env=_child_env(),
        ) as process:
            try:
                stdout, stderr = process.communicate(
                    json.dumps(payload), timeout=timeout_ms / 1000
                )
            except subprocess.TimeoutExpired:
                process.kill()
                process.communicate()
                return None
            except BaseException:
                process.kill()
                process.communicate()
                raise
        logger.debug(
            "Worker pid=%s exited with %s after %.1f ms",
            process.pid,
            process.returncode,
            (time.perf_counter() - start) * 1000,
        )
        return stdout, stderr, process.returncode

    def _interpret(self, stdout: str, stderr: str, returncode: int, total: int) -> RunResult:
        """Turn the worker's message, or its absence, into a run result.

        Example:
            ```python
            result = executor._interpret('{"success": true, "results": []}', "", 0, 0)
            ```
        """
        raw = stdout.strip()
        if not raw:
            error = _fault_message(returncode, stderr)
            logger.warning("Worker fault: %s", error)
            return RunResult.harness_failure(error, total)
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Worker returned invalid JSON (exit code %s)", returncode)
            return RunResult.harness_failure("Worker returned invalid JSON", total)
        if not isinstance(parsed, dict):
            return RunResult.harness_failure("Worker returned invalid JSON", total)

        if not parsed.get("success"):
            return RunResult.harness_failure(
                str(parsed.get("error") or "Worker execution error"), total
            )
        results = [CaseResult.from_dict(item) for item in parsed.get("results", [])]
        return RunResult.from_cases(results)
