from .execution.javascript_executor import JavaScriptExecutor
from .execution.runtime import LazyRuntime, NodeRuntime
from .execution.script_executor import IsolatedScriptExecutor
from .models import CaseResult, ExecutionRequest, RunResult, TestCase
from .policy import EvaluationPolicy
from .runner import evaluate, evaluate_dict, resolve_language

__all__ = [
    "CaseResult",
    "EvaluationPolicy",
    "ExecutionRequest",
    "IsolatedScriptExecutor",
    "JavaScriptExecutor",
    "LazyRuntime",
    "NodeRuntime",
    "RunResult",
    "TestCase",
    "evaluate",
    "evaluate_dict",
    "resolve_language",
]
