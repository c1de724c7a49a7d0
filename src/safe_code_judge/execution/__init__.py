from .capabilities import ExecutorCapabilities, capabilities_for_language
from .engine import Executor
from .javascript_executor import JavaScriptExecutor
from .runtime import DEFAULT_RUNTIME, LazyRuntime, NodeRuntime
from .script_executor import IsolatedScriptExecutor

__all__ = [
    "DEFAULT_RUNTIME",
    "Executor",
    "ExecutorCapabilities",
    "IsolatedScriptExecutor",
    "JavaScriptExecutor",
    "LazyRuntime",
    "NodeRuntime",
    "capabilities_for_language",
]
