from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExecutorCapabilities:
    """Capability flags advertised by an executor.

    Example:
        ```python
        caps = ExecutorCapabilities(True, True, True, False)
        ```
    """

    isolated_process: bool
    enforces_timeout: bool
    structural_equality: bool
    cached_runtime: bool


def capabilities_for_language(language: str) -> ExecutorCapabilities:
    """Return capability flags for a canonical language name.

    Example:
        ```python
        caps = capabilities_for_language("javascript")
        ```
    """
    if language == "python":
        return ExecutorCapabilities(
            isolated_process=True,
            enforces_timeout=True,
            structural_equality=True,
            cached_runtime=False,
        )
    if language == "javascript":
        return ExecutorCapabilities(
            isolated_process=False,
            enforces_timeout=True,
            structural_equality=False,
            cached_runtime=True,
        )
    return ExecutorCapabilities(False, False, False, False)
