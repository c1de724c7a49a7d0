from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

BUNDLED_POLICY = Path(__file__).with_name("default_policy.toml")

_NAME_LISTS = ("allowed_imports", "blocked_imports", "allowed_builtins", "blocked_builtins")

# Used only when the bundled TOML is missing from the installation.
_FALLBACK: dict[str, Any] = {
    "mode": "allow",
    "timeout_ms": 10_000,
    "runtime_load_timeout_ms": 15_000,
    "allowed_imports": ["bisect", "collections", "functools", "heapq", "itertools", "math"],
    "allowed_builtins": [
        "abs", "all", "any", "bool", "dict", "enumerate", "filter", "float",
        "int", "isinstance", "len", "list", "map", "max", "min", "print",
        "range", "repr", "reversed", "set", "sorted", "str", "sum", "tuple", "zip",
    ],
    "blocked_imports": ["ctypes", "importlib", "os", "socket", "subprocess", "sys"],
    "blocked_builtins": ["breakpoint", "compile", "eval", "exec", "open"],
}


def _policy_table(path: Path) -> dict[str, Any]:
    """Return the `[policy]` table of a TOML file, or the whole document.

    A missing file yields an empty table.

    Example:
        ```python
        table = _policy_table(Path("policy.toml"))
        ```
    """
    if not path.is_file():
        return {}
    document = tomllib.loads(path.read_text(encoding="utf-8"))
    table = document.get("policy", document)
    if not isinstance(table, dict):
        raise ValueError("Policy config must be a TOML table")
    return table


def _names(value: Any, key: str) -> list[str]:
    """Check that a policy entry is a list of names and copy it.

    Example:
        ```python
        _names(["math"], "allowed_imports")  # ["math"]
        ```
    """
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"'{key}' must be a list of strings")
    return list(value)


_DEFAULTS: dict[str, Any] = {**_FALLBACK, **_policy_table(BUNDLED_POLICY)}
DEFAULT_TIMEOUT_MS = int(_DEFAULTS["timeout_ms"])
DEFAULT_RUNTIME_LOAD_TIMEOUT_MS = int(_DEFAULTS["runtime_load_timeout_ms"])


def _default_names(key: str) -> list[str]:
    """Return a fresh copy of a bundled name list.

    Example:
        ```python
        _default_names("allowed_imports")
        ```
    """
    return _names(_DEFAULTS.get(key), key)


@dataclass(slots=True)
class EvaluationPolicy:
    """What a submission may import and call, and how long it may take.

    `timeout_ms` bounds an isolated run. `runtime_load_timeout_ms` bounds
    provisioning of the shared JavaScript runtime.

    Example:
        ```python
        policy = EvaluationPolicy(timeout_ms=2_000, allowed_imports=["math"])
        ```
    """

    mode: str = str(_DEFAULTS["mode"])
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    runtime_load_timeout_ms: int = DEFAULT_RUNTIME_LOAD_TIMEOUT_MS
    allowed_imports: list[str] = field(default_factory=lambda: _default_names("allowed_imports"))
    blocked_imports: list[str] = field(default_factory=lambda: _default_names("blocked_imports"))
    allowed_builtins: list[str] = field(default_factory=lambda: _default_names("allowed_builtins"))
    blocked_builtins: list[str] = field(default_factory=lambda: _default_names("blocked_builtins"))
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Reject unknown modes and non-positive budgets.

        Example:
            ```python
            EvaluationPolicy(mode="restrict")
            ```
        """
        if self.mode not in ("allow", "restrict"):
            raise ValueError("mode must be 'allow' or 'restrict'")
        for name in ("timeout_ms", "runtime_load_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive number of milliseconds")

    @classmethod
    def from_mapping(cls, table: Mapping[str, Any], config_path: str | None = None) -> "EvaluationPolicy":
        """Build a policy from a parsed table, filling gaps from the bundled defaults.

        Example:
            ```python
            policy = EvaluationPolicy.from_mapping({"mode": "restrict", "timeout_ms": 500})
            ```
        """
        merged = {**_DEFAULTS, **table}
        lists = {key: _names(merged.get(key), key) for key in _NAME_LISTS}
        return cls(
            mode=str(merged["mode"]),
            timeout_ms=int(merged["timeout_ms"]),
            runtime_load_timeout_ms=int(merged["runtime_load_timeout_ms"]),
            config_path=config_path,
            **lists,
        )

    @classmethod
    def from_file(cls, config_path: str) -> "EvaluationPolicy":
        """Load a policy TOML file; a missing file gives the defaults.

        Example:
            ```python
            policy = EvaluationPolicy.from_file("policy.toml")
            ```
        """
        return cls.from_mapping(_policy_table(Path(config_path)), config_path=config_path)

    def to_payload(self) -> dict[str, Any]:
        """Return the part of the policy the worker enforces.

        Example:
            ```python
            payload = EvaluationPolicy().to_payload()
            ```
        """
        payload: dict[str, Any] = {"mode": self.mode}
        for key in _NAME_LISTS:
            payload[key] = list(getattr(self, key))
        return payload


def resolve_policy(
    policy: EvaluationPolicy | None, policy_file: str | None
) -> EvaluationPolicy:
    """Pick the policy for one evaluation call.

    Example:
        ```python
        policy = resolve_policy(None, "policy.toml")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")
    if policy_file is not None:
        return EvaluationPolicy.from_file(policy_file)
    return policy if policy is not None else EvaluationPolicy()
