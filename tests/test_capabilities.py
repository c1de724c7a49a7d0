from safe_code_judge.execution.capabilities import capabilities_for_language
from safe_code_judge.runner import LANGUAGE_ALIASES


def test_python_executor_is_isolated_and_time_bounded() -> None:
    python = capabilities_for_language("python")

    assert python.isolated_process
    assert python.enforces_timeout
    assert python.structural_equality
    assert not python.cached_runtime


def test_javascript_executor_uses_cached_runtime() -> None:
    javascript = capabilities_for_language("javascript")

    assert javascript.cached_runtime
    assert not javascript.isolated_process
    assert javascript.enforces_timeout
    assert not javascript.structural_equality


def test_every_alias_maps_to_a_known_language() -> None:
    for language in set(LANGUAGE_ALIASES.values()):
        caps = capabilities_for_language(language)
        assert caps.isolated_process or caps.cached_runtime


def test_unknown_language_advertises_nothing() -> None:
    caps = capabilities_for_language("cobol")
    assert not any((caps.isolated_process, caps.enforces_timeout, caps.structural_equality, caps.cached_runtime))
