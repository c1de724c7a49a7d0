import ast
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"


def _functions(package: str) -> list[tuple[str, ast.FunctionDef | ast.AsyncFunctionDef]]:
    found = []
    for path in sorted((SRC / package).rglob("*.py")):
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                found.append((f"{path.relative_to(SRC)}:{node.lineno}:{node.name}", node))
    return found


@pytest.mark.parametrize("package", ["safe_code_judge", "scj"])
def test_public_and_nested_functions_document_an_example(package: str) -> None:
    functions = _functions(package)
    assert functions, f"no functions found under {package}"

    undocumented = [where for where, node in functions if not ast.get_docstring(node)]
    without_example = [
        where for where, node in functions if ast.get_docstring(node) and "Example:" not in ast.get_docstring(node)
    ]

    assert undocumented == [], "Missing docstrings:\n" + "\n".join(undocumented)
    assert without_example == [], "Docstrings without an Example section:\n" + "\n".join(without_example)


def test_worker_script_is_covered() -> None:
    names = {node.name for _, node in _functions("safe_code_judge")}
    assert {"guarded_import", "_module_view", "_run_cases"} <= names
