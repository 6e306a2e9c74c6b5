import ast
import unittest
from pathlib import Path
from typing import Iterator, Set


REPO_ROOT = Path(__file__).resolve().parents[1]

# Import direction: shipkit <- tools <- shipline <- cli
FORBIDDEN_IMPORTS = {
    "shipkit": {"tools", "shipline", "cli"},
    "tools": {"shipline", "cli"},
    "shipline": {"cli"},
}


def python_sources(package: str) -> Iterator[Path]:
    for p in sorted((REPO_ROOT / package).rglob("*.py")):
        if "__pycache__" not in p.parts:
            yield p


def imported_roots(py_file: Path) -> Set[str]:
    """Top-level names of every absolute import in ``py_file``."""
    tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
    roots: Set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            roots.update(alias.name.split(".", 1)[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            roots.add(node.module.split(".", 1)[0])
    return roots


class TestDependencyBoundaries(unittest.TestCase):
    def test_dependency_direction_is_enforced(self) -> None:
        for package, forbidden in FORBIDDEN_IMPORTS.items():
            for py_file in python_sources(package):
                with self.subTest(module=str(py_file.relative_to(REPO_ROOT))):
                    self.assertEqual(set(), imported_roots(py_file) & forbidden)

    def test_stages_spawn_processes_only_through_the_runner(self) -> None:
        offenders = [
            str(p.relative_to(REPO_ROOT))
            for p in python_sources("shipline")
            if "subprocess" in imported_roots(p)
        ]
        self.assertEqual([], offenders)

    def test_every_package_is_checked(self) -> None:
        for package in FORBIDDEN_IMPORTS:
            self.assertTrue(list(python_sources(package)), package)


if __name__ == "__main__":
    unittest.main()
