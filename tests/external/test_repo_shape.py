from __future__ import annotations

from pathlib import Path


_README_ANCHORS = (
    # One-line summary
    "reactivex observable wrappers",
    # Quick start flags
    "--catalog",
    "--output-dir",
    "--list-types",
    "--root",
    # Output table
    "_observable_extensions.py",
    "_builtin_observables.py",
    # Testing instructions
    "pytest",
)


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def test_required_project_files_exist() -> None:
    tool_root = _tool_root()
    required_paths = {
        "obsgen.py",
        "pyproject.toml",
        "README.md",
        "obsrt/__init__.py",
        "obsrt/cancellation.py",
        "obsrt/host.py",
        "obsrt/streams.py",
        "tests/conftest.py",
        "tests/fixtures/widgets_catalog.xml",
        "tests/external/test_external_cli.py",
    }

    missing = sorted(path for path in required_paths if not (tool_root / path).exists())
    assert missing == []


def test_generated_output_is_not_committed() -> None:
    tool_root = _tool_root()

    assert not (tool_root / "generated").exists()
    assert list(tool_root.glob("*_observable_extensions.py")) == []
    assert list(tool_root.glob("*_builtin_observables.py")) == []


def test_readme_includes_quick_start_and_output_table() -> None:
    readme = _tool_root() / "README.md"
    assert readme.exists(), "README.md must exist"
    content = readme.read_text(encoding="utf-8")
    missing = [anchor for anchor in _README_ANCHORS if anchor not in content]
    assert missing == [], f"README.md missing required anchors: {missing}"
