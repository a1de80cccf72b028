import ast
from collections.abc import Callable

import pytest

import obsgen

OWNER = obsgen.TypeReference("IButton", "widgets")


@pytest.mark.parametrize(
    ("owner", "kind", "expected"),
    [
        (OWNER, obsgen.ArtifactKind.WRAPPERS, "button_observable_extensions.py"),
        (OWNER, obsgen.ArtifactKind.BINDERS, "button_builtin_observables.py"),
        (
            obsgen.TypeReference("IRangeSlider", "widgets.range"),
            obsgen.ArtifactKind.WRAPPERS,
            "range_slider_observable_extensions.py",
        ),
        (
            obsgen.TypeReference("Icon", "widgets"),
            obsgen.ArtifactKind.BINDERS,
            "icon_builtin_observables.py",
        ),
        (
            obsgen.TypeReference("HTTPClient", "net"),
            obsgen.ArtifactKind.WRAPPERS,
            "http_client_observable_extensions.py",
        ),
    ],
)
def test_artifact_filename(
    owner: obsgen.TypeReference, kind: obsgen.ArtifactKind, expected: str
) -> None:
    assert obsgen.artifact_filename(owner, kind) == expected


def test_file_header_has_no_volatile_content() -> None:
    header = obsgen.format_file_header(OWNER, obsgen.ArtifactKind.WRAPPERS)

    assert header == [
        obsgen._HEADER_BORDER,
        "# | Observable extensions for widgets.IButton",
        "# | Generated by observable-bindings-gen",
        "# | Do not edit: regenerate from the type catalog",
        obsgen._HEADER_BORDER,
    ]


def test_assemble_artifact_source_layout() -> None:
    text = obsgen.assemble_artifact_source(
        OWNER,
        obsgen.ArtifactKind.BINDERS,
        ("reactivex", "widgets"),
        ["x = 1", "y = 2"],
    )
    lines = text.split("\n")

    assert lines[1] == "# | Builtin observables for widgets.IButton"
    assert lines[5] == ""
    assert lines[6] == "from __future__ import annotations"
    assert lines[7] == ""
    assert lines[8:10] == ["import reactivex", "import widgets"]
    assert lines[10:12] == ["", ""]
    assert "x = 1\n\n\ny = 2\n" in text
    assert text.endswith("y = 2\n")
    assert not text.endswith("\n\n")


def test_assemble_artifact_source_without_fragments_ends_after_imports() -> None:
    text = obsgen.assemble_artifact_source(
        OWNER, obsgen.ArtifactKind.WRAPPERS, ("reactivex",), []
    )

    assert text.endswith("import reactivex\n")


def test_assembled_wrapper_module_validates(
    make_event: Callable[..., obsgen.EventDeclaration],
) -> None:
    events = [
        make_event("Pressed"),
        make_event("Toggled", (("pressed", "bool"),)),
        make_event(
            "Moved",
            (("x", "int"), ("y", "int")),
            delegate="widgets.signals.MoveHandler",
            callback_constructor=True,
        ),
    ]
    text = obsgen.assemble_artifact_source(
        OWNER,
        obsgen.ArtifactKind.WRAPPERS,
        obsgen.collect_required_namespaces(OWNER, events),
        obsgen.generate_event_wrappers(OWNER, events),
    )

    assert obsgen.validate_artifact_text(text, "button_observable_extensions.py") is None


def test_validate_artifact_text_reports_first_error_location() -> None:
    error = obsgen.validate_artifact_text("x = 1\ndef broken(:\n    pass\n", "broken.py")

    assert error is not None
    assert "line 2" in error


def test_validate_artifact_text_rejects_null_bytes() -> None:
    assert obsgen.validate_artifact_text("x = 1\0\n") is not None


def test_validate_artifact_text_accepts_empty_module() -> None:
    assert obsgen.validate_artifact_text("") is None


@pytest.mark.parametrize("text", ["pressed", 'say "hi"', "back\\slash", "line\nbreak\ttab", "überlauf"])
def test_string_literal_round_trips_through_the_parser(text: str) -> None:
    literal = obsgen._string_literal(text)

    assert literal.startswith('"')
    assert ast.literal_eval(literal) == text
