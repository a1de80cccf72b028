import argparse
import sys
import xml.etree.ElementTree as ET
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import obsgen  # noqa: E402


WIDGETS = obsgen.TypeReference("IButton", "widgets")


class CallbackHandler:
    """Stand-in for a handler type with a single-callback constructor."""

    def __init__(self, callback: Callable[..., Any]) -> None:
        self.callback = callback

    def __call__(self, *args: Any) -> None:
        self.callback(*args)


class FakeEventOwner:
    """Object exposing add_<event> / remove_<event> accessors for any event."""

    def __init__(self) -> None:
        self.handlers: dict[str, list[Any]] = defaultdict(list)

    def __getattr__(self, attribute: str) -> Callable[[Any], None]:
        if attribute.startswith("add_"):
            return lambda handler: self.handlers[attribute[4:]].append(handler)
        if attribute.startswith("remove_"):
            return lambda handler: self.handlers[attribute[7:]].remove(handler)
        raise AttributeError(attribute)

    def raise_event(self, event: str, *args: Any) -> None:
        for handler in list(self.handlers[event]):
            handler(*args)


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    catalog = tmp_path / "catalog.xml"
    catalog.write_text("<catalog />\n", encoding="utf-8")
    return {
        "catalog": catalog,
        "output_dir": tmp_path / "out",
    }


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "catalog": existing_paths["catalog"],
            "root": "",
            "output_dir": None,
            "jobs": None,
            "list_types": False,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_catalog_root() -> Callable[[str], ET.Element]:
    def _make_catalog_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<catalog>{inner_xml}</catalog>")

    return _make_catalog_root


@pytest.fixture
def make_event() -> Callable[..., obsgen.EventDeclaration]:
    def _make_event(
        name: str = "Pressed",
        params: tuple[tuple[str, str], ...] = (),
        *,
        owner: obsgen.TypeReference = WIDGETS,
        delegate: str = "collections.abc.Callable",
        callback_constructor: bool = False,
        add: str | None = "default",
        remove: str | None = "default",
        declaring_type: obsgen.TypeReference | None = None,
        fixed: bool = True,
    ) -> obsgen.EventDeclaration:
        snake = obsgen.to_snake_case(name)
        parameters = [
            obsgen.Parameter(param_name, obsgen.parse_type_reference(param_type))
            for param_name, param_type in params
        ]
        return obsgen.EventDeclaration(
            owner=owner,
            name=name,
            add_accessor=f"add_{snake}" if add == "default" else add,
            remove_accessor=f"remove_{snake}" if remove == "default" else remove,
            signature=obsgen.make_signature(
                obsgen.parse_type_reference(delegate),
                parameters,
                callback_constructor=callback_constructor,
                fixed=fixed,
            ),
            declaring_type=declaring_type,
        )

    return _make_event


@pytest.fixture
def fake_widgets(monkeypatch: pytest.MonkeyPatch) -> ModuleType:
    """Register importable `widgets` and `widgets.signals` modules."""
    widgets = ModuleType("widgets")
    signals = ModuleType("widgets.signals")
    signals.ValueHandler = CallbackHandler
    signals.MoveHandler = CallbackHandler
    widgets.signals = signals
    monkeypatch.setitem(sys.modules, "widgets", widgets)
    monkeypatch.setitem(sys.modules, "widgets.signals", signals)
    return widgets


@pytest.fixture
def load_generated(fake_widgets: ModuleType) -> Callable[[str], dict[str, Any]]:
    """Execute generated module text and return its namespace."""

    def _load_generated(text: str) -> dict[str, Any]:
        namespace: dict[str, Any] = {"__name__": "generated_under_test"}
        exec(compile(text, "<generated>", "exec"), namespace)
        return namespace

    return _load_generated


@pytest.fixture
def event_owner() -> FakeEventOwner:
    return FakeEventOwner()
