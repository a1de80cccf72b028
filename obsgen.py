"""Observable bindings generator.

Generates reactive wrappers for event-bearing types described in a type
catalog. Every eligible event becomes an `on_<event>_as_observable` function
returning a reactivex Observable; types marked extendable additionally get
a `<Type>BuiltinObservables` mixin whose properties push values back into
the type's native `emit_signal` mechanism.

Usage:
    python obsgen.py --catalog widgets.xml --output-dir generated
    python obsgen.py --catalog widgets.xml --list-types
"""

import argparse
import ast
import keyword
import re
import sys
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Protocol

PROJECT_ROOT = Path(__file__).parent
DEFAULT_CATALOG = PROJECT_ROOT / "catalog.xml"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "generated"
GENERATOR_NAME = "observable-bindings-gen"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    catalog: Path
    root_path: str
    output_dir: Path
    jobs: int


@dataclass(frozen=True)
class ListConfig:
    catalog: Path
    root_path: str


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INVALID_JOBS",
    "INVALID_ROOT",
    "CONFLICT_LIST_GENERATE",
}
_ROOT_PATH_RE = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_root_path(raw: str) -> str:
    if raw == "" or _ROOT_PATH_RE.match(raw):
        return raw
    raise ConfigError(
        "INVALID_ROOT",
        f"Invalid root namespace: {raw}",
        "Pass a dotted module path such as widgets or widgets.controls.",
    )


def validate_jobs(jobs: int) -> int:
    if jobs >= 1:
        return jobs
    raise ConfigError(
        "INVALID_JOBS",
        f"--jobs must be at least 1, got {jobs}",
        "Use --jobs 1 for a sequential pass.",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate reactive observable bindings from a type catalog"
    )

    parser.add_argument("--catalog", type=Path, default=DEFAULT_CATALOG)
    parser.add_argument("--root", type=str, default="")
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--jobs", type=int, default=None)
    parser.add_argument("--list-types", action="store_true", default=False)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | ListConfig:
    root_path = validate_root_path(args.root)
    catalog_hint = "Pass an existing catalog file: --catalog /path/to/catalog.xml"

    if args.list_types:
        if args.output_dir is not None or args.jobs is not None:
            raise ConfigError(
                "CONFLICT_LIST_GENERATE",
                "--list-types cannot be combined with --output-dir or --jobs.",
                "Run --list-types on its own, then generate in a separate call.",
            )
        catalog = validate_path_exists(args.catalog, "--catalog", catalog_hint)
        return ListConfig(catalog=catalog, root_path=root_path)

    jobs = validate_jobs(1 if args.jobs is None else args.jobs)
    catalog = validate_path_exists(args.catalog, "--catalog", catalog_hint)
    output_dir = DEFAULT_OUTPUT_DIR if args.output_dir is None else args.output_dir

    return GenerateConfig(
        catalog=catalog,
        root_path=root_path,
        output_dir=output_dir,
        jobs=jobs,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | ListConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

STREAM_TYPE = "reactivex.Observable"
UNIT_TYPE = "obsrt.streams.Unit"
SUBJECT_TYPE = "obsrt.streams.Subject"
CANCELLATION_TOKEN_TYPE = "obsrt.cancellation.CancellationToken"

BASELINE_NAMESPACES: tuple[str, ...] = (
    "obsrt.cancellation",
    "obsrt.host",
    "obsrt.streams",
    "reactivex",
)
"""Namespaces every generated unit imports regardless of its events."""

BUILTIN_NAMESPACES = frozenset({"", "builtins"})

CALLABLE_DELEGATES = frozenset({"collections.abc.Callable", "typing.Callable"})
"""Generic handler types whose parameter list is declared on the event itself."""

GENERATED_LOCALS = frozenset(
    {
        "cancellation_token",
        "convert",
        "h",
        "handler",
        "instance",
        "self",
        "subject",
        "value",
    }
)
"""Names the generated code binds itself; parameters must not shadow them."""

RESERVED_WORDS = frozenset(keyword.kwlist) | {"__debug__"} | GENERATED_LOCALS

MAX_SIGNAL_PARAMETERS = 5


# ===--- Type references ---=== #


class CatalogError(Exception):
    """Raised for catalog content that cannot be turned into metadata."""


@dataclass(frozen=True)
class TypeReference:
    """A type named by module path, optionally with generic arguments.

    Builtin types (int, str, tuple, ...) carry an empty namespace and are
    displayed bare. Everything else displays fully qualified, which is why
    generated modules only ever need plain `import <namespace>` lines.
    """

    name: str
    namespace: str = ""
    type_arguments: tuple["TypeReference", ...] = ()

    @property
    def is_builtin(self) -> bool:
        return self.namespace in BUILTIN_NAMESPACES

    @property
    def is_generic(self) -> bool:
        return bool(self.type_arguments)

    @property
    def qualified_name(self) -> str:
        if self.is_builtin:
            return self.name
        return f"{self.namespace}.{self.name}"

    def display(self) -> str:
        if not self.type_arguments:
            return self.qualified_name
        args = ", ".join(arg.display() for arg in self.type_arguments)
        return f"{self.qualified_name}[{args}]"


_TYPE_TOKEN_RE = re.compile(r"\s*(?:([A-Za-z_][\w.]*)|([\[\],]))")


def _tokenize_type(text: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    stripped = text.rstrip()
    while pos < len(stripped):
        match = _TYPE_TOKEN_RE.match(stripped, pos)
        if match is None:
            raise CatalogError(f"Invalid type reference: {text!r}")
        tokens.append(match.group(1) or match.group(2))
        pos = match.end()
    return tokens


def _parse_type_tokens(
    tokens: list[str], pos: int, text: str
) -> tuple[TypeReference, int]:
    if pos >= len(tokens) or tokens[pos] in "[],":
        raise CatalogError(f"Invalid type reference: {text!r}")
    dotted = tokens[pos]
    if dotted.endswith(".") or ".." in dotted:
        raise CatalogError(f"Invalid type reference: {text!r}")
    namespace, _, name = dotted.rpartition(".")
    pos += 1

    arguments: list[TypeReference] = []
    if pos < len(tokens) and tokens[pos] == "[":
        pos += 1
        while True:
            argument, pos = _parse_type_tokens(tokens, pos, text)
            arguments.append(argument)
            if pos < len(tokens) and tokens[pos] == ",":
                pos += 1
                continue
            if pos < len(tokens) and tokens[pos] == "]":
                pos += 1
                break
            raise CatalogError(f"Invalid type reference: {text!r}")

    if namespace == "builtins":
        namespace = ""
    return TypeReference(name, namespace, tuple(arguments)), pos


def parse_type_reference(text: str) -> TypeReference:
    """Parse `pkg.mod.Name[arg, ...]` notation into a TypeReference.

    Raises:
        CatalogError: If text is empty or not well formed.
    """
    tokens = _tokenize_type(text)
    reference, pos = _parse_type_tokens(tokens, 0, text)
    if pos != len(tokens):
        raise CatalogError(f"Invalid type reference: {text!r}")
    return reference


# ===--- Signatures and events ---=== #


class SignatureShape(Enum):
    ZERO_ARG = "zero-arg"
    SINGLE_ARG = "single-arg"
    MULTI_ARG = "multi-arg"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: TypeReference | None


@dataclass(frozen=True)
class DelegateSignature:
    """Invoke shape of an event's handler type.

    Attributes:
        delegate: The handler type, or None when the event's type is unknown.
        parameters: Invoke parameters in declaration order.
        shape: Classification assigned once by classify_signature.
        callback_constructor: True when the handler type has a public
            single-argument constructor taking a plain callback.
    """

    delegate: TypeReference | None
    parameters: tuple[Parameter, ...]
    shape: SignatureShape
    callback_constructor: bool = False

    @property
    def arity(self) -> int:
        return len(self.parameters)

    @property
    def is_resolved(self) -> bool:
        return self.shape is not SignatureShape.UNRESOLVED


UNRESOLVED_SIGNATURE = DelegateSignature(None, (), SignatureShape.UNRESOLVED)


def classify_signature(
    delegate: TypeReference | None,
    parameters: Sequence[Parameter],
    *,
    fixed: bool = True,
) -> SignatureShape:
    if delegate is None or not fixed:
        return SignatureShape.UNRESOLVED
    if any(p.type is None for p in parameters):
        return SignatureShape.UNRESOLVED
    if len(parameters) == 0:
        return SignatureShape.ZERO_ARG
    if len(parameters) == 1:
        return SignatureShape.SINGLE_ARG
    return SignatureShape.MULTI_ARG


def make_signature(
    delegate: TypeReference | None,
    parameters: Sequence[Parameter] = (),
    *,
    callback_constructor: bool = False,
    fixed: bool = True,
) -> DelegateSignature:
    shape = classify_signature(delegate, parameters, fixed=fixed)
    if shape is SignatureShape.UNRESOLVED:
        return UNRESOLVED_SIGNATURE
    return DelegateSignature(
        delegate=delegate,
        parameters=tuple(parameters),
        shape=shape,
        callback_constructor=callback_constructor,
    )


@dataclass(frozen=True)
class EventDeclaration:
    """One notification member as listed for an owner type.

    add_accessor / remove_accessor name the instance methods generated code
    calls; None or "" means the accessor is missing. declaring_type differs
    from owner for events inherited or re-exposed from another type.
    """

    owner: TypeReference
    name: str
    add_accessor: str | None
    remove_accessor: str | None
    signature: DelegateSignature
    declaring_type: TypeReference | None = None

    @property
    def has_add(self) -> bool:
        return bool(self.add_accessor)

    @property
    def has_remove(self) -> bool:
        return bool(self.remove_accessor)

    @property
    def is_declared_by_owner(self) -> bool:
        return self.declaring_type is None or self.declaring_type == self.owner


# ===--- Diagnostics ---=== #


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def is_failure(self) -> bool:
        return self in (Severity.ERROR, Severity.FATAL)


@dataclass(frozen=True)
class DiagnosticDescriptor:
    code: str
    severity: Severity
    title: str
    message_template: str


DIAGNOSTIC_CATALOG: Mapping[str, DiagnosticDescriptor] = MappingProxyType(
    {
        "OBS001": DiagnosticDescriptor(
            "OBS001",
            Severity.INFO,
            "Observe",
            "Found {count} event-bearing types under '{root}'",
        ),
        "OBS002": DiagnosticDescriptor(
            "OBS002",
            Severity.WARNING,
            "Too many signal parameters",
            "Signal '{event}' on type '{owner}' has more than "
            f"{MAX_SIGNAL_PARAMETERS} parameters and will be skipped.",
        ),
        "OBS998": DiagnosticDescriptor(
            "OBS998",
            Severity.ERROR,
            "Syntax error",
            "Generated code invalid in {filename}: {error}",
        ),
        "OBS999": DiagnosticDescriptor(
            "OBS999",
            Severity.FATAL,
            "Observable generator failed",
            "Generation failed for type '{owner}': {error}",
        ),
    }
)


@dataclass(frozen=True)
class DiagnosticLocation:
    owner: str
    event: str | None = None

    def __str__(self) -> str:
        if self.event is None:
            return self.owner
        return f"{self.owner}.{self.event}"


@dataclass(frozen=True)
class Diagnostic:
    code: str
    severity: Severity
    message: str
    location: DiagnosticLocation | None = None

    def __str__(self) -> str:
        text = f"{self.severity.value} {self.code}: {self.message}"
        if self.location is not None:
            text += f" [{self.location}]"
        return text


def make_diagnostic(
    code: str,
    location: DiagnosticLocation | None = None,
    catalog: Mapping[str, DiagnosticDescriptor] = DIAGNOSTIC_CATALOG,
    **fields: object,
) -> Diagnostic:
    descriptor = catalog[code]
    return Diagnostic(
        code=descriptor.code,
        severity=descriptor.severity,
        message=descriptor.message_template.format(**fields),
        location=location,
    )


class DiagnosticChannel(Protocol):
    def report(
        self,
        code: str,
        severity: Severity,
        message: str,
        location: DiagnosticLocation | None = None,
    ) -> None: ...


class CollectingDiagnostics:
    """DiagnosticChannel that keeps every report in memory, in order."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def report(
        self,
        code: str,
        severity: Severity,
        message: str,
        location: DiagnosticLocation | None = None,
    ) -> None:
        self.diagnostics.append(Diagnostic(code, severity, message, location))


class PrintingDiagnostics:
    """DiagnosticChannel printing info to stdout and everything else to stderr."""

    def report(
        self,
        code: str,
        severity: Severity,
        message: str,
        location: DiagnosticLocation | None = None,
    ) -> None:
        diagnostic = Diagnostic(code, severity, message, location)
        stream = sys.stdout if severity is Severity.INFO else sys.stderr
        print(f"  {diagnostic}", file=stream)


# ===--- Event filter ---=== #


def is_eligible_event(
    event: EventDeclaration, owner: TypeReference | None = None
) -> bool:
    if owner is not None and event.owner != owner:
        return False
    if not event.name or not wrapper_function_name(event).isidentifier():
        return False
    if not event.has_add or not event.has_remove:
        return False
    if not event.is_declared_by_owner:
        return False
    return event.signature.is_resolved


def filter_events(
    owner: TypeReference, events: Iterable[EventDeclaration]
) -> list[EventDeclaration]:
    """Return the events declared directly on owner that can be wrapped.

    Events whose names snake-case to one already kept (ValueChanged and
    value_changed) are dropped so generated members never shadow each
    other; the first one in input order wins. Exclusions are silent.
    Input order is preserved.
    """
    eligible: list[EventDeclaration] = []
    seen: set[str] = set()
    for event in events:
        if not is_eligible_event(event, owner):
            continue
        snake = to_snake_case(event.name)
        if snake in seen:
            continue
        seen.add(snake)
        eligible.append(event)
    return eligible


# ===--- Identifier sanitizer ---=== #


def sanitize_identifier(name: str) -> str:
    if name in RESERVED_WORDS:
        return name + "_"
    return name


def sanitize_parameter_names(names: Sequence[str]) -> tuple[str, ...]:
    """Sanitize a parameter list so every name is a unique, usable identifier.

    Blank or non-identifier names become `arg<index>`; reserved names get a
    trailing underscore; later duplicates get a numeric suffix.
    """
    result: list[str] = []
    seen: set[str] = set()
    for index, raw in enumerate(names):
        candidate = raw.strip() if raw else ""
        if not candidate.isidentifier():
            candidate = f"arg{index}"
        candidate = sanitize_identifier(candidate)
        unique = candidate
        suffix = 1
        while unique in seen:
            unique = f"{candidate}{suffix}"
            suffix += 1
        seen.add(unique)
        result.append(unique)
    return tuple(result)


# ===--- Naming ---=== #


def to_snake_case(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name).lower()


def short_name(owner: TypeReference) -> str:
    """Owner name without an interface-style `I` prefix (IButton -> Button)."""
    name = owner.name
    if len(name) > 1 and name[0] == "I" and name[1].isupper():
        return name[1:]
    return name


class ArtifactKind(str, Enum):
    WRAPPERS = "wrappers"
    BINDERS = "binders"


ARTIFACT_SUFFIXES: Mapping[ArtifactKind, str] = MappingProxyType(
    {
        ArtifactKind.WRAPPERS: "_observable_extensions.py",
        ArtifactKind.BINDERS: "_builtin_observables.py",
    }
)


def artifact_filename(owner: TypeReference, kind: ArtifactKind) -> str:
    return to_snake_case(short_name(owner)) + ARTIFACT_SUFFIXES[kind]


def wrapper_function_name(event: EventDeclaration) -> str:
    return f"on_{to_snake_case(event.name)}_as_observable"


def binder_class_name(owner: TypeReference) -> str:
    return f"{short_name(owner)}BuiltinObservables"


def _string_literal(text: str) -> str:
    escaped = text.encode("unicode_escape").decode("ascii").replace('"', '\\"')
    return f'"{escaped}"'


# ===--- Wrapper synthesis ---=== #


def stream_payload_type(signature: DelegateSignature) -> str:
    """Return the element type of the stream generated for signature."""
    if signature.shape is SignatureShape.ZERO_ARG:
        return UNIT_TYPE
    types = [p.type.display() for p in signature.parameters]
    if signature.shape is SignatureShape.SINGLE_ARG:
        return types[0]
    return f"tuple[{', '.join(types)}]"


def _adapter_lines(signature: DelegateSignature) -> list[str]:
    names = sanitize_parameter_names([p.name for p in signature.parameters])
    typed = ", ".join(
        f"{name}: {p.type.display()}" for name, p in zip(names, signature.parameters)
    )
    if signature.shape is SignatureShape.SINGLE_ARG:
        forwarded = names[0]
    else:
        forwarded = f"({', '.join(names)})"

    lines = [
        "    def convert(h):",
        f"        def handler({typed}) -> None:",
        f"            h({forwarded})",
        "",
    ]
    if signature.callback_constructor:
        lines.append(f"        return {signature.delegate.display()}(handler)")
    else:
        lines.append("        return handler")
    lines.append("")
    return lines


def generate_event_wrapper(
    event: EventDeclaration, owner: TypeReference | None = None
) -> str:
    """Return the `on_<event>_as_observable` function text for one event.

    Branches on arity:
        0   -> Observable[Unit], accessors wired straight into from_event.
        1   -> Observable[T]; the handler type's callback constructor is used
               as the conversion when available, else a forwarding adapter.
        k>1 -> Observable[tuple[T1, ..., Tk]]; a typed k-argument adapter
               packs its arguments into one tuple, wrapped in the handler
               type's constructor when available.

    Returns "" for ineligible events or unresolved signatures. Pure: the
    same input always produces the same text.
    """
    if not is_eligible_event(event, owner):
        return ""

    signature = event.signature
    target = event.owner if owner is None else owner
    add = f"instance.{event.add_accessor}"
    remove = f"instance.{event.remove_accessor}"

    lines = [
        f"def {wrapper_function_name(event)}(",
        f"    instance: {target.display()},",
        f"    cancellation_token: {CANCELLATION_TOKEN_TYPE} | None = None,",
        f") -> {STREAM_TYPE}[{stream_payload_type(signature)}]:",
    ]

    if signature.shape is SignatureShape.ZERO_ARG:
        lines.append("    return obsrt.streams.from_event(")
        conversion = None
    elif (
        signature.shape is SignatureShape.SINGLE_ARG and signature.callback_constructor
    ):
        lines.append("    return obsrt.streams.from_event_with(")
        conversion = signature.delegate.display()
    else:
        lines.extend(_adapter_lines(signature))
        lines.append("    return obsrt.streams.from_event_with(")
        conversion = "convert"

    if conversion is not None:
        lines.append(f"        {conversion},")
    lines.extend(
        [
            f"        {add},",
            f"        {remove},",
            "        cancellation_token,",
            "    )",
        ]
    )
    return "\n".join(lines)


def generate_event_wrappers(
    owner: TypeReference, events: Iterable[EventDeclaration]
) -> list[str]:
    wrappers = []
    for event in filter_events(owner, events):
        text = generate_event_wrapper(event, owner)
        if text:
            wrappers.append(text)
    return wrappers


# ===--- Namespace resolution ---=== #


def _add_namespace(namespaces: set[str], reference: TypeReference | None) -> None:
    if reference is not None and not reference.is_builtin:
        namespaces.add(reference.namespace)


def collect_required_namespaces(
    owner: TypeReference, events: Iterable[EventDeclaration]
) -> tuple[str, ...]:
    """Return the sorted, duplicate-free import set for one generated unit.

    Includes BASELINE_NAMESPACES, the owner's namespace, each event's
    handler-type namespace, each parameter type's namespace and, for generic
    parameter types, the namespaces of their immediate type arguments.
    Builtin namespaces are never included.
    """
    namespaces = set(BASELINE_NAMESPACES)
    _add_namespace(namespaces, owner)

    for event in events:
        signature = event.signature
        _add_namespace(namespaces, signature.delegate)
        for param in signature.parameters:
            _add_namespace(namespaces, param.type)
            if param.type is not None and param.type.is_generic:
                for argument in param.type.type_arguments:
                    _add_namespace(namespaces, argument)

    return tuple(sorted(namespaces))


# ===--- Bidirectional binder ---=== #


def native_emit_call(event: EventDeclaration) -> str:
    """Return the emit_signal call re-raising a pushed `value` natively."""
    args = [_string_literal(event.name.lower())]
    arity = event.signature.arity
    if arity == 1:
        args.append("value")
    elif arity > 1:
        args.extend(f"value[{index}]" for index in range(arity))
    return f"self.emit_signal({', '.join(args)})"


def generate_binder_property(event: EventDeclaration) -> str:
    """Return the lazily connected property members for one event.

    Connection state per instance: `_<event>_connected` is False until the
    first access of `on_<event>`, which creates one Subject, subscribes one
    permanent bridge into emit_signal, caches the Subject and flips the flag.
    Later accesses return the cached Subject.

    Returns "" for ineligible events and for arity above
    MAX_SIGNAL_PARAMETERS (the caller reports those).
    """
    if not is_eligible_event(event):
        return ""
    if event.signature.arity > MAX_SIGNAL_PARAMETERS:
        return ""

    snake = to_snake_case(event.name)
    connected = f"_{snake}_connected"
    cache = f"_on_{snake}"
    subject_type = f"{SUBJECT_TYPE}[{stream_payload_type(event.signature)}]"

    lines = [
        f"    {connected}: bool = False",
        f"    {cache}: {subject_type} | None = None",
        "",
        "    @property",
        f"    def on_{snake}(self) -> {subject_type}:",
        f"        if not self.{connected}:",
        f"            self._connect_{snake}()",
        f"        return self.{cache}",
        "",
        f"    def _connect_{snake}(self) -> None:",
        "        with obsrt.host.CONNECT_LOCK:",
        f"            if self.{connected}:",
        "                return",
        f"            subject = {SUBJECT_TYPE}()",
        "            obsrt.host.add_to(",
        f"                subject.subscribe(lambda value: {native_emit_call(event)}),",
        "                self,",
        "            )",
        f"            self.{cache} = subject",
        f"            self.{connected} = True",
    ]
    return "\n".join(lines)


@dataclass(frozen=True)
class BinderSynthesis:
    """Result of generating the bidirectional mixin for one owner type.

    Attributes:
        class_text: The mixin class text, or "" when no event qualified.
        events: Events that received a property, in input order.
        diagnostics: One OBS002 warning per event over the parameter cap.
    """

    class_text: str
    events: tuple[EventDeclaration, ...]
    diagnostics: tuple[Diagnostic, ...]


def generate_binder_class(
    owner: TypeReference, events: Iterable[EventDeclaration]
) -> BinderSynthesis:
    properties: list[str] = []
    bound: list[EventDeclaration] = []
    diagnostics: list[Diagnostic] = []

    for event in filter_events(owner, events):
        if event.signature.arity > MAX_SIGNAL_PARAMETERS:
            diagnostics.append(
                make_diagnostic(
                    "OBS002",
                    DiagnosticLocation(owner.qualified_name, event.name),
                    event=event.name,
                    owner=owner.name,
                )
            )
            continue
        properties.append(generate_binder_property(event))
        bound.append(event)

    if not properties:
        return BinderSynthesis("", (), tuple(diagnostics))

    lines = [
        f"class {binder_class_name(owner)}:",
        f'    """Observable signals of {owner.qualified_name}, re-emitted through emit_signal."""',
        "",
    ]
    lines.append("\n\n".join(properties))
    return BinderSynthesis("\n".join(lines), tuple(bound), tuple(diagnostics))


# ===--- Artifact assembly ---=== #


@dataclass(frozen=True)
class WrapperArtifact:
    """One generated file, ready for validation.

    Attributes:
        filename: Target filename from artifact_filename.
        text: Complete source text including header and imports.
        kind: Which generator produced it.
        owner: The owner type the file was generated for.
    """

    filename: str
    text: str
    kind: ArtifactKind
    owner: TypeReference


_HEADER_BORDER: str = "# x-------------------------------------------x #"

_KIND_TITLES: Mapping[ArtifactKind, str] = MappingProxyType(
    {
        ArtifactKind.WRAPPERS: "Observable extensions",
        ArtifactKind.BINDERS: "Builtin observables",
    }
)


def format_file_header(owner: TypeReference, kind: ArtifactKind) -> list[str]:
    """Return the boxed comment header of a generated file.

    Output format:
        # x-------------------------------------------x #
        # | Observable extensions for widgets.IButton
        # | Generated by observable-bindings-gen
        # | Do not edit: regenerate from the type catalog
        # x-------------------------------------------x #

    Contains no timestamps or paths so repeated passes are byte-identical.
    """
    return [
        _HEADER_BORDER,
        f"# | {_KIND_TITLES[kind]} for {owner.qualified_name}",
        f"# | Generated by {GENERATOR_NAME}",
        "# | Do not edit: regenerate from the type catalog",
        _HEADER_BORDER,
    ]


def format_import_block(namespaces: Sequence[str]) -> list[str]:
    """Return one `import <namespace>` line per namespace, in given order.

    Raises:
        ValueError: If any namespace is blank.
    """
    for namespace in namespaces:
        if not namespace or not namespace.strip():
            raise ValueError("Cannot import a blank namespace")
    return [f"import {namespace}" for namespace in namespaces]


def assemble_artifact_source(
    owner: TypeReference,
    kind: ArtifactKind,
    namespaces: Sequence[str],
    fragments: Sequence[str],
) -> str:
    """Assemble the complete text of a generated module.

    File structure:
        <header_comment_block>
                                        <- blank line
        from __future__ import annotations
                                        <- blank line
        <import_block>
                                        <- two blank lines
        <fragments>                     <- separated by two blank lines
                                        <- trailing newline
    """
    parts: list[str] = list(format_file_header(owner, kind))
    parts.append("")
    parts.append("from __future__ import annotations")
    parts.append("")
    parts.extend(format_import_block(namespaces))
    if fragments:
        parts.append("")
        parts.append("")
        parts.append("\n\n\n".join(fragments))
    return "\n".join(parts) + "\n"


# ===--- Output validation ---=== #


def validate_artifact_text(text: str, filename: str = "<generated>") -> str | None:
    """Parse text in syntax-only mode.

    Returns:
        None when text parses, else a description of the first parse error.
    """
    try:
        ast.parse(text, filename=filename)
    except SyntaxError as err:
        return f"{err.msg} (line {err.lineno}, column {err.offset})"
    except ValueError as err:
        return str(err)
    return None


# ===--- Type catalog ---=== #


@dataclass(frozen=True)
class CatalogType:
    """An event-bearing type as served by a TypeCatalog.

    Attributes:
        reference: The owner type.
        declarations: Raw event declarations in catalog order, including
            inherited and malformed ones. Filtering happens downstream.
        is_extendable: True when generated members may be mixed into it.
    """

    reference: TypeReference
    declarations: tuple[EventDeclaration, ...] = ()
    is_extendable: bool = False

    @property
    def name(self) -> str:
        return self.reference.name

    @property
    def namespace(self) -> str:
        return self.reference.namespace

    def events(self) -> tuple[EventDeclaration, ...]:
        return self.declarations


class TypeCatalog(Protocol):
    def list_event_bearing_types(
        self, root_path: str
    ) -> Sequence[tuple[CatalogType, bool]]: ...


def namespace_in_root(namespace: str, root_path: str) -> bool:
    if not root_path:
        return True
    return namespace == root_path or namespace.startswith(root_path + ".")


class StaticTypeCatalog:
    """TypeCatalog over an already-materialized list of types."""

    def __init__(self, types: Iterable[CatalogType]) -> None:
        self._types = tuple(types)

    @property
    def types(self) -> tuple[CatalogType, ...]:
        return self._types

    def list_event_bearing_types(
        self, root_path: str = ""
    ) -> list[tuple[CatalogType, bool]]:
        return [
            (catalog_type, catalog_type.is_extendable)
            for catalog_type in self._types
            if catalog_type.events() and namespace_in_root(catalog_type.namespace, root_path)
        ]


def _flag(element: ET.Element, attribute: str) -> bool:
    return element.get(attribute, "false").strip().lower() in ("true", "1", "yes")


def load_delegates(root: ET.Element) -> dict[str, ET.Element]:
    """Map qualified delegate name -> <delegate> element. First one wins."""
    delegates: dict[str, ET.Element] = {}
    for element in root.findall("delegate"):
        name = element.get("name")
        if not name:
            continue
        reference = TypeReference(name, element.get("namespace", ""))
        delegates.setdefault(reference.qualified_name, element)
    return delegates


def parse_parameters(elements: Iterable[ET.Element]) -> tuple[list[Parameter], bool]:
    """Parse <param> elements.

    Returns:
        (parameters, fixed) where fixed is False if any parameter is variadic.
        Parameters with a missing or malformed type get type None.
    """
    parameters: list[Parameter] = []
    fixed = True
    for element in elements:
        if _flag(element, "variadic"):
            fixed = False
        raw_type = element.get("type")
        param_type = None
        if raw_type:
            try:
                param_type = parse_type_reference(raw_type)
            except CatalogError:
                param_type = None
        parameters.append(Parameter(element.get("name", ""), param_type))
    return parameters, fixed


def resolve_event_signature(
    event_element: ET.Element, delegates: Mapping[str, ET.Element]
) -> DelegateSignature:
    raw_delegate = event_element.get("delegate")
    if not raw_delegate:
        return UNRESOLVED_SIGNATURE
    try:
        delegate = parse_type_reference(raw_delegate)
    except CatalogError:
        return UNRESOLVED_SIGNATURE

    inline = event_element.findall("param")
    if delegate.qualified_name in CALLABLE_DELEGATES:
        parameters, fixed = parse_parameters(inline)
        return make_signature(
            delegate, parameters, fixed=fixed and not _flag(event_element, "variadic")
        )

    delegate_element = delegates.get(delegate.qualified_name)
    if delegate_element is None or inline:
        return UNRESOLVED_SIGNATURE

    parameters, fixed = parse_parameters(delegate_element.findall("param"))
    return make_signature(
        delegate,
        parameters,
        callback_constructor=_flag(delegate_element, "callback-constructor"),
        fixed=fixed and not _flag(delegate_element, "variadic"),
    )


def _accessor(element: ET.Element, attribute: str, default: str) -> str | None:
    value = element.get(attribute)
    if value is None:
        return default
    return value.strip() or None


def parse_event(
    event_element: ET.Element,
    owner: TypeReference,
    delegates: Mapping[str, ET.Element],
) -> EventDeclaration:
    name = event_element.get("name", "").strip()
    snake = to_snake_case(name)

    declaring_type = owner
    declared_by = event_element.get("declared-by")
    if declared_by:
        try:
            declaring_type = parse_type_reference(declared_by)
        except CatalogError:
            declaring_type = TypeReference(declared_by)

    return EventDeclaration(
        owner=owner,
        name=name,
        add_accessor=_accessor(event_element, "add", f"add_{snake}"),
        remove_accessor=_accessor(event_element, "remove", f"remove_{snake}"),
        signature=resolve_event_signature(event_element, delegates),
        declaring_type=declaring_type,
    )


def parse_catalog_root(root: ET.Element) -> list[CatalogType]:
    """Build CatalogType entries from a parsed <catalog> element.

    <type> elements without a name are skipped. Event-level problems are
    preserved as unresolved or accessor-less declarations so the event
    filter can drop them silently.

    Raises:
        CatalogError: If the root element is not <catalog>.
    """
    if root.tag != "catalog":
        raise CatalogError(f"Expected <catalog> root element, got <{root.tag}>")

    delegates = load_delegates(root)
    types: list[CatalogType] = []
    for type_element in root.findall("type"):
        name = type_element.get("name")
        if not name:
            continue
        owner = TypeReference(name, type_element.get("namespace", ""))
        declarations = tuple(
            parse_event(event_element, owner, delegates)
            for event_element in type_element.findall("event")
        )
        types.append(
            CatalogType(
                reference=owner,
                declarations=declarations,
                is_extendable=_flag(type_element, "extendable"),
            )
        )
    return types


class XmlTypeCatalog(StaticTypeCatalog):
    """TypeCatalog loaded once from an XML catalog file.

    Raises:
        OSError: File not readable.
        ET.ParseError: Malformed XML.
        CatalogError: Root element is not <catalog>.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        root = ET.parse(self.path).getroot()
        super().__init__(parse_catalog_root(root))


# ===--- Artifact sink ---=== #


class ArtifactSink(Protocol):
    def emit(self, filename: str, text: str) -> None: ...


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "button_observable_extensions.py".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


class DirectorySink:
    """ArtifactSink writing each artifact into output_dir.

    Creates output_dir (and missing parents) on first emit. OSError from
    the filesystem propagates unwrapped.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)
        self.results: list[FileWriteResult] = []

    def emit(self, filename: str, text: str) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.output_dir / filename
        file_path.write_text(text, encoding="utf-8")
        resolved = file_path.resolve()
        self.results.append(
            FileWriteResult(
                filename=filename,
                path=resolved,
                line_count=text.count("\n"),
                byte_count=len(resolved.read_bytes()),
            )
        )


# ===--- Pass driver ---=== #


@dataclass(frozen=True)
class OwnerSynthesis:
    """Everything synthesized for one owner type, before validation.

    Attributes:
        owner: The owner type.
        artifacts: Zero, one or two artifacts (wrappers first, binders second).
        diagnostics: Warnings raised while synthesizing, or the single fatal
            diagnostic when synthesis failed unexpectedly.
    """

    owner: TypeReference
    artifacts: tuple[WrapperArtifact, ...]
    diagnostics: tuple[Diagnostic, ...]


def synthesize_wrapper_artifact(
    owner: TypeReference, events: Sequence[EventDeclaration]
) -> WrapperArtifact | None:
    fragments = generate_event_wrappers(owner, events)
    if not fragments:
        return None
    namespaces = collect_required_namespaces(owner, events)
    return WrapperArtifact(
        filename=artifact_filename(owner, ArtifactKind.WRAPPERS),
        text=assemble_artifact_source(owner, ArtifactKind.WRAPPERS, namespaces, fragments),
        kind=ArtifactKind.WRAPPERS,
        owner=owner,
    )


def synthesize_binder_artifact(
    owner: TypeReference, events: Sequence[EventDeclaration]
) -> tuple[WrapperArtifact | None, tuple[Diagnostic, ...]]:
    binder = generate_binder_class(owner, events)
    if not binder.class_text:
        return None, binder.diagnostics
    namespaces = collect_required_namespaces(owner, binder.events)
    artifact = WrapperArtifact(
        filename=artifact_filename(owner, ArtifactKind.BINDERS),
        text=assemble_artifact_source(
            owner, ArtifactKind.BINDERS, namespaces, [binder.class_text]
        ),
        kind=ArtifactKind.BINDERS,
        owner=owner,
    )
    return artifact, binder.diagnostics


def synthesize_owner(catalog_type: CatalogType, is_extendable: bool) -> OwnerSynthesis:
    """Run filter, wrapper synthesis and (for extendable types) the binder.

    Pure: no I/O and no channel reporting. Unexpected exceptions propagate
    to the caller.
    """
    owner = catalog_type.reference
    events = filter_events(owner, catalog_type.events())

    artifacts: list[WrapperArtifact] = []
    diagnostics: tuple[Diagnostic, ...] = ()

    wrappers = synthesize_wrapper_artifact(owner, events)
    if wrappers is not None:
        artifacts.append(wrappers)

    if is_extendable:
        binders, diagnostics = synthesize_binder_artifact(owner, events)
        if binders is not None:
            artifacts.append(binders)

    return OwnerSynthesis(owner, tuple(artifacts), diagnostics)


def _owner_label(catalog_type: object) -> str:
    reference = getattr(catalog_type, "reference", None)
    if isinstance(reference, TypeReference):
        return reference.qualified_name
    return str(getattr(catalog_type, "name", catalog_type))


def synthesize_owner_isolated(
    catalog_type: CatalogType, is_extendable: bool
) -> OwnerSynthesis:
    """synthesize_owner, with any unexpected failure turned into OBS999.

    On failure the OBS999 diagnostic replaces everything synthesized for
    that type, including OBS002 warnings already collected for it.
    """
    try:
        return synthesize_owner(catalog_type, is_extendable)
    except Exception as err:
        label = _owner_label(catalog_type)
        diagnostic = make_diagnostic(
            "OBS999",
            DiagnosticLocation(label),
            owner=label,
            error=f"{type(err).__name__}: {err}",
        )
        owner = getattr(catalog_type, "reference", TypeReference(label))
        return OwnerSynthesis(owner, (), (diagnostic,))


@dataclass(frozen=True)
class EmittedArtifact:
    filename: str
    kind: ArtifactKind
    owner: TypeReference
    line_count: int


@dataclass(frozen=True)
class PassResult:
    """Outcome of one pass.

    Attributes:
        type_count: Number of event-bearing types the catalog listed.
        artifacts: Artifacts handed to the sink, in emission order.
        diagnostics: Every diagnostic reported during the pass, in order.
    """

    type_count: int
    artifacts: tuple[EmittedArtifact, ...]
    diagnostics: tuple[Diagnostic, ...]

    def count(self, severity: Severity) -> int:
        return sum(1 for d in self.diagnostics if d.severity is severity)

    @property
    def failed(self) -> bool:
        return any(d.severity.is_failure for d in self.diagnostics)


@dataclass
class _PassState:
    channel: DiagnosticChannel
    diagnostics: list[Diagnostic] = field(default_factory=list)
    artifacts: list[EmittedArtifact] = field(default_factory=list)

    def report(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        self.channel.report(
            diagnostic.code, diagnostic.severity, diagnostic.message, diagnostic.location
        )


def run_pass(
    catalog: TypeCatalog,
    sink: ArtifactSink,
    channel: DiagnosticChannel,
    root_path: str = "",
    jobs: int = 1,
) -> PassResult:
    """Run one synthesis pass over every event-bearing type under root_path.

    Synthesis may run on `jobs` worker threads; validation, emission and
    reporting always happen in catalog order, so the sink and channel see
    the same sequence for any jobs value.

    Per type: synthesize (OBS999 on unexpected failure) -> report binder
    warnings -> validate each artifact (OBS998 and discard on syntax error)
    -> emit the rest to the sink.

    Raises:
        OSError: Propagated from the sink.
    """
    state = _PassState(channel)
    entries = list(catalog.list_event_bearing_types(root_path))
    state.report(make_diagnostic("OBS001", count=len(entries), root=root_path))

    if jobs > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            results = list(pool.map(lambda e: synthesize_owner_isolated(*e), entries))
    else:
        results = [synthesize_owner_isolated(*entry) for entry in entries]

    for synthesis in results:
        for diagnostic in synthesis.diagnostics:
            state.report(diagnostic)
        for artifact in synthesis.artifacts:
            error = validate_artifact_text(artifact.text, artifact.filename)
            if error is not None:
                state.report(
                    make_diagnostic(
                        "OBS998",
                        DiagnosticLocation(artifact.owner.qualified_name),
                        filename=artifact.filename,
                        error=error,
                    )
                )
                continue
            sink.emit(artifact.filename, artifact.text)
            state.artifacts.append(
                EmittedArtifact(
                    filename=artifact.filename,
                    kind=artifact.kind,
                    owner=artifact.owner,
                    line_count=artifact.text.count("\n"),
                )
            )

    return PassResult(
        type_count=len(entries),
        artifacts=tuple(state.artifacts),
        diagnostics=tuple(state.diagnostics),
    )


# ===--- Summary report ---=== #


def format_pass_summary(result: PassResult, output_label: str) -> str:
    """Render a PassResult as the console summary printed after generation.

    Output format:
        Observable bindings generated:

          Types:       3
          Output:      generated
          Diagnostics: 1 warning, 0 errors

          Files written:
            button_observable_extensions.py       42 lines

          Total: 42 lines across 1 files

    Returns a string with exactly one trailing newline.
    """
    failures = result.count(Severity.ERROR) + result.count(Severity.FATAL)
    warnings = result.count(Severity.WARNING)
    warning_label = "warning" if warnings == 1 else "warnings"
    error_label = "error" if failures == 1 else "errors"

    lines = ["Observable bindings generated:", ""]
    lines.append(f"  Types:       {result.type_count}")
    lines.append(f"  Output:      {output_label}")
    lines.append(
        f"  Diagnostics: {warnings} {warning_label}, {failures} {error_label}"
    )
    lines.append("")
    lines.append("  Files written:")
    name_width = max((len(a.filename) for a in result.artifacts), default=0)
    for artifact in result.artifacts:
        lines.append(
            f"    {artifact.filename.ljust(name_width)}  {artifact.line_count:>6,} lines"
        )

    total_lines = sum(a.line_count for a in result.artifacts)
    lines.append("")
    lines.append(
        f"  Total: {total_lines:,} lines across {len(result.artifacts)} files"
    )
    lines.append("")
    return "\n".join(lines)


def format_types_table(entries: Sequence[tuple[CatalogType, bool]], root_path: str) -> str:
    """Return the --list-types output.

    Output format:
        2 event-bearing types under 'widgets':

          widgets.IButton   3 events  2 eligible  extendable
          widgets.ISlider   1 events  1 eligible
    """
    scope = root_path or "<all>"
    lines = [f"{len(entries)} event-bearing types under '{scope}':", ""]
    name_width = max((len(t.reference.qualified_name) for t, _ in entries), default=0)
    for catalog_type, is_extendable in entries:
        total = len(catalog_type.events())
        eligible = len(filter_events(catalog_type.reference, catalog_type.events()))
        row = (
            f"  {catalog_type.reference.qualified_name.ljust(name_width)}"
            f"  {total} events  {eligible} eligible"
        )
        if is_extendable:
            row += "  extendable"
        lines.append(row)
    lines.append("")
    return "\n".join(lines)


# ===--- Dispatch ---=== #


def run_list(config: ListConfig) -> None:
    catalog = XmlTypeCatalog(config.catalog)
    entries = catalog.list_event_bearing_types(config.root_path)
    print(format_types_table(entries, config.root_path), end="")


def run_generate(config: GenerateConfig) -> PassResult:
    """Load the catalog, run one pass into config.output_dir, print a summary.

    Raises:
        OSError: Catalog not readable or filesystem write failure.
        ET.ParseError: Malformed catalog XML.
        CatalogError: Catalog root is not <catalog>.
    """
    print(f"Loading catalog: {config.catalog}")
    catalog = XmlTypeCatalog(config.catalog)
    print(f"  Catalog: {len(catalog.types)} types")

    sink = DirectorySink(config.output_dir)
    result = run_pass(
        catalog,
        sink,
        PrintingDiagnostics(),
        root_path=config.root_path,
        jobs=config.jobs,
    )
    print(format_pass_summary(result, str(config.output_dir)), end="")
    return result


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        if isinstance(config, ListConfig):
            run_list(config)
            return
        result = run_generate(config)
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except CatalogError as err:
        print(f"Catalog error: {err}")
        raise SystemExit(1) from err

    if result.failed:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
