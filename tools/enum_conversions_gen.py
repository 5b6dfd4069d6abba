#!/usr/bin/env python3
"""enum-conversions generator.

Input:  Rust source containing enums tagged with #[derive(EnumConversions)].
Output: transformed Rust source with GetVariant/TryFrom/From impls spliced in
        after each tagged enum.
"""

from __future__ import annotations

import argparse
import dataclasses
import hashlib
import pathlib
import re
import sys
from typing import Dict, Iterator, List, Sequence, Tuple

import jinja2

GENERATOR_VERSION = "0.1.0"
FORMAT_VERSION = "1"
DERIVE_NAME = "EnumConversions"
TRAITS_CRATE = "variant_access_traits"
MARKER_NAMESPACE_PREFIX = "enum___conversion___"
DIGEST_PATTERN = re.compile(r"^// digest: ([0-9a-f]{64})$", re.MULTILINE)
IDENT_PATTERN = re.compile(r"(?:r#)?[A-Za-z_]\w*")
VISIBILITY_PATTERN = re.compile(r"pub\b(?:\s*\([^)]*\))?")
ITEM_KIND_PATTERN = re.compile(r"(enum|struct|union)\b")
DERIVE_PATTERN = re.compile(r"\s*derive\s*\((?P<items>.*)\)\s*$", re.DOTALL)
CFG_ATTRIBUTE_PATTERN = re.compile(r"#\[\s*cfg\s*\(")
RAW_STRING_PATTERN = re.compile(r'b?r(?P<hashes>#*)"')
CHAR_LITERAL_PATTERN = re.compile(r"b?'(?:[^'\\\n]|\\(?:x[0-9A-Fa-f]{2}|u\{[0-9A-Fa-f_]{1,6}\}|.))'")
CLOSERS = {"(": ")", "[": "]", "{": "}", "<": ">"}


class ParseError(RuntimeError):
    def __init__(self, message: str, index: int) -> None:
        super().__init__(message)
        self.index = index


class ValidationError(ParseError):
    """The declaration parsed, but its shape cannot be converted."""


class RenderError(RuntimeError):
    """A template failed to render. Always a generator bug, never bad input."""


@dataclasses.dataclass
class GenericParam:
    kind: str  # type | lifetime | const
    name: str
    bound: str = ""  # trait/lifetime bounds, or the value type of a const param
    default: str = ""

    def declaration(self) -> str:
        prefix = "const " if self.kind == "const" else ""
        if self.bound:
            return f"{prefix}{self.name}: {self.bound}"
        return f"{prefix}{self.name}"


@dataclasses.dataclass
class RawVariant:
    name: str
    shape: str  # unit | tuple | named
    index: int
    fields: List[str] = dataclasses.field(default_factory=list)
    cfg: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class RawDeclaration:
    kind: str  # enum | struct | union
    name: str
    start: int
    end: int
    index: int
    generics: List[GenericParam] = dataclasses.field(default_factory=list)
    where_clause: str = ""
    variants: List[RawVariant] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class EnumSchema:
    name: str
    generic_params: Tuple[GenericParam, ...]
    where_clause: str
    variants: Dict[str, str]
    variant_cfgs: Dict[str, Tuple[str, ...]] = dataclasses.field(default_factory=dict)

    @property
    def fullname(self) -> str:
        """Name with the bare generic identifiers applied, e.g. ``Enum<'a, T, X>``."""
        if not self.generic_params:
            return self.name
        return f"{self.name}<{', '.join(p.name for p in self.generic_params)}>"

    @property
    def impl_generics(self) -> str:
        """Generic list as declared, bounds kept and defaults dropped."""
        if not self.generic_params:
            return ""
        return f"<{', '.join(p.declaration() for p in self.generic_params)}>"


@dataclasses.dataclass
class DeriveAttribute:
    start: int
    end: int
    remaining: List[str]


def line_col(text: str, index: int) -> Tuple[int, int]:
    line = text.count("\n", 0, index) + 1
    line_start = text.rfind("\n", 0, index)
    if line_start < 0:
        line_start = -1
    col = index - line_start
    return line, col


def fail(path: pathlib.Path, text: str, error: ParseError) -> None:
    line, col = line_col(text, error.index)
    print(f"{path}:{line}:{col}: error: {error}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Declaration scanning
# ---------------------------------------------------------------------------


def skip_literal(text: str, i: int) -> int:
    """Return the index past a comment or literal starting at i, or i itself."""
    n = len(text)
    if text.startswith("//", i):
        j = text.find("\n", i + 2)
        return n if j == -1 else j + 1
    if text.startswith("/*", i):
        depth = 0
        j = i
        while j < n:
            if text.startswith("/*", j):
                depth += 1
                j += 2
            elif text.startswith("*/", j):
                depth -= 1
                j += 2
                if depth == 0:
                    return j
            else:
                j += 1
        raise ParseError("unterminated block comment", i)

    raw = RAW_STRING_PATTERN.match(text, i)
    if raw:
        closing = '"' + raw.group("hashes")
        j = text.find(closing, raw.end())
        if j == -1:
            raise ParseError("unterminated raw string literal", i)
        return j + len(closing)

    if text.startswith('"', i) or text.startswith('b"', i):
        j = text.index('"', i) + 1
        while j < n:
            if text[j] == "\\":
                j += 2
                continue
            if text[j] == '"':
                return j + 1
            j += 1
        raise ParseError("unterminated string literal", i)

    char = CHAR_LITERAL_PATTERN.match(text, i)
    if char:
        return char.end()
    # A lone quote is a lifetime such as 'a.
    return i


def skip_ws_comments(text: str, i: int) -> int:
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            i = skip_literal(text, i)
            continue
        return i
    return i


def read_attributes(text: str, i: int) -> Tuple[List[str], int]:
    attrs: List[str] = []
    i = skip_ws_comments(text, i)
    while text.startswith("#[", i):
        close = find_matching(text, i + 1)
        attrs.append(normalize_type(text[i : close + 1]))
        i = skip_ws_comments(text, close + 1)
    return attrs, i


def skip_attributes(text: str, i: int) -> int:
    return read_attributes(text, i)[1]


def strip_comments(text: str) -> str:
    pieces: List[str] = []
    i = 0
    n = len(text)
    while i < n:
        j = skip_literal(text, i)
        if j == i:
            pieces.append(text[i])
            i += 1
            continue
        if text.startswith("//", i) or text.startswith("/*", i):
            pieces.append(" ")
        else:
            pieces.append(text[i:j])
        i = j
    return "".join(pieces)


def normalize_type(type_name: str) -> str:
    return " ".join(strip_comments(type_name).split())


def type_key(type_name: str) -> str:
    return re.sub(r"\s*([<>(),\[\];:&*=+])\s*", r"\1", normalize_type(type_name))


def parse_identifier(text: str, i: int) -> Tuple[str, int]:
    m = IDENT_PATTERN.match(text, i)
    if not m:
        raise ParseError("expected identifier", i)
    return m.group(0), m.end()


def _after_path_sep(text: str, i: int) -> bool:
    j = i
    while j > 0 and text[j - 1].isspace():
        j -= 1
    return text[j - 2 : j] == "::"


def _angles_are_brackets(frame: List) -> bool:
    # In expression position (array lengths, discriminants) and inside braced
    # const blocks, '<' and '>' are operators.
    closer, in_expr = frame
    return not in_expr and closer != "}"


def iter_top_level(text: str, start: int, end: int, root: str = "") -> Iterator[Tuple[int, str]]:
    """Yield (index, char) for every character outside nested brackets.

    ``root`` is the bracket enclosing the scanned range, if any.
    """
    root_frame = [CLOSERS.get(root, ""), False]
    stack: List[List] = []
    i = start
    while i < end:
        j = skip_literal(text, i)
        if j != i:
            i = j
            continue
        ch = text[i]
        frame = stack[-1] if stack else root_frame
        if not stack:
            yield i, ch
        if ch in "([{":
            stack.append([CLOSERS[ch], frame[1] and ch != "{"])
        elif ch == "<" and (_angles_are_brackets(frame) or _after_path_sep(text, i)):
            stack.append([">", False])
        elif ch in ")]}" or (
            ch == ">" and text[i - 1] not in "-=" and (frame[0] == ">" or _angles_are_brackets(frame))
        ):
            if not stack or stack[-1][0] != ch:
                raise ParseError(f"unexpected '{ch}'", i)
            stack.pop()
        elif ch == ";" and frame[0] == "]":
            frame[1] = True
        elif ch == "=" and frame[0] == "}" and _is_separator(text, i, "="):
            frame[1] = True
        elif ch == "," and frame[0] == "}":
            frame[1] = False
        i += 1


def find_matching(text: str, open_index: int) -> int:
    opener = text[open_index]
    if opener not in CLOSERS:
        raise ParseError("internal error: expected opening bracket", open_index)

    for i, ch in iter_top_level(text, open_index + 1, len(text), root=opener):
        if ch == ">" and text[i - 1] in "-=":
            continue
        if ch == CLOSERS[opener]:
            return i
        if ch in ")]}":
            raise ParseError(f"unexpected '{ch}'", i)
    raise ParseError(f"unbalanced '{opener}'", open_index)


def _is_separator(text: str, i: int, sep: str) -> bool:
    if sep == ":":
        return text[i - 1 : i] != ":" and text[i + 1 : i + 2] != ":"
    if sep == "=":
        return text[i - 1 : i] not in ("=", "<", ">", "!") and text[i + 1 : i + 2] not in ("=", ">")
    return True


def _trim_span(text: str, start: int, end: int) -> Tuple[int, int]:
    start = min(skip_ws_comments(text, start), end)
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def split_top_level(text: str, start: int, end: int, sep: str, root: str = "") -> List[Tuple[int, int]]:
    spans: List[Tuple[int, int]] = []
    seg_start = start
    for i, ch in iter_top_level(text, start, end, root):
        if ch == sep and _is_separator(text, i, sep):
            spans.append(_trim_span(text, seg_start, i))
            seg_start = i + 1
    spans.append(_trim_span(text, seg_start, end))
    return [(a, b) for a, b in spans if a < b]


def split_once_top_level(text: str, start: int, end: int, sep: str, root: str = "") -> Tuple[str, str]:
    for i, ch in iter_top_level(text, start, end, root):
        if ch == sep and _is_separator(text, i, sep):
            return text[start:i], text[i + 1 : end]
    return text[start:end], ""


def parse_generic_param(text: str, start: int, end: int) -> GenericParam:
    start = skip_attributes(text, start)
    head, default = split_once_top_level(text, start, end, "=", root="<")
    head_end = start + len(head)
    name_part, bound = split_once_top_level(text, start, head_end, ":", root="<")
    name_part = name_part.strip()
    bound = normalize_type(bound)
    default = normalize_type(default)

    if name_part.startswith("'"):
        if not IDENT_PATTERN.fullmatch(name_part[1:]):
            raise ParseError("expected lifetime name", start)
        return GenericParam(kind="lifetime", name=name_part, bound=bound)

    kind = "type"
    if re.match(r"const\s", name_part):
        kind = "const"
        name_part = name_part[len("const") :].strip()
        if not bound:
            raise ParseError(f"const parameter '{name_part}' is missing its type", start)
    if not IDENT_PATTERN.fullmatch(name_part):
        raise ParseError("expected generic parameter name", start)
    return GenericParam(kind=kind, name=name_part, bound=bound, default=default)


def parse_variant(text: str, start: int, end: int) -> RawVariant:
    attrs, i = read_attributes(text, start)
    cfg = [attr for attr in attrs if CFG_ATTRIBUTE_PATTERN.match(attr)]
    name, i = parse_identifier(text, i)
    i = skip_ws_comments(text, i)

    if i >= end or text[i] == "=":
        return RawVariant(name=name, shape="unit", index=start, cfg=cfg)

    if text[i] not in "({":
        raise ParseError(f"unexpected token after variant '{name}'", i)

    close = find_matching(text, i)
    shape = "tuple" if text[i] == "(" else "named"
    fields = [
        normalize_type(text[skip_attributes(text, a) : b])
        for a, b in split_top_level(text, i + 1, close, ",", root=text[i])
    ]

    trailing = skip_ws_comments(text, close + 1)
    if trailing < end and text[trailing] != "=":
        raise ParseError(f"unexpected token after variant '{name}'", trailing)
    return RawVariant(name=name, shape=shape, index=start, fields=fields, cfg=cfg)


def parse_declaration(text: str, index: int = 0) -> RawDeclaration:
    i = skip_attributes(text, index)

    vis = VISIBILITY_PATTERN.match(text, i)
    if vis:
        i = skip_ws_comments(text, vis.end())

    kind_match = ITEM_KIND_PATTERN.match(text, i)
    if not kind_match:
        raise ParseError("expected 'enum' declaration", i)
    kind = kind_match.group(1)

    i = skip_ws_comments(text, kind_match.end())
    name, i = parse_identifier(text, i)
    i = skip_ws_comments(text, i)

    generics: List[GenericParam] = []
    if text.startswith("<", i):
        close = find_matching(text, i)
        generics = [parse_generic_param(text, a, b) for a, b in split_top_level(text, i + 1, close, ",", root="<")]
        i = skip_ws_comments(text, close + 1)

    if kind != "enum":
        # Only the item kind matters; the body of a struct or union is never read.
        return RawDeclaration(
            kind=kind, name=name, start=index, end=i, index=kind_match.start(), generics=generics
        )

    body_open = -1
    for j, ch in iter_top_level(text, i, len(text)):
        if ch == "{":
            body_open = j
            break
        if ch == ";":
            break
    if body_open == -1:
        raise ParseError("expected '{' to open enum body", i)

    where_clause = normalize_type(text[i:body_open])
    if where_clause and not re.match(r"where\b", where_clause):
        raise ParseError("expected 'where' clause or '{'", i)

    close = find_matching(text, body_open)
    variants = [parse_variant(text, a, b) for a, b in split_top_level(text, body_open + 1, close, ",", root="{")]

    return RawDeclaration(
        kind=kind,
        name=name,
        start=index,
        end=close + 1,
        index=kind_match.start(),
        generics=generics,
        where_clause=where_clause,
        variants=variants,
    )


# ---------------------------------------------------------------------------
# Schema extraction and validation
# ---------------------------------------------------------------------------


def extract_schema(decl: RawDeclaration) -> EnumSchema:
    if decl.kind != "enum":
        raise ValidationError(
            f"unsupported declaration kind, expected tagged union ('{decl.name}' is a {decl.kind})",
            decl.index,
        )

    variants: Dict[str, str] = {}
    variant_cfgs: Dict[str, Tuple[str, ...]] = {}
    owners: Dict[str, str] = {}
    for variant in decl.variants:
        if variant.shape == "unit":
            raise ValidationError(
                f"unsupported case shape, unit cases are not convertible (variant '{variant.name}')",
                variant.index,
            )
        if variant.shape == "named" or len(variant.fields) != 1:
            raise ValidationError(
                f"unsupported case shape, expected exactly one unnamed payload (variant '{variant.name}')",
                variant.index,
            )
        if variant.name in variants:
            raise ValidationError(f"duplicate variant name '{variant.name}'", variant.index)

        payload = variant.fields[0]
        key = type_key(payload)
        if key in owners:
            raise ValidationError(
                f"unsupported enum, variants '{owners[key]}' and '{variant.name}' share payload type '{payload}'",
                variant.index,
            )
        owners[key] = variant.name
        variants[variant.name] = payload
        if variant.cfg:
            variant_cfgs[variant.name] = tuple(variant.cfg)

    return EnumSchema(
        name=decl.name,
        generic_params=tuple(decl.generics),
        where_clause=decl.where_clause,
        variants=variants,
        variant_cfgs=variant_cfgs,
    )


# ---------------------------------------------------------------------------
# Marker types
# ---------------------------------------------------------------------------


def marker_namespace(enum_name: str) -> str:
    if enum_name.startswith("r#"):
        enum_name = enum_name[2:]
    return f"{MARKER_NAMESPACE_PREFIX}{enum_name}"


def marker_for(enum_name: str, variant_name: str) -> str:
    return f"{marker_namespace(enum_name)}::{variant_name}"


def render_marker_namespace(schema: EnumSchema) -> str:
    lines: List[str] = []
    lines.append("#[allow(non_snake_case, dead_code)]")
    lines.append(f"mod {marker_namespace(schema.name)} {{")
    for variant in schema.variants:
        lines.append(f"    pub(crate) enum {variant} {{}}")
    lines.append("}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

GET_VARIANT_TEMPLATE = """\
{{ cfg }}impl{{ generics }} variant_access_traits::GetVariant<{{ Type }}, {{ Marker }}> for {{ fullname }}
{% if Where %}{{ Where }}
{% endif %}{
    #[allow(unreachable_patterns)]
    fn get_variant(self) -> std::result::Result<{{ Type }}, variant_access_traits::VariantAccessError> {
        match self {
            {{ name }}::{{ field }}(inner) => Ok(inner),
            _ => Err(variant_access_traits::VariantAccessError::wrong_active_field("{{ fullname }}", "{{ Type }}")),
        }
    }

    #[allow(unreachable_patterns)]
    fn get_variant_ref(&self) -> std::result::Result<&{{ Type }}, variant_access_traits::VariantAccessError> {
        match self {
            {{ name }}::{{ field }}(inner) => Ok(inner),
            _ => Err(variant_access_traits::VariantAccessError::wrong_active_field("{{ fullname }}", "{{ Type }}")),
        }
    }

    #[allow(unreachable_patterns)]
    fn get_variant_mut(&mut self) -> std::result::Result<&mut {{ Type }}, variant_access_traits::VariantAccessError> {
        match self {
            {{ name }}::{{ field }}(inner) => Ok(inner),
            _ => Err(variant_access_traits::VariantAccessError::wrong_active_field("{{ fullname }}", "{{ Type }}")),
        }
    }
}
"""

TRY_FROM_TEMPLATE = """\
{{ cfg }}impl{{ generics }} std::convert::TryFrom<{{ fullname }}> for {{ Type }}
{% if Where %}{{ Where }}
{% endif %}{
    type Error = std::boxed::Box<dyn std::error::Error + 'static>;

    fn try_from(value: {{ fullname }}) -> std::result::Result<Self, Self::Error> {
        <{{ fullname }} as variant_access_traits::GetVariant<{{ Type }}, {{ Marker }}>>::get_variant(value)
            .map_err(|e| e.to_string().into())
    }
}
"""

FROM_TEMPLATE = """\
{{ cfg }}impl{{ generics }} std::convert::From<{{ Type }}> for {{ fullname }}
{% if Where %}{{ Where }}
{% endif %}{
    fn from(value: {{ Type }}) -> Self {
        Self::{{ field }}(value)
    }
}
"""

TEMPLATES = {
    "get_variant": GET_VARIANT_TEMPLATE,
    "try_from": TRY_FROM_TEMPLATE,
    "from": FROM_TEMPLATE,
}


def build_template_env() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.DictLoader(TEMPLATES),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )


def render_template(env: jinja2.Environment, name: str, context: Dict[str, str]) -> str:
    try:
        return env.get_template(name).render(context)
    except jinja2.TemplateError as e:
        raise RenderError(f"failed to render the {name} template: {e}") from e


def template_context(schema: EnumSchema, field: str, type_name: str) -> Dict[str, str]:
    return {
        "generics": schema.impl_generics,
        "Type": type_name,
        "Marker": marker_for(schema.name, field),
        "fullname": schema.fullname,
        "name": schema.name,
        "field": field,
        "Where": schema.where_clause,
        "cfg": "".join(f"{attr}\n" for attr in schema.variant_cfgs.get(field, ())),
    }


def with_marker_bound(schema: EnumSchema, type_name: str, marker: str) -> str:
    """Augment the enum's where clause with the GetVariant bound selecting one variant."""
    bound = f"{schema.fullname}: {TRAITS_CRATE}::GetVariant<{type_name}, {marker}>"
    if not schema.where_clause:
        return f"where\n    {bound}"
    return f"{schema.where_clause.rstrip().rstrip(',')},\n    {bound}"


def impl_get_variant(schema: EnumSchema, env: jinja2.Environment) -> List[str]:
    return [
        render_template(env, "get_variant", template_context(schema, field, type_name))
        for field, type_name in schema.variants.items()
    ]


def impl_try_from(schema: EnumSchema, env: jinja2.Environment) -> List[str]:
    rendered: List[str] = []
    for field, type_name in schema.variants.items():
        context = template_context(schema, field, type_name)
        context["Where"] = with_marker_bound(schema, type_name, context["Marker"])
        rendered.append(render_template(env, "try_from", context))
    return rendered


def impl_from(schema: EnumSchema, env: jinja2.Environment) -> List[str]:
    return [
        render_template(env, "from", template_context(schema, field, type_name))
        for field, type_name in schema.variants.items()
    ]


def generate_unit(schema: EnumSchema) -> str:
    env = build_template_env()
    pieces: List[str] = [render_marker_namespace(schema)]
    pieces.extend(impl_get_variant(schema, env))
    pieces.extend(impl_try_from(schema, env))
    pieces.extend(impl_from(schema, env))
    return "\n".join(piece.rstrip("\n") + "\n" for piece in pieces)


def generate(declaration_text: str) -> str:
    return generate_unit(extract_schema(parse_declaration(declaration_text)))


# ---------------------------------------------------------------------------
# Source splicing
# ---------------------------------------------------------------------------


def _is_our_derive(item: str) -> bool:
    return item == DERIVE_NAME or item.endswith("::" + DERIVE_NAME)


def find_derive_attributes(text: str) -> List[DeriveAttribute]:
    attrs: List[DeriveAttribute] = []
    i = 0
    n = len(text)

    while i < n:
        j = skip_literal(text, i)
        if j != i:
            i = j
            continue
        if not text.startswith("#[", i):
            i += 1
            continue

        close = find_matching(text, i + 1)
        m = DERIVE_PATTERN.match(text, i + 2, close)
        if m:
            items = [
                normalize_type(text[a:b])
                for a, b in split_top_level(text, m.start("items"), m.end("items"), ",", root="(")
            ]
            if any(_is_our_derive(item) for item in items):
                remaining = [item for item in items if not _is_our_derive(item)]
                attrs.append(DeriveAttribute(start=i, end=close + 1, remaining=remaining))
        i = close + 1

    return attrs


def expand_source(source: str) -> str:
    pieces: List[str] = []
    cursor = 0

    attrs = find_derive_attributes(source)
    for attr in attrs:
        if attr.start < cursor:
            continue
        decl = parse_declaration(source, attr.end)
        schema = extract_schema(decl)

        pieces.append(source[cursor : attr.start])
        position = attr.start
        # Every derive on the item naming EnumConversions loses that entry.
        for own in attrs:
            if own.start < position or own.start >= decl.index:
                continue
            pieces.append(source[position : own.start])
            position = own.end
            if own.remaining:
                pieces.append(f"#[derive({', '.join(own.remaining)})]")
            else:
                while position < len(source) and source[position].isspace():
                    position += 1
        pieces.append(source[position : decl.end])
        pieces.append("\n\n" + generate_unit(schema).rstrip("\n"))
        cursor = decl.end

    pieces.append(source[cursor:])
    return "".join(pieces)


def compute_file_digest(source_bytes: bytes) -> str:
    h = hashlib.sha256()
    h.update(GENERATOR_VERSION.encode("utf-8"))
    h.update(b"\x00")
    h.update(FORMAT_VERSION.encode("utf-8"))
    h.update(b"\x00")
    h.update(source_bytes)
    return h.hexdigest()


def render_file(source_path: pathlib.Path, source_text: str, source_bytes: bytes) -> str:
    transformed = expand_source(source_text)
    digest = compute_file_digest(source_bytes)
    source_label = str(source_path)
    try:
        source_label = str(source_path.resolve().relative_to(pathlib.Path.cwd().resolve()))
    except ValueError:
        source_label = str(source_path.resolve())

    meta = (
        "// enum-conversions-generated\n"
        f"// source: {source_label}\n"
        f"// generator_version: {GENERATOR_VERSION}\n"
        f"// format_version: {FORMAT_VERSION}\n"
        f"// digest: {digest}\n\n"
    )
    return meta + transformed


def extract_existing_digest(text: str) -> str | None:
    m = DIGEST_PATTERN.search(text)
    if not m:
        return None
    return m.group(1)


def run(args: argparse.Namespace) -> int:
    in_path = pathlib.Path(args.input)
    out_path = pathlib.Path(args.output)

    if not in_path.exists():
        print(f"error: input file does not exist: {in_path}", file=sys.stderr)
        return 1

    source_bytes = in_path.read_bytes()
    source_text = source_bytes.decode("utf-8")

    try:
        rendered = render_file(in_path, source_text, source_bytes)
    except ParseError as e:
        fail(in_path, source_text, e)
        return 1
    except RenderError as e:
        print(f"{in_path}: internal error: {e}", file=sys.stderr)
        return 1

    if args.check:
        if not out_path.exists():
            print(f"{out_path} is missing (run generator)", file=sys.stderr)
            return 1
        existing = out_path.read_text(encoding="utf-8")
        if existing != rendered:
            print(f"{out_path} is out of date (run generator)", file=sys.stderr)
            return 1
        print(f"up-to-date: {out_path}")
        return 0

    if out_path.exists():
        existing = out_path.read_text(encoding="utf-8")
        old_digest = extract_existing_digest(existing)
        new_digest = extract_existing_digest(rendered)
        if old_digest and new_digest and old_digest == new_digest:
            print(f"unchanged: {out_path}")
            return 0
        if existing == rendered:
            print(f"unchanged: {out_path}")
            return 0

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(rendered, encoding="utf-8")
    print(f"generated: {out_path}")
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate GetVariant/TryFrom/From impls for #[derive(EnumConversions)] enums"
    )
    parser.add_argument("--in", dest="input", required=True, help="Input Rust source with tagged enums")
    parser.add_argument("--out", dest="output", required=True, help="Output generated Rust source")
    parser.add_argument("--check", action="store_true", help="Check output is up to date")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    return run(build_arg_parser().parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
