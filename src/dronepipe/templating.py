"""
Notification message templates.

Drone notification plugins format their messages with a small Handlebars
dialect. This module renders the subset those messages actually use:

    {{ build.number }}                         variable lookup (dotted path)
    {{#success build.status}}..{{else}}..{{/success}}
    {{#failure build.status}}..{{/failure}}
    {{#if x}}..{{/if}}  {{#unless x}}..{{/unless}}  {{#equal a "b"}}..{{/equal}}
    {{uppercase x}} {{lowercase x}} {{uppercasefirst x}} {{truncate x 8}} {{urlencode x}}

Unknown variables render as the empty string, like Handlebars does.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Union
from urllib.parse import quote

from .errors import TemplateError

_TAG = re.compile(r"\{\{\s*(.*?)\s*\}\}", re.DOTALL)


@dataclass
class _Text:
    text: str


@dataclass
class _Expr:
    parts: List[str]


@dataclass
class _Block:
    helper: str
    args: List[str]
    body: List["_Node"] = field(default_factory=list)
    inverse: List["_Node"] = field(default_factory=list)


_Node = Union[_Text, _Expr, _Block]


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

def _split(expr: str) -> List[str]:
    try:
        return shlex.split(expr, posix=False)
    except ValueError as e:
        raise TemplateError(f"cannot parse expression {expr!r}: {e}") from e


def parse(source: str) -> List[_Node]:
    root: List[_Node] = []
    # stack of (block, collecting-into list)
    stack: List[tuple] = []
    current = root
    pos = 0

    for m in _TAG.finditer(source):
        if m.start() > pos:
            current.append(_Text(source[pos:m.start()]))
        pos = m.end()
        tag = m.group(1)

        if tag.startswith("!"):
            continue
        if tag.startswith("#"):
            parts = _split(tag[1:])
            if not parts:
                raise TemplateError("block tag without helper")
            block = _Block(helper=parts[0], args=parts[1:])
            current.append(block)
            stack.append((block, current))
            current = block.body
        elif tag == "else":
            if not stack:
                raise TemplateError("{{else}} outside of a block")
            block, _parent = stack[-1]
            current = block.inverse
        elif tag.startswith("/"):
            name = tag[1:].strip()
            if not stack:
                raise TemplateError(f"unexpected closing tag {{{{/{name}}}}}")
            block, parent = stack.pop()
            if block.helper != name:
                raise TemplateError(f"{{{{/{name}}}}} closes {{{{#{block.helper}}}}}")
            current = parent
        else:
            parts = _split(tag)
            if not parts:
                raise TemplateError("empty expression")
            current.append(_Expr(parts))

    if stack:
        raise TemplateError(f"unclosed block {{{{#{stack[-1][0].helper}}}}}")
    if pos < len(source):
        current.append(_Text(source[pos:]))
    return root


# ----------------------------------------------------------------------
# Evaluation
# ----------------------------------------------------------------------

def _lookup(data: Mapping[str, Any], token: str) -> Any:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    if re.fullmatch(r"-?\d+", token):
        return int(token)
    if token in ("true", "false"):
        return token == "true"
    value: Any = data
    for part in token.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return None
    return value


def _fmt(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _truncate(value: Any, n: Any = 8) -> str:
    s = _fmt(value)
    n = int(n)
    return s[:n] if n >= 0 else s[n:]


INLINE_HELPERS: Dict[str, Callable[..., str]] = {
    "uppercase": lambda v: _fmt(v).upper(),
    "lowercase": lambda v: _fmt(v).lower(),
    "uppercasefirst": lambda v: _fmt(v)[:1].upper() + _fmt(v)[1:],
    "truncate": _truncate,
    "urlencode": lambda v: quote(_fmt(v), safe=""),
}

BLOCK_HELPERS: Dict[str, Callable[..., bool]] = {
    "success": lambda v: _fmt(v) == "success",
    "failure": lambda v: _fmt(v) == "failure",
    "if": lambda v: bool(v),
    "unless": lambda v: not v,
    "equal": lambda a, b: _fmt(a) == _fmt(b),
}


def _render(nodes: List[_Node], data: Mapping[str, Any], out: List[str]) -> None:
    for node in nodes:
        if isinstance(node, _Text):
            out.append(node.text)
        elif isinstance(node, _Expr):
            head, args = node.parts[0], node.parts[1:]
            if head in INLINE_HELPERS:
                values = [_lookup(data, a) for a in args]
                try:
                    out.append(INLINE_HELPERS[head](*values))
                except (TypeError, ValueError) as e:
                    raise TemplateError(f"bad arguments for {head}: {e}") from e
            else:
                out.append(_fmt(_lookup(data, head)))
        else:
            fn = BLOCK_HELPERS.get(node.helper)
            if fn is None:
                raise TemplateError(f"unknown block helper {node.helper!r}")
            try:
                truthy = fn(*[_lookup(data, a) for a in node.args])
            except TypeError as e:
                raise TemplateError(f"bad arguments for #{node.helper}: {e}") from e
            _render(node.body if truthy else node.inverse, data, out)


def render(source: str, data: Mapping[str, Any]) -> str:
    out: List[str] = []
    _render(parse(source), data, out)
    return "".join(out)
