"""Template body rendering.

Template bodies are plain text with ``{{ ... }}`` directives:

* ``{{ name }}`` and ``{{ name | transform arg | transform }}`` substitute a
  context value, optionally piped through transforms.  A quoted literal may
  stand in place of the name, e.g. ``{{ "{{" }}``.
* ``{{ if cond }} ... {{ elif cond }} ... {{ else }} ... {{ end }}`` include
  a section when the condition holds.  Blocks nest.
* ``{{# comment }}`` is dropped.

A block or comment tag that sits alone on its line removes the whole line.
``{{-`` strips whitespace before the tag and ``-}}`` strips whitespace after
it.  Every reference in a template, including those in branches that are not
taken, must exist in the context.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Union

from stencil.engine.conditions import Expr, evaluate_expr, parse_condition, references
from stencil.engine.context import ContextValue, TemplateContext, ValueKind
from stencil.engine.transforms import TRANSFORMS
from stencil.errors import ConditionEvaluationError, RenderError

_OPEN = "{{"
_CLOSE = "}}"


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class ValueNode:
    name: Optional[str]
    literal: Optional[str]
    transforms: tuple[tuple[str, tuple[str, ...]], ...]
    line: int


@dataclass(frozen=True)
class Branch:
    condition: str
    expr: Expr
    body: tuple["Node", ...]
    line: int


@dataclass(frozen=True)
class IfNode:
    branches: tuple[Branch, ...]
    otherwise: tuple["Node", ...]


Node = Union[TextNode, ValueNode, IfNode]


# ---------------------------------------------------------------------------
# Lexing
# ---------------------------------------------------------------------------

@dataclass
class _Tag:
    kind: str  # "value", "if", "elif", "else", "end", "comment"
    body: str
    line: int
    trim_left: bool = False
    trim_right: bool = False

    @property
    def is_block(self) -> bool:
        return self.kind != "value"


def _classify(body: str) -> tuple[str, str]:
    stripped = body.strip()
    if stripped.startswith("#"):
        return "comment", ""
    if not stripped:
        return "value", ""
    keyword, *rest = stripped.split(None, 1)
    if keyword in ("if", "elif") and rest:
        return keyword, rest[0].strip()
    if stripped in ("else", "end"):
        return stripped, ""
    return "value", stripped


def _lex(text: str, source: Optional[str]) -> tuple[list[str], list[_Tag]]:
    """Split *text* into alternating text chunks and tags.

    Returns ``len(tags) + 1`` text chunks; chunk ``i`` precedes tag ``i``.
    """
    chunks: list[str] = []
    tags: list[_Tag] = []
    pos = 0
    line = 1
    while True:
        start = text.find(_OPEN, pos)
        if start == -1:
            chunks.append(text[pos:])
            return chunks, tags
        chunks.append(text[pos:start])
        line += text.count("\n", pos, start)
        end = text.find(_CLOSE, start + len(_OPEN))
        if end == -1:
            raise RenderError(f"unclosed '{_OPEN}'", source=source, line=line)
        body = text[start + len(_OPEN):end]
        trim_left = body[:1] == "-" and (len(body) == 1 or body[1].isspace())
        if trim_left:
            body = body[1:]
        trim_right = body[-1:] == "-" and (len(body) == 1 or body[-2].isspace())
        if trim_right:
            body = body[:-1]
        kind, rest = _classify(body)
        tags.append(_Tag(kind, rest, line, trim_left, trim_right))
        line += body.count("\n")
        pos = end + len(_CLOSE)


def _standalone(chunks: list[str], tags: list[_Tag]) -> list[bool]:
    result: list[bool] = []
    last = len(chunks) - 1
    for i, tag in enumerate(tags):
        before, after = chunks[i], chunks[i + 1]
        if not tag.is_block:
            result.append(False)
            continue
        if "\n" in before:
            left_ok = before[before.rfind("\n") + 1:].strip(" \t") == ""
        else:
            left_ok = i == 0 and before.strip(" \t") == ""
        if "\n" in after:
            right_ok = after[: after.find("\n")].strip(" \t\r") == ""
        else:
            right_ok = i + 1 == last and after.strip(" \t") == ""
        result.append(left_ok and right_ok)
    return result


def _apply_whitespace_control(chunks: list[str], tags: list[_Tag]) -> list[str]:
    standalone = _standalone(chunks, tags)
    out: list[str] = []
    for i, chunk in enumerate(chunks):
        start, end = 0, len(chunk)
        if i > 0 and standalone[i - 1]:
            start = chunk.find("\n") + 1 if "\n" in chunk else len(chunk)
        if i < len(tags) and standalone[i]:
            end = chunk.rfind("\n") + 1
        piece = chunk[start:end] if start < end else ""
        if i > 0 and tags[i - 1].trim_right:
            piece = piece.lstrip()
        if i < len(tags) and tags[i].trim_left:
            piece = piece.rstrip()
        out.append(piece)
    return out


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_ARG_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'|\||[^\s|]+')
_ESCAPE_RE = re.compile(r"\\(.)")
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


def _unquote(token: str) -> Optional[str]:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return _ESCAPE_RE.sub(r"\1", token[1:-1])
    return None


def _parse_value(tag: _Tag, source: Optional[str]) -> ValueNode:
    parts: list[list[str]] = [[]]
    for token in _ARG_RE.findall(tag.body):
        if token == "|":
            parts.append([])
        else:
            parts[-1].append(token)
    if any(not p for p in parts):
        raise RenderError(f"malformed expression '{tag.body}'", source=source, line=tag.line)

    head = parts[0]
    if len(head) != 1:
        raise RenderError(f"malformed expression '{tag.body}'", source=source, line=tag.line)
    literal = _unquote(head[0])
    name = None
    if literal is None:
        if not _NAME_RE.match(head[0]):
            raise RenderError(
                f"invalid reference '{head[0]}'", source=source, reference=head[0], line=tag.line
            )
        name = head[0]

    transforms: list[tuple[str, tuple[str, ...]]] = []
    for transform_name, *raw_args in parts[1:]:
        transform = TRANSFORMS.get(transform_name)
        if transform is None:
            raise RenderError(
                f"unknown transform '{transform_name}'", source=source, line=tag.line
            )
        if len(raw_args) != transform.arity:
            raise RenderError(
                f"transform '{transform_name}' takes {transform.arity} argument(s), "
                f"got {len(raw_args)}",
                source=source,
                line=tag.line,
            )
        args = tuple(_unquote(a) if _unquote(a) is not None else a for a in raw_args)
        transforms.append((transform_name, args))
    return ValueNode(name, literal, tuple(transforms), tag.line)


@dataclass
class _OpenIf:
    line: int
    branches: list[Branch] = field(default_factory=list)
    pending: Optional[tuple[str, Expr, int]] = None
    body: list[Node] = field(default_factory=list)
    otherwise: Optional[list[Node]] = None
    parent: list[Node] = field(default_factory=list)

    def close_branch(self) -> None:
        if self.pending is not None:
            condition, expr, line = self.pending
            self.branches.append(Branch(condition, expr, tuple(self.body), line))
            self.pending = None
            self.body = []


def _condition(tag: _Tag, source: Optional[str]) -> Expr:
    try:
        return parse_condition(tag.body)
    except ConditionEvaluationError as exc:
        raise RenderError(str(exc), source=source, line=tag.line) from exc


def _parse(text: str, source: Optional[str]) -> tuple[Node, ...]:
    chunks, tags = _lex(text, source)
    chunks = _apply_whitespace_control(chunks, tags)

    root: list[Node] = []
    current = root
    stack: list[_OpenIf] = []

    for i, chunk in enumerate(chunks):
        if chunk:
            current.append(TextNode(chunk))
        if i == len(tags):
            break
        tag = tags[i]
        if tag.kind == "comment":
            continue
        if tag.kind == "value":
            current.append(_parse_value(tag, source))
        elif tag.kind == "if":
            block = _OpenIf(tag.line, parent=current)
            block.pending = (tag.body, _condition(tag, source), tag.line)
            stack.append(block)
            current = block.body
        elif tag.kind == "elif":
            if not stack or stack[-1].otherwise is not None:
                raise RenderError("'elif' without matching 'if'", source=source, line=tag.line)
            block = stack[-1]
            block.close_branch()
            block.pending = (tag.body, _condition(tag, source), tag.line)
            current = block.body
        elif tag.kind == "else":
            if not stack or stack[-1].otherwise is not None:
                raise RenderError("'else' without matching 'if'", source=source, line=tag.line)
            block = stack[-1]
            block.close_branch()
            block.otherwise = []
            current = block.otherwise
        elif tag.kind == "end":
            if not stack:
                raise RenderError("'end' without matching 'if'", source=source, line=tag.line)
            block = stack.pop()
            block.close_branch()
            node = IfNode(tuple(block.branches), tuple(block.otherwise or ()))
            current = block.parent
            current.append(node)

    if stack:
        raise RenderError("unclosed 'if' block", source=source, line=stack[-1].line)
    return tuple(root)


# ---------------------------------------------------------------------------
# Compiled templates
# ---------------------------------------------------------------------------

def _collect_references(nodes: tuple[Node, ...], found: list[tuple[str, int]]) -> None:
    for node in nodes:
        if isinstance(node, ValueNode) and node.name is not None:
            found.append((node.name, node.line))
        elif isinstance(node, IfNode):
            for branch in node.branches:
                found.extend((name, branch.line) for name in sorted(references(branch.expr)))
                _collect_references(branch.body, found)
            _collect_references(node.otherwise, found)


@dataclass(frozen=True)
class CompiledTemplate:
    """A parsed template ready to be rendered against any context."""

    source: Optional[str]
    nodes: tuple[Node, ...]
    references: tuple[tuple[str, int], ...]

    def check(self, context: TemplateContext) -> None:
        """Fail on the first reference *context* does not define.

        Raises:
            RenderError: Naming the reference and the line it appears on.
        """
        for name, line in self.references:
            if name not in context:
                raise RenderError(
                    f"undefined reference '{name}'",
                    source=self.source,
                    reference=name,
                    line=line,
                )

    def render(self, context: TemplateContext) -> str:
        self.check(context)
        parts: list[str] = []
        self._walk(self.nodes, context, parts)
        return "".join(parts)

    def _walk(self, nodes: tuple[Node, ...], context: TemplateContext, out: list[str]) -> None:
        for node in nodes:
            if isinstance(node, TextNode):
                out.append(node.text)
            elif isinstance(node, ValueNode):
                out.append(self._value(node, context))
            else:
                for branch in node.branches:
                    try:
                        taken = evaluate_expr(branch.expr, branch.condition, context)
                    except ConditionEvaluationError as exc:
                        raise RenderError(str(exc), source=self.source, line=branch.line) from exc
                    if taken:
                        self._walk(branch.body, context, out)
                        break
                else:
                    self._walk(node.otherwise, context, out)

    def _value(self, node: ValueNode, context: TemplateContext) -> str:
        if node.name is not None:
            value = context[node.name]
        else:
            value = ContextValue(ValueKind.STRING, node.literal or "")
        for name, args in node.transforms:
            value = TRANSFORMS[name].func(value, *args)
        return value.render()


@lru_cache(maxsize=256)
def compile_template(text: str, source: Optional[str] = None) -> CompiledTemplate:
    """Parse *text* once; repeated calls with the same text are cached.

    Raises:
        RenderError: On malformed directives, unknown transforms and
            unbalanced blocks.
    """
    nodes = _parse(text, source)
    found: list[tuple[str, int]] = []
    _collect_references(nodes, found)
    return CompiledTemplate(source, nodes, tuple(found))


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------

class TemplateRenderer:
    """Renders template bodies and path templates against a context."""

    def render(
        self, text: str, context: TemplateContext, *, source: Optional[str] = None
    ) -> str:
        """Render template *text*.

        Args:
            text: Template body.
            context: Values available to the template.
            source: Name used in error messages (usually the template path).

        Returns:
            The rendered text.

        Raises:
            RenderError: On malformed templates or undefined references.
        """
        return compile_template(text, source).render(context)

    def render_path(
        self, template: str, context: TemplateContext, *, source: Optional[str] = None
    ) -> str:
        """Render a destination path template and normalise its separators."""
        rendered = self.render(template, context, source=source or template).strip()
        parts = [p for p in rendered.replace("\\", "/").split("/") if p not in ("", ".")]
        if not parts:
            raise RenderError(
                f"destination '{template}' renders to an empty path", source=source or template
            )
        return "/".join(parts)
