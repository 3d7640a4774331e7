"""Structured comment parser.

Turns one free-text documentation block (a handler docstring, a doc
comment) into an EndpointDoc:

    Get user

    Fetch one user by id.

    # Parameters
    - id (path): The user id

    # Responses
    - 200: The user
    - 404:
      description: No such user
      content:
        application/json:
          schema: NotFoundBody

Parsing never fails. Lines it cannot make sense of are skipped and
recorded as warnings on the result.
"""

import inspect
import json
import logging
import re

from pydantic import BaseModel

from apidoc_compiler.config import DEFAULT_CONTENT_TYPE
from apidoc_compiler.parser.base import (
    ElaborateResponse,
    EndpointDoc,
    ParamDoc,
    ParseWarning,
    RequestBodyDoc,
    ResponseDoc,
    ResponseExample,
    SimpleResponse,
)

logger = logging.getLogger(__name__)

PARAMETERS = "Parameters"
REQUEST_BODY = "Request Body"
RESPONSES = "Responses"

PARAM_LOCATIONS = ("path", "query", "header")
INDENT = 2

_HEADER_RE = re.compile(r"^#{1,2}\s+(?P<title>\S.*?)\s*$")
_PARAM_RE = re.compile(
    r"^[-*]\s+(?P<name>[^\s(]+)\s*\((?P<location>[^)]*)\)\s*:\s*(?P<description>.*)$"
)
_RESPONSE_RE = re.compile(r"^[-*]\s+(?P<status>\d+)\s*:\s*(?P<description>.*)$")
_KEY_RE = re.compile(r"^(?P<item>-\s+)?(?P<key>[^:\s][^:]*?)\s*:\s*(?P<value>.*)$")


class _Section(BaseModel):
    title: str
    lines: list[tuple[int, str]] = []


class _Node(BaseModel):
    """One `key: value` line of an elaborate response block."""

    key: str
    value: str
    line: int
    item: bool = False
    children: list["_Node"] = []


class _Entry(BaseModel):
    line: int
    status: int | None
    description: str
    body: list[tuple[int, str]] = []


def parse_doc(raw_text: str | None) -> EndpointDoc:
    """Parse a documentation block into an EndpointDoc."""
    warnings: list[ParseWarning] = []
    text = inspect.cleandoc(raw_text or "")

    preamble, sections = _split_sections(text.splitlines())
    summary, description = _parse_preamble(preamble)

    parameters: list[ParamDoc] = []
    request_body = None
    responses: dict[int, ResponseDoc] = {}
    extensions: dict[str, str] = {}

    for section in sections:
        if section.title == PARAMETERS:
            parameters.extend(_parse_parameters(section.lines, warnings))
        elif section.title == REQUEST_BODY:
            request_body = _parse_request_body(section.lines)
        elif section.title == RESPONSES:
            for status, response in _parse_responses(section.lines, warnings).items():
                if status in responses:
                    _warn(warnings, 0, f"Response {status} documented more than once, keeping the last one")
                responses[status] = response
        else:
            raw = "\n".join(t for _, t in section.lines).strip("\n")
            if section.title in extensions:
                raw = f"{extensions[section.title]}\n{raw}"
            extensions[section.title] = raw

    return EndpointDoc(
        summary=summary,
        description=description,
        parameters=parameters,
        request_body=request_body,
        responses=responses,
        extensions=extensions,
        warnings=warnings,
    )


def _warn(warnings: list[ParseWarning], line: int, message: str) -> None:
    logger.warning("line %d: %s", line, message)
    warnings.append(ParseWarning(line=line, message=message))


def _split_sections(lines: list[str]) -> tuple[list[str], list[_Section]]:
    """Split lines into the free-text preamble and the `#` sections after it."""
    preamble: list[str] = []
    sections: list[_Section] = []
    for lineno, line in enumerate(lines, start=1):
        match = _HEADER_RE.match(line)
        if match:
            sections.append(_Section(title=match.group("title")))
        elif sections:
            sections[-1].lines.append((lineno, line.rstrip()))
        else:
            preamble.append(line.strip())
    return preamble, sections


def _parse_preamble(lines: list[str]) -> tuple[str, str]:
    while lines and not lines[0]:
        lines = lines[1:]
    if not lines:
        return "", ""

    summary = lines[0]
    paragraphs: list[list[str]] = [[]]
    for line in lines[1:]:
        if line:
            paragraphs[-1].append(line)
        elif paragraphs[-1]:
            paragraphs.append([])
    description = "\n\n".join(" ".join(p) for p in paragraphs if p)
    return summary, description


def _parse_parameters(lines: list[tuple[int, str]], warnings: list[ParseWarning]) -> list[ParamDoc]:
    params = []
    for lineno, text in lines:
        stripped = text.strip()
        if not stripped:
            continue
        match = _PARAM_RE.match(stripped)
        if match is None:
            _warn(warnings, lineno, f"Unrecognized parameter line: {stripped!r}")
            continue

        location = match.group("location").strip().lower()
        if location not in PARAM_LOCATIONS:
            _warn(warnings, lineno, f"Unknown parameter location {location!r}, using 'query'")
            location = "query"

        params.append(
            ParamDoc(
                name=match.group("name"),
                location=location,
                description=match.group("description").strip(),
            )
        )
    return params


def _parse_request_body(lines: list[tuple[int, str]]) -> RequestBodyDoc:
    content_type = DEFAULT_CONTENT_TYPE
    schema_ref = None
    parts = []
    for _, text in lines:
        stripped = text.strip()
        if not stripped:
            continue
        if stripped.startswith("Content-Type:"):
            content_type = stripped.partition(":")[2].strip() or DEFAULT_CONTENT_TYPE
        elif stripped.startswith("Schema:"):
            schema_ref = stripped.partition(":")[2].strip() or None
        else:
            parts.append(stripped)
    return RequestBodyDoc(
        content_type=content_type,
        description=" ".join(parts),
        schema_ref=schema_ref,
    )


def _parse_responses(lines: list[tuple[int, str]], warnings: list[ParseWarning]) -> dict[int, ResponseDoc]:
    # bullets may sit indented under the header
    margin = min((len(t) - len(t.lstrip(" ")) for _, t in lines if t.strip()), default=0)
    lines = [(lineno, t[margin:]) for lineno, t in lines]

    entries: list[_Entry] = []
    for lineno, text in lines:
        if not text.strip():
            continue

        if text.startswith(" "):
            if entries:
                entries[-1].body.append((lineno, text))
            else:
                _warn(warnings, lineno, "Indented line outside of any response entry")
            continue

        match = _RESPONSE_RE.match(text)
        if match is None:
            _warn(warnings, lineno, f"Unrecognized response line: {text.strip()!r}")
            # swallows any indented lines that follow
            entries.append(_Entry(line=lineno, status=None, description=""))
            continue
        entries.append(
            _Entry(
                line=lineno,
                status=int(match.group("status")),
                description=match.group("description").strip(),
            )
        )

    responses: dict[int, ResponseDoc] = {}
    for entry in entries:
        if entry.status is None:
            continue
        response = _build_response(entry, warnings)
        if response is None:
            continue
        if entry.status in responses:
            _warn(warnings, entry.line, f"Response {entry.status} documented more than once, keeping the last one")
        responses[entry.status] = response
    return responses


def _build_response(entry: _Entry, warnings: list[ParseWarning]) -> ResponseDoc | None:
    status = entry.status
    if not 100 <= status <= 599:
        _warn(warnings, entry.line, f"Invalid HTTP status code {status}")
        return None

    if entry.description:
        if entry.body:
            _warn(warnings, entry.body[0][0], f"Ignoring indented lines under simple response {status}")
        return SimpleResponse(status=status, description=entry.description)

    nodes = _indent_tree(entry.body, warnings)
    if nodes is None:
        _warn(warnings, entry.line, f"Dropping response {status}: unrecognized indentation")
        return None
    return _build_elaborate(status, entry.line, nodes, warnings)


def _indent_tree(body: list[tuple[int, str]], warnings: list[ParseWarning]) -> list[_Node] | None:
    """Nest `key: value` lines by their two-space indentation level."""
    root = _Node(key="", value="", line=0)
    stack: list[tuple[int, _Node]] = [(0, root)]
    for lineno, text in body:
        indent = len(text) - len(text.lstrip(" "))
        if indent % INDENT:
            _warn(warnings, lineno, f"Indentation of {indent} spaces is not a multiple of {INDENT}")
            return None

        level = indent // INDENT
        while stack[-1][0] >= level:
            stack.pop()
        if level > stack[-1][0] + 1:
            _warn(warnings, lineno, "Line is indented too deeply")
            return None

        match = _KEY_RE.match(text.strip())
        if match is None:
            _warn(warnings, lineno, f"Expected 'key: value', got {text.strip()!r}")
            return None

        node = _Node(
            key=match.group("key").strip(),
            value=match.group("value").strip(),
            line=lineno,
            item=bool(match.group("item")),
        )
        stack[-1][1].children.append(node)
        stack.append((level, node))
    return root.children


def _build_elaborate(status: int, line: int, nodes: list[_Node], warnings: list[ParseWarning]) -> ElaborateResponse | None:
    description = None
    content_type = DEFAULT_CONTENT_TYPE
    schema_ref = None
    examples: list[ResponseExample] = []

    def read_media(media: _Node) -> None:
        nonlocal content_type, schema_ref
        content_type = media.key
        for child in media.children:
            if child.key == "schema":
                schema_ref = child.value or None
            elif child.key == "examples":
                examples.extend(_build_examples(child.children, warnings))
            else:
                _warn(warnings, child.line, f"Unknown key {child.key!r} under {media.key}")

    for node in nodes:
        if node.key == "description":
            description = _unquote(node.value)
        elif node.key == "content":
            for media in node.children:
                read_media(media)
        elif "/" in node.key:
            read_media(node)
        elif node.key == "schema":
            schema_ref = node.value or None
        elif node.key == "examples":
            examples.extend(_build_examples(node.children, warnings))
        else:
            _warn(warnings, node.line, f"Unknown key {node.key!r} in response {status}")

    if description is None:
        _warn(warnings, line, f"Dropping response {status}: missing 'description:'")
        return None

    return ElaborateResponse(
        status=status,
        description=description,
        content_type=content_type,
        schema_ref=schema_ref,
        examples=examples,
    )


def _build_examples(nodes: list[_Node], warnings: list[ParseWarning]) -> list[ResponseExample]:
    examples = []
    for node in nodes:
        if node.key != "name":
            _warn(warnings, node.line, "Example entries must start with '- name:'")
            continue
        attrs = {child.key: _unquote(child.value) for child in node.children}
        examples.append(
            ResponseExample(
                name=_unquote(node.value),
                summary=attrs.get("summary"),
                value=_example_value(attrs.get("value", "")),
            )
        )
    return examples


def _example_value(text: str):
    if text.startswith(("{", "[")):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text
