"""Compile custom route ``source`` patterns into anchored regexes.

Supports the path-to-regexp grammar used by route configs: named params
(``:slug``), custom param patterns (``:slug(\\d+)``), unnamed groups
(``(.*)``), ``{...}`` groups and the ``?``, ``*`` and ``+`` modifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_ESCAPE_RE = re.compile(r"([.+*?=^!:${}()\[\]|/\\])")
_NAME_CHAR_RE = re.compile(r"[0-9A-Za-z_]")
_PREFIXES = "./"


@dataclass(frozen=True, slots=True)
class Key:
    name: str | int
    prefix: str
    suffix: str
    pattern: str
    modifier: str


@dataclass(frozen=True, slots=True)
class _LexToken:
    kind: str
    index: int
    value: str


def escape_string(value: str) -> str:
    return _ESCAPE_RE.sub(r"\\\1", value)


def _lexer(source: str) -> list[_LexToken]:
    tokens: list[_LexToken] = []
    i = 0
    while i < len(source):
        char = source[i]
        if char in "*+?":
            tokens.append(_LexToken("MODIFIER", i, char))
            i += 1
            continue
        if char == "\\":
            tokens.append(_LexToken("ESCAPED_CHAR", i, source[i + 1 : i + 2]))
            i += 2
            continue
        if char == "{":
            tokens.append(_LexToken("OPEN", i, char))
            i += 1
            continue
        if char == "}":
            tokens.append(_LexToken("CLOSE", i, char))
            i += 1
            continue
        if char == ":":
            j = i + 1
            while j < len(source) and _NAME_CHAR_RE.match(source[j]):
                j += 1
            name = source[i + 1 : j]
            if not name:
                raise ValueError(f"missing parameter name at {i} in {source!r}")
            tokens.append(_LexToken("NAME", i, name))
            i = j
            continue
        if char == "(":
            depth = 1
            pattern = ""
            j = i + 1
            if j < len(source) and source[j] == "?":
                raise ValueError(f'pattern cannot start with "?" at {j} in {source!r}')
            while j < len(source):
                if source[j] == "\\":
                    pattern += source[j : j + 2]
                    j += 2
                    continue
                if source[j] == ")":
                    depth -= 1
                    if depth == 0:
                        j += 1
                        break
                elif source[j] == "(":
                    depth += 1
                    if j + 1 >= len(source) or source[j + 1] != "?":
                        raise ValueError(f"capturing groups are not allowed at {j} in {source!r}")
                pattern += source[j]
                j += 1
            if depth:
                raise ValueError(f"unbalanced pattern at {i} in {source!r}")
            if not pattern:
                raise ValueError(f"missing pattern at {i} in {source!r}")
            tokens.append(_LexToken("PATTERN", i, pattern))
            i = j
            continue
        tokens.append(_LexToken("CHAR", i, char))
        i += 1
    tokens.append(_LexToken("END", i, ""))
    return tokens


def parse(source: str, delimiter: str = "/") -> list[str | Key]:
    tokens = _lexer(source)
    default_pattern = f"[^{escape_string(delimiter)}]+?"
    result: list[str | Key] = []
    key = 0
    i = 0
    path = ""

    def try_consume(kind: str) -> str | None:
        nonlocal i
        if i < len(tokens) and tokens[i].kind == kind:
            value = tokens[i].value
            i += 1
            return value
        return None

    def must_consume(kind: str) -> str:
        value = try_consume(kind)
        if value is not None:
            return value
        token = tokens[i]
        raise ValueError(f"unexpected {token.kind} at {token.index}, expected {kind}")

    def consume_text() -> str:
        text = ""
        while True:
            value = try_consume("CHAR")
            if value is None:
                value = try_consume("ESCAPED_CHAR")
            if value is None:
                return text
            text += value

    while i < len(tokens):
        char = try_consume("CHAR")
        name = try_consume("NAME")
        pattern = try_consume("PATTERN")
        if name is not None or pattern is not None:
            prefix = char or ""
            if prefix not in _PREFIXES:
                path += prefix
                prefix = ""
            if path:
                result.append(path)
                path = ""
            if name is None:
                param_name: str | int = key
                key += 1
            else:
                param_name = name
            result.append(
                Key(
                    name=param_name,
                    prefix=prefix,
                    suffix="",
                    pattern=pattern or default_pattern,
                    modifier=try_consume("MODIFIER") or "",
                )
            )
            continue

        value = char if char is not None else try_consume("ESCAPED_CHAR")
        if value is not None:
            path += value
            continue

        if path:
            result.append(path)
            path = ""

        if try_consume("OPEN") is not None:
            prefix = consume_text()
            group_name = try_consume("NAME") or ""
            group_pattern = try_consume("PATTERN") or ""
            suffix = consume_text()
            must_consume("CLOSE")
            if group_name:
                resolved_name: str | int = group_name
            elif group_pattern:
                resolved_name = key
                key += 1
            else:
                resolved_name = ""
            result.append(
                Key(
                    name=resolved_name,
                    prefix=prefix,
                    suffix=suffix,
                    pattern=default_pattern if group_name and not group_pattern else group_pattern,
                    modifier=try_consume("MODIFIER") or "",
                )
            )
            continue

        must_consume("END")

    return result


def tokens_to_regexp(tokens: list[str | Key], *, strict: bool = True, delimiter: str = "/") -> str:
    route = "^"
    for token in tokens:
        if isinstance(token, str):
            route += escape_string(token)
            continue
        prefix = escape_string(token.prefix)
        suffix = escape_string(token.suffix)
        if token.pattern:
            if prefix or suffix:
                if token.modifier in ("+", "*"):
                    mod = "?" if token.modifier == "*" else ""
                    route += (
                        f"(?:{prefix}((?:{token.pattern})"
                        f"(?:{suffix}{prefix}(?:{token.pattern}))*){suffix}){mod}"
                    )
                else:
                    route += f"(?:{prefix}({token.pattern}){suffix}){token.modifier}"
            else:
                route += f"({token.pattern}){token.modifier}"
        else:
            route += f"(?:{prefix}{suffix}){token.modifier}"
    if not strict:
        route += f"[{escape_string(delimiter)}]?"
    return route + "$"


def path_to_regexp(
    source: str, *, strict: bool = True, delimiter: str = "/"
) -> tuple[str, list[Key]]:
    """Return the regex source for ``source`` and its parameter keys."""
    tokens = parse(source, delimiter=delimiter)
    keys = [token for token in tokens if isinstance(token, Key) and token.pattern]
    return tokens_to_regexp(tokens, strict=strict, delimiter=delimiter), keys
