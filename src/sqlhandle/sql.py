"""
SQL text processing for statement handles.

Statement handles always carry SQL written with ``?`` positional
placeholders. This module tokenizes that text once so placeholders inside
quoted literals and comments are never mistaken for parameters:

    SQL → Tokenize → Rewrite placeholders for the driver's paramstyle
                   → Render arguments for diagnostics

Main entry points:
- `standardize_placeholders()` - Convert ``?`` to the dialect placeholder
- `render_placeholders()` - Substitute rendered values for diagnostics
- `parse_call()` - Split a ``CALL`` statement into procedure and arguments
- `insert_target()` - Table named by an ``INSERT`` statement
- `ddl_target()` - Table created, dropped or altered by a DDL statement
"""
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    COMMENT = auto()
    QMARK = auto()
    PERCENT = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE | re.DOTALL)

_CALL = re.compile(r"""
    ^\s*\{?\s*
    (?:\?\s*=\s*)?
    call\s+
    (?P<name>[\w.$]+|"(?:[^"]|"")+")
    \s*(?:\((?P<args>.*)\))?
    \s*\}?\s*;?\s*$
""", re.IGNORECASE | re.VERBOSE | re.DOTALL)

_INSERT_TARGET = re.compile(r"""
    ^\s*insert\s+(?:or\s+\w+\s+)?into\s+
    (?P<table>(?:"(?:[^"]|"")+"|[\w$]+)(?:\.(?:"(?:[^"]|"")+"|[\w$]+))?)
""", re.IGNORECASE | re.VERBOSE)

_DDL_TARGET = re.compile(r"""
    ^\s*(?:create|drop|alter)\s+(?:temp\s+|temporary\s+)?table\s+
    (?:if\s+(?:not\s+)?exists\s+)?
    (?P<table>(?:"(?:[^"]|"")+"|[\w$]+)(?:\.(?:"(?:[^"]|"")+"|[\w$]+))?)
""", re.IGNORECASE | re.VERBOSE)


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('comment'):
            ttype = TokenType.COMMENT
        elif match.group('qmark'):
            ttype = TokenType.QMARK
        else:
            ttype = TokenType.PERCENT

        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any ``?`` placeholders outside literals."""
    if not sql or '?' not in sql:
        return False
    return any(t.type == TokenType.QMARK for t in tokenize_sql(sql))


def count_placeholders(sql: str | None) -> int:
    """Count ``?`` placeholders outside literals and comments."""
    if not sql or '?' not in sql:
        return 0
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.QMARK)


def standardize_placeholders(sql: str, placeholder: str = '?') -> str:
    """Rewrite ``?`` placeholders for a driver's paramstyle.

    For ``%s`` (format) paramstyles every bare ``%`` is doubled, including
    those inside literals and comments, because format-style drivers scan
    the whole statement text once parameters are supplied.

    Parameters
        sql: SQL query string with ``?`` placeholders
        placeholder: Placeholder the driver expects

    Returns
        SQL with standardized placeholders
    """
    if not sql or placeholder == '?':
        return sql

    escape = placeholder.startswith('%')
    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.QMARK:
            result.append(placeholder)
        elif escape and token.type == TokenType.PERCENT:
            result.append('%%')
        elif escape and token.type in {TokenType.STRING_LITERAL, TokenType.COMMENT}:
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def render_placeholders(sql: str, values: Iterable, render: Callable = str) -> str:
    """Replace each ``?`` outside literals with a rendered value.

    Placeholders left over once ``values`` is exhausted stay as ``?``.
    """
    if not sql:
        return sql or ''
    values = iter(values)
    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.QMARK:
            try:
                result.append(render(next(values)))
            except StopIteration:
                result.append(token.text)
        else:
            result.append(token.text)
    return ''.join(result)


def parse_call(sql: str | None) -> tuple[str, list[str]] | None:
    """Split ``CALL name(a, b)`` (optionally in ``{}`` escape braces).

    Returns
        (procedure name, argument expressions) or None when the text is not
        a procedure call
    """
    if not sql:
        return None
    match = _CALL.match(sql)
    if not match:
        return None
    args = match.group('args')
    if args is None or not args.strip():
        return match.group('name'), []
    return match.group('name'), _split_arguments(args)


def _split_arguments(text: str) -> list[str]:
    """Split a call argument list on top-level commas."""
    parts, current, depth = [], [], 0
    for token in tokenize_sql(text):
        if token.type != TokenType.SQL_TEXT:
            current.append(token.text)
            continue
        for char in token.text:
            if char == ',' and depth == 0:
                parts.append(''.join(current).strip())
                current = []
                continue
            if char == '(':
                depth += 1
            elif char == ')':
                depth -= 1
            current.append(char)
    parts.append(''.join(current).strip())
    return parts


def insert_target(sql: str | None) -> tuple[str | None, str] | None:
    """Return (schema, table) named by an INSERT statement, or None.
    """
    return _qualified_table(_INSERT_TARGET, sql)


def ddl_target(sql: str | None) -> tuple[str | None, str] | None:
    """Return (schema, table) named by CREATE, DROP or ALTER TABLE, or None.
    """
    return _qualified_table(_DDL_TARGET, sql)


def _qualified_table(pattern: re.Pattern, sql: str | None) -> tuple[str | None, str] | None:
    if not sql:
        return None
    match = pattern.match(sql)
    if not match:
        return None
    parts = re.findall(r'"(?:[^"]|"")+"|[\w$]+', match.group('table'))
    names = [unquote_identifier(p) for p in parts]
    if len(names) == 2:
        return names[0], names[1]
    return None, names[0]


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def unquote_identifier(identifier: str) -> str:
    """Strip identifier quoting applied by `quote_identifier`."""
    if len(identifier) >= 2 and identifier[0] == identifier[-1] == '"':
        return identifier[1:-1].replace('""', '"')
    return identifier
