"""
Type declaration grammar.

Property types are written as short declarations such as ``int``,
``varchar(256)`` or ``Post[]``:

    type      := IDENT [ precision ] [ "[" "]" ]
    precision := "(" INT ")"

Main entry points:
- `tokenize(text)` - Split a declaration into identifier and symbol tokens
- `parse_type(type_spec)` - Parse a declaration into a `ParsedType`
"""
import re
from dataclasses import dataclass
from enum import Enum

import cachetools

from tableorm.exceptions import ParseError

__all__ = [
    'ColumnType',
    'ParsedType',
    'PRIMITIVES',
    'SYMBOLS',
    'is_primitive',
    'tokenize',
    'parse_type',
    'clear_parse_cache',
]

SYMBOLS = frozenset('()[]{}')

_INT_TOKEN = re.compile(r'\d+')


class ColumnType(Enum):
    """Primitive column types understood by the ORM."""
    INT = 'int'
    VARCHAR = 'varchar'
    MEDIUMTEXT = 'mediumtext'
    BIT = 'bit'
    DOUBLE = 'double'
    DATETIME = 'datetime'


PRIMITIVES = frozenset(t.value for t in ColumnType)

# only varchar carries a length
_PRECISION_TYPES = frozenset({ColumnType.VARCHAR.value})


def is_primitive(token: str) -> bool:
    """Check if a type token names a primitive column type.
    """
    return token in PRIMITIVES


@dataclass(frozen=True, slots=True)
class ParsedType:
    """Parsed form of a property type declaration."""
    data_type: str
    precision: int | None = None
    is_array: bool = False

    @property
    def is_primitive(self) -> bool:
        return is_primitive(self.data_type)

    @property
    def column_type(self) -> ColumnType | None:
        """Primitive column type, or None for relations."""
        if not self.is_primitive:
            return None
        return ColumnType(self.data_type)

    def __str__(self) -> str:
        text = self.data_type
        if self.precision is not None:
            text += f'({self.precision})'
        if self.is_array:
            text += '[]'
        return text


def tokenize(text: str) -> list[str]:
    """Split a type declaration into tokens in a single pass.

    Whitespace separates tokens, each of ``()[]{}`` is a token on its own,
    and every other run of characters becomes one identifier token.

    Parameters
        text: declaration text, e.g. ``varchar(24) userId``

    Returns
        Tokens in left-to-right order
    """
    tokens = []
    current: list[str] = []

    for char in text:
        if char.isspace() or char in SYMBOLS:
            if current:
                tokens.append(''.join(current))
                current = []
            if char in SYMBOLS:
                tokens.append(char)
        else:
            current.append(char)

    if current:
        tokens.append(''.join(current))
    return tokens


class _TokenStream:
    """Cursor over a token list that reports errors against the source text."""

    def __init__(self, tokens: list[str], text: str) -> None:
        self.tokens = tokens
        self.text = text
        self.pos = 0

    def peek(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def next(self) -> str | None:
        token = self.peek()
        self.pos += 1
        return token

    def expect(self, expected: str) -> None:
        token = self.next()
        if token != expected:
            raise self.error(f"'{expected}'", token)

    def error(self, expected: str, token: str | None) -> ParseError:
        got = 'end of input' if token is None else f"'{token}'"
        return ParseError(f'parse_type() expected {expected} but got {got} instead. type: {self.text}',
                          token=token, text=self.text)


_PARSE_CACHE: cachetools.LRUCache = cachetools.LRUCache(maxsize=512)


@cachetools.cached(cache=_PARSE_CACHE)
def parse_type(type_spec: str) -> ParsedType:
    """Parse a property type declaration.

    A precision group is only accepted on ``varchar``; whether a varchar
    actually has one, and whether a non-primitive name resolves to a
    declared table, is checked by the validator.

    Raises ParseError on any deviation from the grammar.
    """
    stream = _TokenStream(tokenize(type_spec), type_spec)

    data_type = stream.next()
    if data_type is None or data_type in SYMBOLS:
        raise stream.error('datatype', data_type)

    precision = None
    is_array = False

    if stream.peek() == '(':
        stream.next()
        token = stream.next()
        if token is None or not _INT_TOKEN.fullmatch(token):
            raise stream.error('int', token)
        if is_primitive(data_type) and data_type not in _PRECISION_TYPES:
            raise ParseError(f"parse_type() unexpected precision on '{data_type}' "
                             f'(only varchar can have precision). type: {type_spec}',
                             token=token, text=type_spec)
        precision = int(token)
        stream.expect(')')

    if stream.peek() == '[':
        stream.next()
        stream.expect(']')
        is_array = True

    trailing = stream.peek()
    if trailing is not None:
        if is_array:
            expected = 'end of input'
        elif precision is None:
            expected = "'(' or '['"
        else:
            expected = "'['"
        raise stream.error(expected, trailing)

    return ParsedType(data_type=data_type, precision=precision, is_array=is_array)


def clear_parse_cache() -> None:
    _PARSE_CACHE.clear()
