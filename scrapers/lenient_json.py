"""
Permissive parser for the JSON-like object literals that video players embed in page scripts.

Accepted on top of strict JSON:
  - single-quoted strings
  - unquoted object keys and bare identifier values (read as strings)
  - trailing commas in arrays and objects
  - `undefined` (read as None)

Anything else is rejected with LenientJSONError, as is nesting deeper than MAX_DEPTH.
"""
from typing import Any, Dict, List

_ESCAPES = {
    '"': '"', "'": "'", '\\': '\\', '/': '/',
    'b': '\b', 'f': '\f', 'n': '\n', 'r': '\r', 't': '\t',
}
_LITERALS = {'true': True, 'false': False, 'null': None, 'undefined': None}
_NUMBER_START = set('0123456789+-.')
_NUMBER_CHARS = _NUMBER_START | set('eE')
MAX_DEPTH = 64


class LenientJSONError(ValueError):
    def __init__(self, message: str, pos: int):
        super().__init__(f"{message} at position {pos}")
        self.pos = pos


def loads(text: str) -> Any:
    """Parse a single value from text; trailing garbage is an error."""
    parser = _Parser(text)
    value = parser.parse_value()
    parser.skip_whitespace()
    if parser.pos != len(text):
        raise LenientJSONError("Unexpected trailing data", parser.pos)
    return value


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.depth = 0

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_whitespace()
        if self.pos >= len(self.text):
            raise LenientJSONError("Unexpected end of input", self.pos)
        return self.text[self.pos]

    def parse_value(self) -> Any:
        char = self.peek()
        if char in '{[':
            if self.depth >= MAX_DEPTH:
                raise LenientJSONError("Nesting too deep", self.pos)
            self.depth += 1
            try:
                return self.parse_object() if char == '{' else self.parse_array()
            finally:
                self.depth -= 1
        if char in ('"', "'"):
            return self.parse_string()
        if char in _NUMBER_START:
            return self.parse_number()
        if char.isalpha() or char in '_$':
            word = self.parse_identifier()
            return _LITERALS.get(word, word)
        raise LenientJSONError(f"Unexpected character {char!r}", self.pos)

    def parse_object(self) -> Dict[str, Any]:
        self.pos += 1
        result: Dict[str, Any] = {}
        while True:
            char = self.peek()
            if char == '}':
                self.pos += 1
                return result
            key = self.parse_key()
            if self.peek() != ':':
                raise LenientJSONError("Expected ':'", self.pos)
            self.pos += 1
            result[key] = self.parse_value()
            char = self.peek()
            if char == ',':
                self.pos += 1
            elif char != '}':
                raise LenientJSONError("Expected ',' or '}'", self.pos)

    def parse_array(self) -> List[Any]:
        self.pos += 1
        result: List[Any] = []
        while True:
            char = self.peek()
            if char == ']':
                self.pos += 1
                return result
            result.append(self.parse_value())
            char = self.peek()
            if char == ',':
                self.pos += 1
            elif char != ']':
                raise LenientJSONError("Expected ',' or ']'", self.pos)

    def parse_key(self) -> str:
        char = self.peek()
        if char in ('"', "'"):
            return self.parse_string()
        if char.isalnum() or char in '_$':
            return self.parse_identifier()
        raise LenientJSONError(f"Invalid object key start {char!r}", self.pos)

    def parse_identifier(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and (self.text[self.pos].isalnum() or self.text[self.pos] in '_$'):
            self.pos += 1
        return self.text[start:self.pos]

    def parse_string(self) -> str:
        quote = self.text[self.pos]
        self.pos += 1
        chunks = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == quote:
                self.pos += 1
                return ''.join(chunks)
            if char == '\\':
                self.pos += 1
                if self.pos >= len(self.text):
                    break
                escape = self.text[self.pos]
                if escape == 'u':
                    hex_digits = self.text[self.pos + 1:self.pos + 5]
                    if len(hex_digits) != 4:
                        raise LenientJSONError("Truncated unicode escape", self.pos)
                    try:
                        chunks.append(chr(int(hex_digits, 16)))
                    except ValueError:
                        raise LenientJSONError("Invalid unicode escape", self.pos)
                    self.pos += 5
                    continue
                chunks.append(_ESCAPES.get(escape, escape))
                self.pos += 1
                continue
            chunks.append(char)
            self.pos += 1
        raise LenientJSONError("Unterminated string", self.pos)

    def parse_number(self) -> Any:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in _NUMBER_CHARS:
            self.pos += 1
        token = self.text[start:self.pos]
        try:
            if any(c in token for c in '.eE'):
                return float(token)
            return int(token)
        except ValueError:
            raise LenientJSONError(f"Invalid number {token!r}", start)
