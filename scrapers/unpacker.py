"""
Unpacker for Dean Edwards' p,a,c,k,e,d JavaScript packer.

Embed hosts such as Filemoon ship their player setup as
  eval(function(p,a,c,k,e,d){...}('<payload>',<radix>,<count>,'<words>'.split('|')))
Unpacking substitutes every base-<radix> token in the payload with its word.
"""
import re
from typing import Optional

PACKED_REGEX = re.compile(
    r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?\}\(\s*'(.*?)',\s*(\d+),\s*(\d+),\s*'(.*?)'\.split\('\|'\)",
    re.DOTALL,
)
WORD_REGEX = re.compile(r'\b\w+\b')
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def detect(text: str) -> bool:
    return PACKED_REGEX.search(text) is not None


def _decode(word: str, radix: int) -> int:
    value = 0
    for char in word:
        digit = ALPHABET.index(char)
        if digit >= radix:
            raise ValueError(f"{word!r} is not a base-{radix} number")
        value = value * radix + digit
    return value


def unpack(text: str) -> Optional[str]:
    """Unpacked source of the first packed block in text, or None when there is none."""
    match = PACKED_REGEX.search(text)
    if not match:
        return None

    payload, radix, count, words = match.groups()
    radix = int(radix)
    symbols = words.split('|')
    symbols += [''] * (int(count) - len(symbols))
    # The packer escapes quotes inside the single-quoted payload
    payload = payload.replace("\\'", "'")

    def replace(token: re.Match) -> str:
        word = token.group(0)
        try:
            index = _decode(word, radix)
        except ValueError:
            return word
        if index < len(symbols) and symbols[index]:
            return symbols[index]
        return word

    return WORD_REGEX.sub(replace, payload)
