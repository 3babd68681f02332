import unicodedata

from .resolver import FixRange
from ..common.config import C

GO_ESCAPES = {
    '\a': r'\a',
    '\b': r'\b',
    '\f': r'\f',
    '\n': r'\n',
    '\r': r'\r',
    '\t': r'\t',
    '\v': r'\v',
    '\\': r'\\',
    '"': r'\"',
}


def newlines_in(data: bytes) -> bytes:
    return bytes(b for b in data if b in b'\r\n')


def is_go_printable(c: str) -> bool:
    if c == ' ':
        return True
    return unicodedata.category(c)[0] in 'LMNPS'


def go_quote(text: str) -> str:
    """Go string literal of the text, escaped the way strconv.Quote does"""
    parts = ['"']
    for c in text:
        escape = GO_ESCAPES.get(c)
        if escape is not None:
            parts.append(escape)
        elif is_go_printable(c):
            parts.append(c)
        elif ord(c) < 0x80:
            parts.append(f'\\x{ord(c):02x}')
        elif ord(c) <= 0xffff:
            parts.append(f'\\u{ord(c):04x}')
        else:
            parts.append(f'\\U{ord(c):08x}')
    parts.append('"')
    return ''.join(parts)


def fault_statement(message: str) -> bytes:
    return f'{C.PANIC_FUNCTION}({go_quote(message)})'.encode('utf-8')


def synthesize_fault(content: bytes, fix_range: FixRange, offset: int, message: str) -> bytes:
    """Replacement for the range: a runtime fault carrying the message

    The line breaks of the removed text are kept on both sides of the
    fault, so positions already reported after the range stay valid.

    """
    newlines_before = newlines_in(content[fix_range.start:offset])
    newlines_after = newlines_in(content[offset:fix_range.end])
    return newlines_before + fault_statement(message) + newlines_after + fix_range.tail


def apply_fault(content: bytes, fix_range: FixRange, offset: int, message: str) -> bytes:
    replacement = synthesize_fault(content, fix_range, offset, message)
    return content[:fix_range.start] + replacement + content[fix_range.end:]
