from dataclasses import dataclass

from .locator import EnclosingScope, locate
from ..syntax.model import File

# Bytes which, at the start of a line, likely close the function (}) or begin the
# next top level declaration (func, var, const, type) or comment
BOUNDARY_BYTES = b'}fvct/'
LINE_BREAKS = b'\r\n'
CLOSE_BRACE = ord('}')


@dataclass
class FixRange:
    start: int = 0
    end: int = 0
    tail: bytes = b''
    """Inserted after the replacement to balance a missing closing brace"""

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, offset: int) -> bool:
        return self.start <= offset <= self.end


def find_line_boundary(tail: bytes) -> int:
    """Index of the first boundary byte at the start of a line, -1 if there is none"""
    was_newline = False
    for i, b in enumerate(tail):
        if b in BOUNDARY_BYTES:
            if was_newline:
                return i
            continue
        was_newline = b in LINE_BREAKS
    return -1


def find_line_closing_brace(text: bytes) -> int:
    """Index of the last closing brace which ends a line, -1 if there is none"""
    was_newline = False
    for i in range(len(text) - 1, -1, -1):
        b = text[i]
        if b == CLOSE_BRACE:
            if was_newline:
                return i
            continue
        was_newline = b in LINE_BREAKS
    return -1


def resolve_range(scope: EnclosingScope, content: bytes, offset: int) -> FixRange:
    statement, block, function_body = scope.statement, scope.block, scope.function_body

    # By default take from the start of the statement to the end of the enclosing block,
    # once a statement is removed the code after it is usually broken as well
    if block is not None and block.has_rbrace and statement is not None:
        return FixRange(statement.start, block.rbrace)

    if function_body is None or statement is None:
        return FixRange()

    # The nested block cannot be trusted, continue from the statement of the function body
    if block is not function_body:
        for stmt in function_body.stmts:
            if stmt.start < offset:
                statement = stmt
            else:
                break

    start = statement.start
    tail = content[start:]

    end = find_line_boundary(tail)
    if end >= 0 and tail[end] == CLOSE_BRACE:
        return FixRange(start, start + end)

    if end < 0:
        end = len(tail) - 1

    close_brace = find_line_closing_brace(tail[:end])
    if close_brace >= 0:
        return FixRange(start, start + close_brace)

    # Reached the next declaration or the end of file without a closing brace
    return FixRange(start, start + end, b'}')


def find_range_to_fix(tree: File, content: bytes, offset: int) -> FixRange:
    return resolve_range(locate(tree, offset), content, offset)
