from logging import getLogger
from typing import List, Optional

from .file_fixer import FileFixer, Fix
from ..common.config import C
from ..common.util import echo, offset_of_position, position_of_offset
from ..syntax.go_parser import GoParser
from ..syntax.model import ParseResult
from ..toolchain.diagnostics import CompileError

log = getLogger(__name__)


def last_changed_line(before: bytes, after: bytes) -> int:
    """Line of the original content where the difference to the patched content ends

    Patches keep the line breaks, so lines below it are at the same position in both.

    """
    limit = min(len(before), len(after))
    prefix = 0
    while prefix < limit and before[prefix] == after[prefix]:
        prefix += 1
    suffix = 0
    while suffix < limit - prefix and before[-1 - suffix] == after[-1 - suffix]:
        suffix += 1
    return position_of_offset(before, max(prefix, len(before) - suffix))[0]


class FixpointParser:
    """Parses a source file, deferring its syntax errors until it parses cleanly

    Each round fixes one syntax error and parses the patched content again.
    The errors the compiler reported for the file are fixed first, in source
    order, with their original message. Without reported errors the first
    error found by the parser is fixed instead. Gives up (returning the last
    result, errors included) when an error cannot be fixed or after a
    bounded number of parse attempts.

    """

    def __init__(self, parser: GoParser, file_fixer: FileFixer, max_attempts: int = 0) -> None:
        self.parser = parser
        self.file_fixer = file_fixer
        self.max_attempts = max_attempts or C.MAX_PARSE_ATTEMPTS

    def parse(self, path: str, content: bytes, reported: Optional[List[CompileError]] = None) -> ParseResult:
        pending = sorted(reported or [], key=lambda e: (e.line, e.column))
        attempt = 0
        while True:
            attempt += 1
            result = self.parser.parse(content)
            if result.ok or attempt >= self.max_attempts:
                return result

            fix = Fix.NONE
            while pending and not fix:
                error = pending.pop(0)
                offset = offset_of_position(content, error.line, error.column)
                fix = self.file_fixer.fix_error(result.tree, path, content, offset, error.message)
                if fix == Fix.DEFERRED:
                    echo(str(error))
                elif not fix:
                    log.debug('Failed to fix reported error: %s', error)

            if not fix and reported is None:
                parse_error = result.errors[0]
                fix = self.file_fixer.fix_error(result.tree, path, content, parse_error.offset, parse_error.message)
                if fix == Fix.DEFERRED:
                    line, column = position_of_offset(content, parse_error.offset)
                    echo(f'{path}:{line}:{column}: {parse_error.message}')
                elif not fix:
                    log.debug('Failed to fix syntax error in %s at offset %d: %s', path, parse_error.offset, parse_error.message)

            if not fix:
                return result

            patched = self.file_fixer.overlay[path]

            # Reported positions inside the patched lines are stale
            changed = last_changed_line(content, patched)
            pending = [error for error in pending if error.line > changed]

            content = patched
