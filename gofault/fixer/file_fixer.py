from logging import getLogger

from .patch import apply_fault
from .resolver import find_range_to_fix
from .structural import fix_structurally
from ..common.util import SimpleEnum
from ..syntax.model import File
from ..toolchain.overlay import Overlay

log = getLogger(__name__)


class Fix(SimpleEnum):
    """Outcome of fixing a single error"""

    NONE = 'NONE'
    """Not fixed, the file is left as it was"""

    STRUCTURAL = 'STRUCTURAL'
    """Repaired in place, no behavior visible at runtime"""

    DEFERRED = 'DEFERRED'
    """Replaced with a runtime fault carrying the error message"""

    def __bool__(self) -> bool:
        return self is not Fix.NONE


class FileFixer:

    def __init__(self, overlay: Overlay) -> None:
        self.overlay = overlay

    def fix_error(self, tree: File, path: str, content: bytes, offset: int, message: str) -> Fix:
        patched = fix_structurally(tree, content, offset, message)
        if patched is not None:
            self.overlay.update(path, patched)
            return Fix.STRUCTURAL

        # Errors at the end of file are reported past the last token
        offset = min(offset, len(content.rstrip()))

        # Anything else panics at runtime when the affected range is reached
        fix_range = find_range_to_fix(tree, content, offset)
        if fix_range.is_empty:
            log.debug('Error outside of function declaration: %s', message)
            return Fix.NONE

        if not fix_range.contains(offset):
            log.debug('Range does not include error: %d %d %d', fix_range.start, offset, fix_range.end)
            return Fix.NONE

        self.overlay.update(path, apply_fault(content, fix_range, offset, message))
        return Fix.DEFERRED
