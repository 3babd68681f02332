import os
import re
from dataclasses import dataclass
from logging import getLogger
from typing import List, Dict, Optional, Tuple

from .file_fixer import FileFixer, Fix
from .fixpoint_parser import FixpointParser
from .loader import PackageLoader, Package, SourceFile
from ..common.config import C
from ..common.util import echo, offset_of_position, read_binary_file
from ..syntax.go_parser import GoParser
from ..syntax.model import File
from ..toolchain.diagnostics import CompileError
from ..toolchain.go import GoToolchain
from ..toolchain.overlay import Overlay

log = getLogger(__name__)

# //line filename:line or //line filename:line:column at the start of a line
RX_LINE_DIRECTIVE = re.compile(r'^//line (?P<path>.+?):(?P<line>\d+)(?::(?P<column>\d+))?\s*$')


@dataclass
class ErrorSite:
    path: str
    content: bytes
    tree: File
    offset: int


def map_generated_position(content: bytes, line: int, column: int) -> Optional[Tuple[str, int, int]]:
    """Original position of a position in a generated source, following its //line directives"""
    lines = content.split(b'\n')
    for index in range(min(line - 1, len(lines)) - 1, -1, -1):
        m = RX_LINE_DIRECTIVE.match(lines[index].decode('utf-8', 'replace'))
        if m is None:
            continue
        directive_line = index + 1
        original_line = int(m.group('line')) + line - directive_line - 1
        original_column = column
        if m.group('column') and line == directive_line + 1:
            original_column = int(m.group('column')) + column - 1
        return m.group('path'), original_line, original_column
    return None


class PackageFixer:
    """Defers the compile errors of packages until they compile

    Each pass loads the packages and fixes the errors reported for them.
    Passes are repeated until one of them fixes nothing, at most
    MAX_FIX_PASSES times.

    """

    def __init__(self, toolchain: GoToolchain, overlay: Overlay, mode: str = 'build', max_passes: int = 0) -> None:
        self.toolchain = toolchain
        self.overlay = overlay
        self.mode = mode
        self.max_passes = max_passes or C.MAX_FIX_PASSES
        self.parser = GoParser()
        self.file_fixer = FileFixer(overlay)
        self.loader = PackageLoader(
            toolchain,
            overlay,
            self.parser,
            FixpointParser(self.parser, self.file_fixer),
            tests=mode == 'test',
        )

    def fix(self, *patterns: str):
        for _ in range(self.max_passes):
            fixed = False
            for package in self.loader.load(list(patterns)):
                if self.fix_package(package):
                    fixed = True
            if not fixed:
                return

    def fix_package(self, package: Package) -> bool:
        if package.syntax_fixed:
            return True

        if not package.errors:
            return False

        sites: List[Tuple[ErrorSite, CompileError]] = []
        for error in package.errors:
            site = self.resolve(package, error)
            if site is not None:
                sites.append((site, error))

        # Bottom-up, so that patches never move the errors still to be fixed in the same file
        sites.sort(key=lambda item: (item[0].path, item[0].offset), reverse=True)

        fixed = False
        patched_from: Dict[str, int] = {}
        for site, error in sites:
            if site.offset >= patched_from.get(site.path, len(site.content) + 1):
                log.debug('Skipping error in already patched range: %s', error)
                continue

            content = self.overlay.read(site.path)
            tree = site.tree if content == site.content else self.parser.parse(content).tree

            fix = self.file_fixer.fix_error(tree, site.path, content, site.offset, error.message)
            if not fix:
                continue

            fixed = True
            patched_from[site.path] = self.first_changed_offset(content, self.overlay.read(site.path))
            if fix == Fix.DEFERRED:
                echo(str(error))

        return fixed

    def resolve(self, package: Package, error: CompileError) -> Optional[ErrorSite]:
        path = os.path.normpath(os.path.join(self.toolchain.cwd, error.path))
        line, column = error.line, error.column

        # The compiler saw a source generated into the build cache (cgo), not the original
        if path.startswith(self.toolchain.cache_dir() + os.sep):
            try:
                generated = read_binary_file(path)
            except OSError as e:
                log.debug('Cannot read generated source %s: %s', path, e)
                return None

            position = map_generated_position(generated, line, column)
            if position is None:
                log.debug('No original position for %s', error)
                return None

            original_path, line, column = position
            return self.parse_site(os.path.normpath(os.path.join(self.toolchain.cwd, original_path)), line, column)

        source: Optional[SourceFile] = package.files.get(path)
        if source is None:
            return self.parse_site(path, line, column)

        offset = offset_of_position(source.content, line, column)
        return ErrorSite(path=path, content=source.content, tree=source.tree, offset=offset)

    def parse_site(self, path: str, line: int, column: int) -> Optional[ErrorSite]:
        try:
            content = self.overlay.read(path)
        except OSError as e:
            log.debug('Cannot read %s: %s', path, e)
            return None

        offset = offset_of_position(content, line, column)
        tree = self.parser.parse(content).tree
        return ErrorSite(path=path, content=content, tree=tree, offset=offset)

    @staticmethod
    def first_changed_offset(before: bytes, after: bytes) -> int:
        for i, (a, b) in enumerate(zip(before, after)):
            if a != b:
                return i
        return min(len(before), len(after))
