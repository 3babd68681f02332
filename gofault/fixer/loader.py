import os
from dataclasses import dataclass, field
from logging import getLogger
from typing import List, Dict, Optional

from .fixpoint_parser import FixpointParser
from ..syntax.go_parser import GoParser
from ..syntax.model import File
from ..toolchain.diagnostics import CompileError
from ..toolchain.go import GoToolchain
from ..toolchain.overlay import Overlay

log = getLogger(__name__)


@dataclass
class SourceFile:
    path: str
    content: bytes
    tree: File


@dataclass
class Package:
    id: str
    """Compilation unit as reported by the go command, with build variant suffix"""

    files: Dict[str, SourceFile] = field(default_factory=dict)

    errors: List[CompileError] = field(default_factory=list)

    syntax_fixed: bool = False
    """Syntax errors were fixed while loading, the reported errors are stale"""


class PackageLoader:
    """Loads compilation units with their syntax trees and reported errors

    Files the compiler reported errors for go through the fixpoint parser,
    so their syntax errors are deferred before the errors are considered.

    """

    def __init__(self, toolchain: GoToolchain, overlay: Overlay, parser: GoParser, fixpoint_parser: FixpointParser, tests: bool = False) -> None:
        self.toolchain = toolchain
        self.overlay = overlay
        self.parser = parser
        self.fixpoint_parser = fixpoint_parser
        self.tests = tests

    def overlay_path(self) -> str:
        return self.overlay.flush() if len(self.overlay) else ''

    def load(self, patterns: List[str]) -> List[Package]:
        overlay_path = self.overlay_path()
        infos = self.toolchain.list_packages(patterns, tests=self.tests, overlay_path=overlay_path)
        errors = self.toolchain.check(patterns, tests=self.tests, overlay_path=overlay_path)

        packages: List[Package] = []
        for info in infos:
            package = Package(id=info.import_path)
            if info.error is not None:
                log.debug('Package %s: %s', info.import_path, info.error.err)

            reported: Dict[str, List[CompileError]] = {}
            for error in errors.get(info.import_path, []):
                error = self.map_error(error)
                package.errors.append(error)
                reported.setdefault(self.resolve_path(error.path), []).append(error)

            for path in info.files:
                source = self.load_file(path, reported.get(path))
                if source is None:
                    continue
                if source.content != self.overlay.read(path):
                    package.syntax_fixed = True
                    source = self.load_file(path)
                package.files[path] = source

            packages.append(package)

        return packages

    def load_file(self, path: str, reported: Optional[List[CompileError]] = None) -> Optional[SourceFile]:
        try:
            content = self.overlay.read(path)
        except OSError as e:
            log.debug('Cannot read %s: %s', path, e)
            return None

        if reported:
            result = self.fixpoint_parser.parse(path, content, reported)
        else:
            result = self.parser.parse(content)

        return SourceFile(path=path, content=content, tree=result.tree)

    def map_error(self, error: CompileError) -> CompileError:
        """Error with the position moved from a patched replacement file to its original source"""
        path = self.resolve_path(error.path)
        original = self.overlay.original_path(path)
        if original == path:
            return error
        return error.model_copy(update={'path': os.path.relpath(original, self.toolchain.cwd)})

    def resolve_path(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.toolchain.cwd, path))
