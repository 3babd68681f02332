import os
import tempfile
from logging import getLogger
from typing import List, Set, Optional, Tuple

from ..common.config import C
from ..common.util import SimpleEnum, echo, remove_files
from ..fixer.package_fixer import PackageFixer
from ..toolchain.diagnostics import parse_broken_units
from ..toolchain.go import GoToolchain
from ..toolchain.overlay import Overlay

log = getLogger(__name__)

MODES = ('run', 'test', 'build')


class RunnerState(SimpleEnum):
    UNBUILT = 'UNBUILT'
    BUILDING = 'BUILDING'
    FIXING = 'FIXING'
    BUILT = 'BUILT'
    GIVEN_UP = 'GIVEN_UP'


def split_run_args(args: List[str]) -> Tuple[List[str], List[str]]:
    """Splits `go run` arguments into build arguments and program arguments"""
    if not args:
        return [], []

    if args[0].endswith('.go'):
        i = 0
        while i < len(args) and args[i].endswith('.go'):
            i += 1
        return args[:i], args[i:]

    return args[:1], args[1:]


class Runner:
    """Builds the program with its compile errors deferred to runtime, then does what the user asked

    Use it as a context manager, so the temporary files are removed at the end.

    """

    def __init__(self, mode: str, verbose: bool, args: List[str], toolchain: Optional[GoToolchain] = None) -> None:
        if mode not in MODES:
            raise ValueError(f'Unsupported mode: {mode}')

        self.mode: str = mode
        self.verbose: bool = verbose
        self.toolchain: GoToolchain = toolchain or GoToolchain()

        self.build_args: List[str] = list(args)
        self.run_args: List[str] = []
        if mode == 'run':
            self.build_args, self.run_args = split_run_args(args)

        self.state: RunnerState = RunnerState.UNBUILT
        self.overlay: Overlay = Overlay()
        self.fixer: PackageFixer = PackageFixer(self.toolchain, self.overlay, mode)
        self.exe_path: str = ''
        self.cleanup: List[str] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.remove_files()

    @property
    def overlay_path(self) -> str:
        return self.overlay.descriptor_path

    def prepare(self) -> RunnerState:
        """Builds and fixes until the build succeeds or there is no progress"""
        attempted: Set[str] = set()

        while True:
            self.state = RunnerState.BUILDING
            broken = self.get_broken_packages()
            if self.state == RunnerState.BUILT:
                return self.state

            if not broken:
                log.debug('The build failed without reporting any broken package')
                self.state = RunnerState.GIVEN_UP
                return self.state

            if any(unit in attempted for unit in broken):
                log.debug('No progress on packages: %s', ', '.join(unit for unit in broken if unit in attempted))
                self.state = RunnerState.GIVEN_UP
                return self.state

            attempted.update(broken)

            self.state = RunnerState.FIXING
            if C.COMMAND_LINE_PACKAGE in broken:
                broken = [unit for unit in broken if unit != C.COMMAND_LINE_PACKAGE]
                self.fixer.fix(*self.build_args)
            if broken:
                self.fixer.fix(*broken)

    def get_broken_packages(self) -> List[str]:
        """Builds the program, returns the packages failed to compile"""
        if not self.exe_path:
            fd, self.exe_path = tempfile.mkstemp(prefix=C.TEMP_PREFIX)
            os.close(fd)
            self.cleanup.append(self.exe_path)
            os.chmod(self.exe_path, 0o777)

        args = ['test', '-vet=off', '-c'] if self.mode == 'test' else ['build']
        if len(self.overlay):
            args.extend(['-overlay', self.overlay.flush()])
        args.extend(['-o', self.exe_path])
        args.extend(self.build_args)

        returncode, output = self.toolchain.go(args)
        if not returncode:
            self.state = RunnerState.BUILT
            return []

        log.debug('Build output:\n%s', output)
        return parse_broken_units(output)

    def run(self) -> int:
        """Does what the user asked, returns the exit code. Call prepare() first."""
        if self.state != RunnerState.BUILT:
            # Failed to fix it, let the user see the genuine errors
            if self.verbose:
                echo('failed to build, running with no overlay')
            return self.toolchain.execute([self.toolchain.go_command, self.mode] + self.build_args + self.run_args)

        if self.mode == 'run':
            return self.toolchain.execute([self.exe_path] + self.run_args)

        overlay_args = [f'-overlay={self.overlay_path}'] if self.overlay_path else []
        if self.mode == 'test':
            return self.toolchain.execute([self.toolchain.go_command, 'test'] + (['-vet=off'] + overlay_args if overlay_args else []) + self.build_args)

        return self.toolchain.execute([self.toolchain.go_command, 'build'] + overlay_args + self.build_args)

    def remove_files(self):
        if self.verbose or C.KEEP_TEMP_FILES:
            log.debug('Keeping temporary files: %s', ', '.join(self.cleanup + self.overlay.cleanup))
            return

        remove_files(self.cleanup)
        self.cleanup.clear()
        self.overlay.remove_files()
