import json
import os
import threading
from logging import getLogger
from subprocess import Popen, PIPE, STDOUT
from typing import List, Dict, Optional, Tuple, Iterable

from pydantic import BaseModel, Field

from .diagnostics import CompileError, parse_compile_errors
from ..common.config import C

log = getLogger(__name__)

GO_ENV_LOCK = threading.Lock()
GO_ENV_CACHE: Dict[Tuple[str, str], str] = {}


class ToolchainError(RuntimeError):
    pass


class PackageError(BaseModel):
    pos: str = Field('', alias='Pos')
    err: str = Field('', alias='Err')


class PackageInfo(BaseModel):
    """Package as listed by `go list -json`"""

    import_path: str = Field(alias='ImportPath')
    """Import path, with the build variant suffix for test variants: "p [p.test]" """

    dir: str = Field('', alias='Dir')

    go_files: List[str] = Field(default_factory=list, alias='GoFiles')

    compiled_go_files: List[str] = Field(default_factory=list, alias='CompiledGoFiles')
    """Files passed to the compiler, generated ones (cgo) are absolute paths in the build cache"""

    for_test: str = Field('', alias='ForTest')

    error: Optional[PackageError] = Field(None, alias='Error')

    model_config = {'populate_by_name': True}

    @property
    def files(self) -> List[str]:
        names = self.compiled_go_files or self.go_files
        return [os.path.normpath(os.path.join(self.dir, name)) for name in names]


def decode_json_stream(text: str) -> Iterable[dict]:
    decoder = json.JSONDecoder()
    index = 0
    while True:
        while index < len(text) and text[index].isspace():
            index += 1
        if index >= len(text):
            break
        obj, index = decoder.raw_decode(text, index)
        yield obj


def group_patterns(patterns: List[str]) -> List[List[str]]:
    """Source files given on the command line form a single package, anything else is checked one by one"""
    if patterns and all(pattern.endswith('.go') for pattern in patterns):
        return [list(patterns)]
    return [[pattern] for pattern in patterns]


class GoToolchain:
    """Runs the go command"""

    def __init__(self, go_command: str = '', cwd: str = '') -> None:
        self.go_command: str = go_command or C.GO_COMMAND
        self.cwd: str = os.path.abspath(cwd or os.getcwd())

    def run_command(self, action: str, command: List[str], *, merge_stderr: bool = True) -> Tuple[int, str, str]:
        log.debug('Command to %s: %s', action, ' '.join(command))
        try:
            process = Popen(command, cwd=self.cwd, stdout=PIPE, stderr=STDOUT if merge_stderr else PIPE)
        except OSError as e:
            raise ToolchainError(f'Failed to {action}: {e}') from e
        stdout, stderr = process.communicate()
        return process.returncode, stdout.decode('utf-8', 'replace'), (stderr or b'').decode('utf-8', 'replace')

    def go(self, args: List[str]) -> Tuple[int, str]:
        """Runs a go subcommand, returns its exit code and combined output"""
        returncode, output, _ = self.run_command(f'run go {args[0]}', [self.go_command] + args)
        return returncode, output

    def env(self, name: str) -> str:
        returncode, output, error = self.run_command(f'query {name}', [self.go_command, 'env', name], merge_stderr=False)
        if returncode:
            raise ToolchainError(f'Failed to query {name}: {error.strip()}')
        return output.strip()

    def cached_env(self, name: str) -> str:
        """Value of a go environment variable, queried at most once per process"""
        key = (self.go_command, name)
        with GO_ENV_LOCK:
            value = GO_ENV_CACHE.get(key)
            if value is None:
                value = self.env(name)
                GO_ENV_CACHE[key] = value
            return value

    def cache_dir(self) -> str:
        return self.cached_env('GOCACHE')

    def list_packages(self, patterns: List[str], *, tests: bool = False, overlay_path: str = '') -> List[PackageInfo]:
        args = ['list', '-e', '-json', '-compiled']
        if tests:
            args.append('-test')
        if overlay_path:
            args.extend(['-overlay', overlay_path])
        args.extend(patterns)

        returncode, output, error = self.run_command('list packages', [self.go_command] + args, merge_stderr=False)
        if returncode:
            raise ToolchainError(f'Failed to list packages {" ".join(patterns)}: {error.strip()}')

        try:
            return [PackageInfo.model_validate(obj) for obj in decode_json_stream(output)]
        except ValueError as e:
            raise ToolchainError(f'Failed to decode the package list: {e}') from e

    def check(self, patterns: List[str], *, tests: bool = False, overlay_path: str = '') -> Dict[str, List[CompileError]]:
        """Compiles the packages without keeping the result, returns the reported errors by compilation unit"""
        args = ['test', '-c', '-vet=off'] if tests else ['build']
        args.extend(['-gcflags=-e', '-o', os.devnull])
        if overlay_path:
            args.extend(['-overlay', overlay_path])

        errors: Dict[str, List[CompileError]] = {}
        for group in group_patterns(patterns):
            _, output = self.go(args + group)
            for unit, unit_errors in parse_compile_errors(output).items():
                errors.setdefault(unit, []).extend(unit_errors)
        return errors

    def execute(self, command: List[str]) -> int:
        """Runs the command attached to our standard streams, returns its exit code"""
        log.debug('Executing: %s', ' '.join(command))
        try:
            process = Popen(command, cwd=self.cwd)
        except OSError as e:
            raise ToolchainError(f'Failed to execute {command[0]}: {e}') from e
        return process.wait()
