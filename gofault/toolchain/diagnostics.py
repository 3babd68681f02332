import re
from typing import List, Dict, Optional

from pydantic import BaseModel

# Header line the go command prints before the diagnostics of a compilation unit:
# "# example.com/pkg" or "# example.com/pkg [example.com/pkg.test]"
RX_UNIT_HEADER = re.compile(r'^# ([^\s]*)( \[.*\])?$')

# "./main.go:12:7: message" or "main.go:12: message"
RX_POSITIONED_ERROR = re.compile(r'^(?P<path>[^\s:][^:]*):(?P<line>\d+)(?::(?P<column>\d+))?: (?P<message>.*)$')


class CompileError(BaseModel):
    """Error reported by the compiler against a source position"""

    unit: str
    """Compilation unit, including the build variant suffix if any"""

    path: str
    """Source path as printed by the go command"""

    line: int
    """1-based line number"""

    column: int
    """1-based byte column, 1 if the compiler did not report one"""

    message: str

    @property
    def location(self) -> str:
        return f'{self.path}:{self.line}:{self.column}'

    def __str__(self) -> str:
        return f'{self.location}: {self.message}'


def parse_broken_units(output: str) -> List[str]:
    """Names of the compilation units the go command reported diagnostics for, without build variant suffix"""
    units: List[str] = []
    for line in output.splitlines():
        m = RX_UNIT_HEADER.match(line)
        if m is not None and m.group(1) not in units:
            units.append(m.group(1))
    return units


def parse_compile_errors(output: str) -> Dict[str, List[CompileError]]:
    """Positioned errors by compilation unit (including build variant suffix)"""
    errors: Dict[str, List[CompileError]] = {}
    unit = ''
    last: Optional[CompileError] = None

    for line in output.splitlines():
        m = RX_UNIT_HEADER.match(line)
        if m is not None:
            unit = m.group(1) + (m.group(2) or '')
            last = None
            continue

        if line.startswith('\t') and last is not None:
            last.message += '\n' + line.strip()
            continue

        m = RX_POSITIONED_ERROR.match(line)
        if m is None:
            last = None
            continue

        last = CompileError(
            unit=unit,
            path=m.group('path'),
            line=int(m.group('line')),
            column=int(m.group('column') or 1),
            message=m.group('message'),
        )
        errors.setdefault(unit, []).append(last)

    return errors
