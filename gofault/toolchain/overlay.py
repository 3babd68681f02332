import json
import os
import tempfile
from logging import getLogger
from typing import Dict, List, Iterator

from pydantic import BaseModel, Field

from ..common.config import C
from ..common.util import read_binary_file, write_binary_file, remove_files

log = getLogger(__name__)


class OverlayDescriptor(BaseModel):
    """Document passed to the go command with the -overlay flag"""

    replace: Dict[str, str] = Field(default_factory=dict, alias='Replace')
    """Absolute path of the original source => path of the file with its patched content"""

    model_config = {'populate_by_name': True}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class Overlay:
    """Patched content of source files, keyed by absolute path

    Entries are only ever added or replaced. The patched content is
    materialized into temporary files on demand, the go command reads
    them through the overlay descriptor instead of the original sources.

    """

    def __init__(self) -> None:
        self.fixed: Dict[str, bytes] = {}
        self.descriptor = OverlayDescriptor()
        self.descriptor_path: str = ''
        self.cleanup: List[str] = []

    def __len__(self) -> int:
        return len(self.fixed)

    def __contains__(self, path: str) -> bool:
        return os.path.abspath(path) in self.fixed

    def __getitem__(self, path: str) -> bytes:
        return self.fixed[os.path.abspath(path)]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fixed)

    def read(self, path: str) -> bytes:
        """Current content of the source file, patched if there is an entry for it"""
        path = os.path.abspath(path)
        content = self.fixed.get(path)
        if content is None:
            content = read_binary_file(path)
        return content

    def update(self, path: str, content: bytes):
        self.fixed[os.path.abspath(path)] = content

    def original_path(self, path: str) -> str:
        """Path of the source file the given replacement file stands in for

        The compiler reports errors against the replacement files, so their
        positions belong to the original sources. Any other path is
        returned unchanged.

        """
        candidates = {os.path.abspath(path), os.path.realpath(path)}
        for original, replacement in self.descriptor.replace.items():
            if os.path.abspath(replacement) in candidates or os.path.realpath(replacement) in candidates:
                return original
        return path

    def flush(self) -> str:
        """Writes the patched sources and the descriptor, returns the path of the descriptor"""
        if not self.descriptor_path:
            self.descriptor_path = self.new_temp_file('.json')

        for path, content in self.fixed.items():
            replacement = self.descriptor.replace.get(path)
            if replacement is None:
                replacement = self.new_temp_file('.go')
                self.descriptor.replace[path] = replacement
            write_binary_file(replacement, content)
            log.debug('Patched source of %s in %s:\n%s', path, replacement, content.decode('utf-8', 'replace'))

        descriptor_json = self.descriptor.to_json()
        with open(self.descriptor_path, 'wt', encoding='utf-8') as f:
            f.write(descriptor_json)

        log.debug('Overlay descriptor %s:\n%s', self.descriptor_path, json.dumps(json.loads(descriptor_json), indent=2))
        return self.descriptor_path

    def new_temp_file(self, suffix: str) -> str:
        fd, path = tempfile.mkstemp(prefix=C.TEMP_PREFIX, suffix=suffix)
        os.close(fd)
        self.cleanup.append(path)
        return path

    def remove_files(self):
        remove_files(self.cleanup)
        self.cleanup.clear()
        self.descriptor = OverlayDescriptor()
        self.descriptor_path = ''
