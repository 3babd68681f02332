import os
from typing import Iterable

import toml


def env_flag(name: str, default: str = 'n') -> bool:
    return os.getenv(name, default).lower() in ('1', 'y', 'yes', 't', 'true')


class Config:
    # Common flags
    VERBOSE: bool = env_flag('GOFAULT_VERBOSE')

    # Keep the overlay, the patched sources and the built executable after the run
    KEEP_TEMP_FILES: bool = env_flag('GOFAULT_KEEP_TEMP_FILES')

    # Go toolchain executable
    GO_COMMAND: str = os.getenv('GOFAULT_GO', 'go')

    # Upper bound on parse attempts of a single file while fixing syntax errors
    MAX_PARSE_ATTEMPTS: int = 10

    # Upper bound on load-and-fix passes over the broken compilation units
    MAX_FIX_PASSES: int = 10

    # Prefix of every line printed for the user
    MESSAGE_PREFIX: str = 'gofault: '

    # Prefix of temporary files (executable, overlay descriptor, patched sources)
    TEMP_PREFIX: str = 'gofault-'

    # Builtin called to raise the deferred fault at runtime
    PANIC_FUNCTION: str = 'panic'

    # Pseudo package name the go command reports for files given on the command line
    COMMAND_LINE_PACKAGE: str = 'command-line-arguments'

    def save(self, path: str):
        with open(path, 'wt') as f:
            toml.dump({name: getattr(self, name) for name in self}, f)

    def load(self, path: str):
        with open(path, 'rt') as f:
            data = toml.load(f)

        for name in self:
            if name in data:
                setattr(self, name, data[name])

    def __iter__(self) -> Iterable[str]:
        for name in dir(self):
            if not name.startswith('_') and name == name.upper():
                yield name


CONFIG_DIR = os.path.expanduser(os.getenv('GOFAULT_CONFIG_DIR', '~/.gofault'))
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.toml')

C = Config()

if os.path.exists(CONFIG_PATH):
    C.load(CONFIG_PATH)
