import os
from enum import Enum
from logging import Logger, INFO, getLogger, StreamHandler, Formatter
from typing import Iterable, Tuple

from .config import C


class SimpleEnum(str, Enum):

    def __str__(self):
        return f"{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}.{self.name}"


def init_logger(loglevel=INFO) -> Logger:
    logger = getLogger()
    logger.setLevel(loglevel)

    handler = StreamHandler()
    handler.setLevel(loglevel)

    formatter = Formatter('%(asctime)s %(name)s [%(levelname)s] %(message)s')
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger


def write_binary_file(path: str, data: bytes):
    with open(path, 'wb') as f:
        f.write(data)


def read_binary_file(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def remove_files(paths: Iterable[str]):
    for path in paths:
        if os.path.exists(path):
            os.remove(path)


def decode_normalize(content: bytes) -> str:
    try:
        decoded = content.decode('utf-8')
    except UnicodeDecodeError:
        decoded = content.decode('latin-1')

    return normalize(decoded)


def normalize(content: str) -> str:
    return content.replace('\r\n', '\n').replace('\r', '').replace('\0', '\f')


def offset_of_position(content: bytes, line: int, column: int) -> int:
    """Byte offset of a 1-based line and 1-based byte column

    Positions past the end of a line are clamped to its line break,
    positions past the last line are clamped to the end of the content.

    """
    start = 0
    for _ in range(line - 1):
        i = content.find(b'\n', start)
        if i < 0:
            return len(content)
        start = i + 1

    end = content.find(b'\n', start)
    if end < 0:
        end = len(content)

    return min(start + max(column, 1) - 1, end)


def position_of_offset(content: bytes, offset: int) -> Tuple[int, int]:
    """1-based line and byte column of an offset"""
    line = 1 + content.count(b'\n', 0, offset)
    line_start = content.rfind(b'\n', 0, offset) + 1
    return line, 1 + offset - line_start


def echo(text: str):
    """Prints a message for the user, every line prefixed"""
    print(C.MESSAGE_PREFIX + text.replace('\n', '\n' + C.MESSAGE_PREFIX))
