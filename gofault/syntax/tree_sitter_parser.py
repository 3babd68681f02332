from tree_sitter import Parser, Tree

from .model import ParseResult
from .registrations import get_language


class TreeSitterParser:
    tree_sitter_language_name: str = ''

    def __init__(self) -> None:
        assert self.tree_sitter_language_name
        self.parser = Parser(get_language(self.tree_sitter_language_name))

    def parse_tree(self, content: bytes) -> Tree:
        return self.parser.parse(content)

    def parse(self, content: bytes) -> ParseResult:
        raise NotImplementedError()
