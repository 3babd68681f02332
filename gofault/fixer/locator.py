from dataclasses import dataclass
from typing import Optional

from ..syntax.model import Node, File, BlockStmt, FuncDecl, NodeKind, Visitor, walk


@dataclass
class EnclosingScope:
    statement: Optional[Node] = None
    """Innermost statement which is a direct child of the block"""

    block: Optional[BlockStmt] = None
    """Innermost block containing the offset, or a block missing its closing brace"""

    function_body: Optional[BlockStmt] = None
    """Body of the innermost function declaration containing the offset"""


class RangeLocator(Visitor):
    """Finds the statement, block and function body enclosing an offset

    Subtrees starting after the offset are pruned. A block or function
    which is missing its closing brace is considered to extend up to the
    offset, since it was still open when the parser gave up on it.
    The walk stops when leaving the innermost block found.

    """

    def __init__(self, offset: int) -> None:
        self.offset = offset
        self.scope = EnclosingScope()

    def enter(self, node: Node, parent: Optional[Node]) -> bool:
        if node.start > self.offset:
            return False

        scope = self.scope
        if node.kind == NodeKind.BLOCK:
            if node.end >= self.offset or not node.has_rbrace:
                scope.block = node
        elif node.kind == NodeKind.FUNC_DECL:
            if node.end >= self.offset or (node.body is not None and not node.body.has_rbrace):
                scope.function_body = node.body
        elif node.is_statement:
            if parent is not None and parent is scope.block:
                scope.statement = node

        return True

    def leave(self, node: Node) -> bool:
        return self.scope.block is None or self.scope.block is not node


def locate(tree: File, offset: int) -> EnclosingScope:
    locator = RangeLocator(offset)
    walk(tree, locator)
    return locator.scope
