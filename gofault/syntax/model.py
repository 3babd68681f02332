"""Go syntax tree used for locating and patching compile errors

The tree is a small tagged-variant subset of the Go AST. It only carries the
structure error localization needs: declarations, blocks, statements,
assignments and identifiers, each with byte offsets into the source it was
parsed from. Everything else is represented by generic expression nodes.

Trees are never modified. When the source changes, the source is parsed
again and a new tree replaces the old one.

"""
from dataclasses import dataclass, field
from typing import List, Optional, ClassVar, FrozenSet

from ..common.util import SimpleEnum


class NodeKind(SimpleEnum):
    FILE = 'FILE'
    IMPORT_DECL = 'IMPORT_DECL'
    IMPORT_SPEC = 'IMPORT_SPEC'
    GEN_DECL = 'GEN_DECL'
    BAD_DECL = 'BAD_DECL'
    FUNC_DECL = 'FUNC_DECL'
    BLOCK = 'BLOCK'
    STMT = 'STMT'
    ASSIGN = 'ASSIGN'
    CASE_CLAUSE = 'CASE_CLAUSE'
    BAD_STMT = 'BAD_STMT'
    IDENT = 'IDENT'
    EXPR = 'EXPR'


STATEMENT_KINDS: FrozenSet[NodeKind] = frozenset({
    NodeKind.STMT,
    NodeKind.ASSIGN,
    NodeKind.CASE_CLAUSE,
    NodeKind.BAD_STMT,
})


@dataclass
class Node:
    kind: ClassVar[NodeKind]

    start: int
    """Offset of the first byte of the node"""

    end: int
    """Offset of the first byte after the node"""

    def children(self) -> List['Node']:
        return []

    def covers(self, offset: int) -> bool:
        return self.start <= offset <= self.end

    @property
    def is_statement(self) -> bool:
        return self.kind in STATEMENT_KINDS


@dataclass
class Ident(Node):
    kind = NodeKind.IDENT

    name: str = ''


@dataclass
class Expr(Node):
    kind = NodeKind.EXPR

    parts: List[Node] = field(default_factory=list)
    type: str = ''
    """Grammar node type the expression was built from"""

    def children(self) -> List[Node]:
        return self.parts


@dataclass
class BlockStmt(Node):
    kind = NodeKind.BLOCK

    lbrace: int = -1
    rbrace: int = -1
    """Offset of the closing brace, -1 if it is missing"""

    stmts: List[Node] = field(default_factory=list)

    @property
    def has_rbrace(self) -> bool:
        return self.rbrace >= 0

    def children(self) -> List[Node]:
        return self.stmts

    @classmethod
    def new(cls, lbrace: int, rbrace: int, stmts: List[Node]) -> 'BlockStmt':
        # A block without its closing brace ends where its last statement ends
        if rbrace >= 0:
            end = rbrace + 1
        elif stmts:
            end = stmts[-1].end
        else:
            end = lbrace + 1
        return cls(start=lbrace, end=end, lbrace=lbrace, rbrace=rbrace, stmts=stmts)


@dataclass
class Stmt(Node):
    kind = NodeKind.STMT

    parts: List[Node] = field(default_factory=list)
    type: str = ''

    def children(self) -> List[Node]:
        return self.parts


@dataclass
class BadStmt(Stmt):
    kind = NodeKind.BAD_STMT


@dataclass
class CaseClause(Stmt):
    kind = NodeKind.CASE_CLAUSE


@dataclass
class AssignStmt(Stmt):
    kind = NodeKind.ASSIGN

    tok_pos: int = -1
    """Offset of the assignment operator"""

    define: bool = False
    """The operator is the short variable declaration (:=)"""


@dataclass
class ImportSpec(Node):
    kind = NodeKind.IMPORT_SPEC

    name: Optional[Ident] = None
    path: Optional[Node] = None

    def children(self) -> List[Node]:
        return [node for node in (self.name, self.path) if node is not None]


@dataclass
class ImportDecl(Node):
    kind = NodeKind.IMPORT_DECL

    specs: List[ImportSpec] = field(default_factory=list)

    def children(self) -> List[Node]:
        return list(self.specs)


@dataclass
class GenDecl(Node):
    """Type, variable and constant declarations"""
    kind = NodeKind.GEN_DECL

    parts: List[Node] = field(default_factory=list)

    def children(self) -> List[Node]:
        return self.parts


@dataclass
class BadDecl(GenDecl):
    kind = NodeKind.BAD_DECL


@dataclass
class FuncDecl(Node):
    kind = NodeKind.FUNC_DECL

    name: Optional[Ident] = None
    signature: List[Node] = field(default_factory=list)
    body: Optional[BlockStmt] = None

    def children(self) -> List[Node]:
        nodes: List[Node] = []
        if self.name is not None:
            nodes.append(self.name)
        nodes.extend(self.signature)
        if self.body is not None:
            nodes.append(self.body)
        return nodes


@dataclass
class File(Node):
    kind = NodeKind.FILE

    decls: List[Node] = field(default_factory=list)

    def children(self) -> List[Node]:
        return self.decls


@dataclass
class ParseError:
    offset: int
    message: str


@dataclass
class ParseResult:
    tree: File
    errors: List[ParseError]

    @property
    def ok(self) -> bool:
        return not self.errors


class Visitor:
    """Depth-first traversal hooks

    `enter` returns whether to descend into the children of the node,
    `leave` returns whether to continue the traversal at all.

    """

    def enter(self, node: Node, parent: Optional[Node]) -> bool:
        return True

    def leave(self, node: Node) -> bool:
        return True


def walk(node: Node, visitor: Visitor, parent: Optional[Node] = None) -> bool:
    """Walks the tree, returns False if the visitor aborted the traversal"""
    if visitor.enter(node, parent):
        for child in node.children():
            if not walk(child, visitor, node):
                return False
    return visitor.leave(node)
