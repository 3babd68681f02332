"""Direct repairs of errors which are often caused by our own patches

Replacing a statement with a runtime fault frequently leaves an import or a
variable unused, or turns a later `:=` into one which declares nothing new.
These errors are repaired in place with the smallest possible edit instead
of being deferred to runtime.

Each fixer returns the patched content, or None if the error cannot be
repaired this way.

"""
from typing import Optional

from ..syntax.model import File, Node, NodeKind, Visitor, walk


class InnermostFinder(Visitor):
    """Finds the deepest node of the given kind covering the offset"""

    def __init__(self, offset: int, kind: NodeKind) -> None:
        self.offset = offset
        self.kind = kind
        self.found: Optional[Node] = None

    def enter(self, node: Node, parent: Optional[Node]) -> bool:
        if not node.covers(self.offset):
            return False
        if node.kind == self.kind:
            self.found = node
        return True


def find_innermost(tree: File, offset: int, kind: NodeKind) -> Optional[Node]:
    finder = InnermostFinder(offset, kind)
    walk(tree, finder)
    return finder.found


def fix_unused_import(tree: File, content: bytes, offset: int) -> Optional[bytes]:
    decl = next((decl for decl in tree.decls if decl.covers(offset)), None)
    if decl is None or decl.kind != NodeKind.IMPORT_DECL:
        return None

    spec = next((spec for spec in decl.specs if spec.covers(offset)), None)
    if spec is None or spec.path is None:
        return None

    # A named import gets its name (and the space after it) replaced
    insert_pos = spec.path.start
    delete_length = 0
    if spec.name is not None:
        insert_pos = spec.name.start
        delete_length = spec.name.end - spec.name.start + 1

    return content[:insert_pos] + b'_ ' + content[insert_pos + delete_length:]


def fix_unused_variable(tree: File, content: bytes, offset: int) -> Optional[bytes]:
    ident = find_innermost(tree, offset, NodeKind.IDENT)
    if ident is None:
        return None

    return content[:ident.start] + b'_' + content[ident.end:]


def fix_useless_definition(tree: File, content: bytes, offset: int) -> Optional[bytes]:
    assign = find_innermost(tree, offset, NodeKind.ASSIGN)
    if assign is None or not assign.define:
        return None

    # Drop the colon of :=
    return content[:assign.tok_pos] + content[assign.tok_pos + 1:]


STRUCTURAL_FIXERS = (
    (('imported and not used', 'imported as '), fix_unused_import),
    (('declared and not used', 'declared but not used'), fix_unused_variable),
    (('no new variables on left side of :=',), fix_useless_definition),
)


def fix_structurally(tree: File, content: bytes, offset: int, message: str) -> Optional[bytes]:
    for markers, fixer in STRUCTURAL_FIXERS:
        if any(marker in message for marker in markers):
            return fixer(tree, content, offset)
    return None
