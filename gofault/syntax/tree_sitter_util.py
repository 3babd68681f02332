from typing import Iterator, List, Iterable

from tree_sitter import Node

from ..common.util import decode_normalize


def node_text(content: bytes, node: Node) -> str:
    return decode_normalize(content[node.start_byte:node.end_byte])


def iter_flat_children(node: Node, transparent: Iterable[str] = ('statement_list',)) -> Iterator[Node]:
    """Children of the node, with the children of transparent wrapper nodes inlined"""
    for child in node.children:
        if child.type in transparent:
            yield from iter_flat_children(child, transparent)
        else:
            yield child


def iter_error_nodes(root: Node) -> Iterator[Node]:
    """ERROR and MISSING nodes in document order, the inside of ERROR nodes is not visited"""
    if not root.has_error:
        return

    stack: List[Node] = [root]
    while stack:
        node = stack.pop()
        if node.is_missing or node.type == 'ERROR':
            yield node
            continue
        if node.has_error:
            stack.extend(reversed(node.children))
