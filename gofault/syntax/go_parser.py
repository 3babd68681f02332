from typing import List, Optional, Tuple

from tree_sitter import Node as TsNode

from .model import (
    Node, NodeKind, File, ImportDecl, ImportSpec, GenDecl, BadDecl, FuncDecl, BlockStmt, Stmt, BadStmt,
    CaseClause, AssignStmt, Ident, Expr, ParseError, ParseResult,
)
from .tree_sitter_parser import TreeSitterParser
from .tree_sitter_util import iter_flat_children, iter_error_nodes, node_text

STATEMENT_TYPES = frozenset({
    'expression_statement',
    'send_statement',
    'inc_statement',
    'dec_statement',
    'assignment_statement',
    'short_var_declaration',
    'return_statement',
    'go_statement',
    'defer_statement',
    'if_statement',
    'for_statement',
    'expression_switch_statement',
    'type_switch_statement',
    'select_statement',
    'labeled_statement',
    'fallthrough_statement',
    'break_statement',
    'continue_statement',
    'goto_statement',
    'empty_statement',
    'const_declaration',
    'var_declaration',
    'type_declaration',
})

SWITCH_TYPES = frozenset({
    'expression_switch_statement',
    'type_switch_statement',
    'select_statement',
})

CASE_TYPES = frozenset({
    'expression_case',
    'default_case',
    'type_case',
    'communication_case',
})

IDENT_TYPES = frozenset({
    'identifier',
    'field_identifier',
    'package_identifier',
    'type_identifier',
    'label_name',
    'blank_identifier',
    'dot',
})

FUNC_DECL_TYPES = frozenset({
    'function_declaration',
    'method_declaration',
})

TOP_LEVEL_DECL_TYPES = FUNC_DECL_TYPES | {
    'import_declaration',
    'const_declaration',
    'var_declaration',
    'type_declaration',
}

ASSIGN_OPERATORS = frozenset({
    ':=', '=', '+=', '-=', '*=', '/=', '%=', '&=', '|=', '^=', '<<=', '>>=', '&^=',
})


def is_token(node: TsNode, typ: str) -> bool:
    return not node.is_named and node.type == typ


def is_skipped(node: TsNode) -> bool:
    return node.is_missing or node.type == 'comment'


def is_node(node: TsNode) -> bool:
    return (node.is_named or node.type == 'ERROR') and not is_skipped(node)


class GoTreeBuilder:
    """Converts a tree-sitter Go concrete syntax tree into the Go AST

    Expressions are flattened: an expression only keeps the identifiers,
    function literals, blocks and statements found inside it, so the depth
    of the result follows the nesting of blocks, not of expressions.

    """

    def __init__(self, content: bytes) -> None:
        self.content = content

    def build_file(self, root: TsNode) -> File:
        decls: List[Node] = []
        children = [child for child in root.children if not is_skipped(child)]
        i = 0
        while i < len(children):
            child = children[i]
            i += 1
            if i < len(children) and self.is_body_error(child, children[i]):
                decls.extend(self.recover_bodiless_func(child, children[i]))
                i += 1
            else:
                decls.extend(self.build_decl(child))
        return File(start=0, end=len(self.content), decls=decls)

    def build_decl(self, node: TsNode) -> List[Node]:
        if is_skipped(node) or node.type == 'package_clause':
            return []
        if node.type == 'ERROR':
            return self.recover_decls(node)
        if not node.is_named:
            return []
        if node.type == 'import_declaration':
            return [self.build_import_decl(node)]
        if node.type in FUNC_DECL_TYPES:
            return [self.build_func_decl(node)]
        return [GenDecl(start=node.start_byte, end=node.end_byte, parts=self.collect_parts(node))]

    def build_import_decl(self, node: TsNode) -> ImportDecl:
        specs: List[ImportSpec] = []
        for child in node.named_children:
            if child.type == 'import_spec':
                specs.append(self.build_import_spec(child))
            elif child.type == 'import_spec_list':
                specs.extend(self.build_import_spec(spec) for spec in child.named_children if spec.type == 'import_spec')
        return ImportDecl(start=node.start_byte, end=node.end_byte, specs=specs)

    def build_import_spec(self, node: TsNode) -> ImportSpec:
        name_node = node.child_by_field_name('name')
        path_node = node.child_by_field_name('path')
        name = self.build_ident(name_node) if name_node is not None and not name_node.is_missing else None
        path = None
        if path_node is not None and not path_node.is_missing:
            path = Expr(start=path_node.start_byte, end=path_node.end_byte, type=path_node.type)
        return ImportSpec(start=node.start_byte, end=node.end_byte, name=name, path=path)

    def build_ident(self, node: TsNode) -> Ident:
        return Ident(start=node.start_byte, end=node.end_byte, name=node_text(self.content, node))

    def build_func_decl(self, node: TsNode) -> FuncDecl:
        name_node = node.child_by_field_name('name')
        body_node = node.child_by_field_name('body')

        name = self.build_ident(name_node) if name_node is not None and not name_node.is_missing else None

        signature: List[Node] = []
        for child in node.named_children:
            if child == name_node or child == body_node or is_skipped(child):
                continue
            signature.extend(self.collect_parts(child, include_self=True))

        body = None
        if body_node is not None and body_node.type == 'block':
            body = self.build_block(body_node)

        end = body.end if body is not None else node.end_byte
        return FuncDecl(start=node.start_byte, end=end, name=name, signature=signature, body=body)

    def build_block(self, node: TsNode) -> BlockStmt:
        lbrace = node.start_byte
        rbrace = -1
        stmts: List[Node] = []
        for child in iter_flat_children(node):
            if is_token(child, '{'):
                lbrace = child.start_byte
            elif is_token(child, '}'):
                if not child.is_missing:
                    rbrace = child.start_byte
            else:
                self.append_stmt(stmts, self.build_stmt(child))
        return BlockStmt.new(lbrace, rbrace, stmts)

    def append_stmt(self, stmts: List[Node], stmt: Optional[Node]):
        """Appends the statement, an error continuing the line of the previous statement is merged into it"""
        if stmt is None:
            return

        if stmt.kind == NodeKind.BAD_STMT and stmts:
            prev = stmts[-1]
            gap = self.content[prev.end:stmt.start]
            if prev.is_statement and prev.kind != NodeKind.CASE_CLAUSE and b'\n' not in gap and b';' not in gap:
                stmts[-1] = BadStmt(start=prev.start, end=stmt.end, parts=prev.children() + stmt.children(), type='ERROR')
                return

        stmts.append(stmt)

    def build_stmt(self, node: TsNode) -> Optional[Node]:
        if is_skipped(node):
            return None

        t = node.type
        if t == 'ERROR':
            return BadStmt(start=node.start_byte, end=node.end_byte, parts=self.collect_parts(node), type=t)
        if not node.is_named:
            return None
        if t == 'block':
            return self.build_block(node)
        if t == 'short_var_declaration' or t == 'assignment_statement':
            return self.build_assign(node)
        if t in SWITCH_TYPES:
            return self.build_switch(node)
        if t in CASE_TYPES:
            return self.build_case(node)
        return Stmt(start=node.start_byte, end=node.end_byte, parts=self.collect_parts(node), type=t)

    def build_assign(self, node: TsNode) -> AssignStmt:
        tok_pos = node.start_byte
        define = False
        for child in node.children:
            if not child.is_named and child.type in ASSIGN_OPERATORS:
                tok_pos = child.start_byte
                define = child.type == ':='
                break

        return AssignStmt(
            start=node.start_byte,
            end=node.end_byte,
            parts=self.collect_parts(node),
            type=node.type,
            tok_pos=tok_pos,
            define=define,
        )

    def build_switch(self, node: TsNode) -> Stmt:
        # The clauses are wrapped into a block, so that clauses are the statements of the body
        parts: List[Node] = []
        clauses: List[Node] = []
        lbrace = -1
        rbrace = -1
        for child in node.children:
            if is_token(child, '{') and lbrace < 0:
                lbrace = child.start_byte
            elif is_token(child, '}') and lbrace >= 0:
                if not child.is_missing:
                    rbrace = child.start_byte
            elif lbrace >= 0:
                clause = self.build_stmt(child)
                if clause is not None:
                    clauses.append(clause)
            elif is_node(child):
                parts.extend(self.collect_parts(child, include_self=True))

        if lbrace >= 0:
            parts.append(BlockStmt.new(lbrace, rbrace, clauses))

        return Stmt(start=node.start_byte, end=node.end_byte, parts=parts, type=node.type)

    def build_case(self, node: TsNode) -> CaseClause:
        parts: List[Node] = []
        for child in iter_flat_children(node):
            if child.type in STATEMENT_TYPES or child.type == 'block':
                stmt = self.build_stmt(child)
                if stmt is not None:
                    parts.append(stmt)
            elif is_node(child):
                parts.extend(self.collect_parts(child, include_self=True))
        return CaseClause(start=node.start_byte, end=node.end_byte, parts=parts, type=node.type)

    def collect_parts(self, node: TsNode, include_self: bool = False) -> List[Node]:
        """Identifiers, function literals, blocks and statements inside the node in document order"""
        parts: List[Node] = []
        stack: List[TsNode] = [node] if include_self else list(reversed(node.children))
        while stack:
            child = stack.pop()
            if is_skipped(child):
                continue
            t = child.type
            if t in IDENT_TYPES:
                parts.append(self.build_ident(child))
            elif t == 'func_literal':
                parts.append(Expr(start=child.start_byte, end=child.end_byte, parts=self.collect_parts(child), type=t))
            elif t == 'block' or t in STATEMENT_TYPES or t in CASE_TYPES:
                stmt = self.build_stmt(child)
                if stmt is not None:
                    parts.append(stmt)
            elif t == 'statement_list' or t == 'ERROR' or child.is_named:
                stack.extend(reversed(child.children))
        return parts

    def recover_decls(self, node: TsNode) -> List[Node]:
        """Declarations inside a top level ERROR node"""
        return self.recover_children([child for child in node.children if not is_skipped(child)])

    def recover_children(self, children: List[TsNode]) -> List[Node]:
        """Declarations from the children of a top level ERROR node

        A `func` keyword followed by an opening brace is recovered as a
        function whose body may be missing its closing brace.

        """
        decls: List[Node] = []
        i = 0
        while i < len(children):
            child = children[i]
            if child.type in TOP_LEVEL_DECL_TYPES or child.type == 'ERROR':
                decls.extend(self.build_decl(child))
                i += 1
            elif is_token(child, 'func'):
                func, i = self.recover_func(children, i)
                decls.append(func)
            else:
                if child.is_named:
                    decls.append(BadDecl(start=child.start_byte, end=child.end_byte, parts=self.collect_parts(child, include_self=True)))
                i += 1
        return decls

    def recover_func(self, children: List[TsNode], i: int) -> Tuple[FuncDecl, int]:
        start = children[i].start_byte
        name: Optional[Ident] = None
        signature: List[Node] = []

        j = i + 1
        while j < len(children):
            child = children[j]
            if child.type == 'block':
                body = self.build_block(child)
                return FuncDecl(start=start, end=body.end, name=name, signature=signature, body=body), j + 1
            if is_token(child, '{'):
                break
            if is_token(child, 'func'):
                return FuncDecl(start=start, end=children[j - 1].end_byte, name=name, signature=signature), j
            if child.type == 'identifier' and name is None and not signature:
                name = self.build_ident(child)
            elif child.is_named:
                signature.extend(self.collect_parts(child, include_self=True))
            j += 1
        else:
            return FuncDecl(start=start, end=children[-1].end_byte, name=name, signature=signature), j

        body, j = self.recover_block(children, j + 1, children[j].start_byte)
        return FuncDecl(start=start, end=body.end, name=name, signature=signature, body=body), j

    def is_body_error(self, node: TsNode, next_node: TsNode) -> bool:
        """The parser closed a function declaration without a body, then failed at its opening brace"""
        return (
            node.type in FUNC_DECL_TYPES and
            node.child_by_field_name('body') is None and
            next_node.type == 'ERROR' and
            self.content[next_node.start_byte:next_node.start_byte + 1] == b'{'
        )

    def recover_bodiless_func(self, node: TsNode, error: TsNode) -> List[Node]:
        func = self.build_func_decl(node)
        children = [child for child in error.children if not is_skipped(child)]
        i = 1 if children and is_token(children[0], '{') else 0
        body, i = self.recover_block(children, i, error.start_byte)
        decls: List[Node] = [FuncDecl(start=func.start, end=body.end, name=func.name, signature=func.signature, body=body)]
        decls.extend(self.recover_children(children[i:]))
        return decls

    def recover_block(self, children: List[TsNode], i: int, lbrace: int) -> Tuple[BlockStmt, int]:
        """Block opened at lbrace from the children of an ERROR node, up to its closing brace if there is one

        Statements are kept. Anything else is grouped into bad statements
        by line, nested opening braces start nested blocks.

        """
        stmts: List[Node] = []
        rbrace = -1

        start = end = row = -1
        parts: List[Node] = []

        while i < len(children):
            child = children[i]
            i += 1

            if start >= 0 and (child.start_point[0] != row or is_token(child, ';') or is_token(child, '}') or
                               child.type in STATEMENT_TYPES or child.type in ('block', 'statement_list')):
                self.append_stmt(stmts, BadStmt(start=start, end=end, parts=parts, type='ERROR'))
                start = end = row = -1
                parts = []

            if is_token(child, '}'):
                rbrace = child.start_byte
                break

            if is_token(child, ';'):
                continue

            if child.type == 'statement_list':
                for node in iter_flat_children(child):
                    self.append_stmt(stmts, self.build_stmt(node))
                continue

            if child.type in STATEMENT_TYPES or child.type == 'block':
                self.append_stmt(stmts, self.build_stmt(child))
                continue

            if start < 0:
                start, row = child.start_byte, child.start_point[0]

            if is_token(child, '{'):
                block, i = self.recover_block(children, i, child.start_byte)
                parts.append(block)
                end = block.end
            else:
                parts.extend(self.collect_parts(child, include_self=True))
                end = child.end_byte

        if start >= 0:
            self.append_stmt(stmts, BadStmt(start=start, end=end, parts=parts, type='ERROR'))

        return BlockStmt.new(lbrace, rbrace, stmts), i


class GoParser(TreeSitterParser):
    tree_sitter_language_name = 'go'

    def parse(self, content: bytes) -> ParseResult:
        tree = self.parse_tree(content)
        root = tree.root_node
        file = GoTreeBuilder(content).build_file(root)
        errors = [self.describe_error(content, node) for node in iter_error_nodes(root)]
        errors.sort(key=lambda e: e.offset)
        return ParseResult(tree=file, errors=errors)

    @staticmethod
    def describe_error(content: bytes, node: TsNode) -> ParseError:
        if node.is_missing:
            return ParseError(offset=node.start_byte, message=f'syntax error: missing {node.type}')

        text = node_text(content, node).strip().split('\n', 1)[0].strip()
        if len(text) > 40:
            text = text[:40] + '...'
        return ParseError(offset=node.start_byte, message=f'syntax error: unexpected {text or "newline"}')
