"""Bounded loop unrolling on the AST.

``while (c) { body }`` becomes ``depth`` nested copies of
``if (c) { body; if (c) { body; ... } }``; a ``for`` loop keeps its init in
front and appends its update to every copied body. Executions needing more
iterations than ``depth`` are cut off.
"""

from .ast_nodes import Assert, Assignment, For, If, Program, While
from .errors import ConfigError, UnknownConstruct


def unroll_loops(program: Program, depth: int) -> Program:
    if depth < 1:
        raise ConfigError(f"unroll depth must be at least 1, got {depth}")
    return Program(_unroll_block(program.body, depth))


def _unroll_block(stmts, depth):
    out = []
    for stmt in stmts:
        out.extend(_unroll_stmt(stmt, depth))
    return tuple(out)


def _unroll_stmt(stmt, depth):
    if isinstance(stmt, (Assignment, Assert)):
        return (stmt,)
    if isinstance(stmt, If):
        return (If(stmt.cond, _unroll_block(stmt.then_body, depth),
                   _unroll_block(stmt.else_body, depth)),)
    if isinstance(stmt, While):
        return _nest(stmt.cond, _unroll_block(stmt.body, depth), depth)
    if isinstance(stmt, For):
        body = _unroll_block(stmt.body, depth) + (stmt.update,)
        return (stmt.init,) + _nest(stmt.cond, body, depth)
    raise UnknownConstruct(stmt, "unroll")


def _nest(cond, body, depth):
    nested = ()
    for _ in range(depth):
        nested = (If(cond, body + nested, ()),)
    return nested
