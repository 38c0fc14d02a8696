"""Line-oriented parser for the mini language.

Every statement sits on its own line; block constructs open with ``{`` on the
header line and their bodies are found by counting braces. Expressions are
parsed without precedence: the first operator of ``BINARY_OPS`` that occurs in
the text splits it at its first occurrence.
"""

import logging
import re

from .ast_nodes import (
    BINARY_OPS, Assert, Assignment, ArrayAccess, BinaryOp, For, If, Literal,
    Program, UnaryOp, Variable, While,
)
from .errors import ParseError

logger = logging.getLogger(__name__)

IDENT = r"[A-Za-z_][A-Za-z0-9_]*"
IDENT_RE = re.compile(IDENT)
INT_RE = re.compile(r"-?[0-9]+")
KEYWORD_RE = re.compile(r"(if|else|while|for|assert)\b")

IF_RE = re.compile(r"if\s*\((.*?)\)\s*\{(.*)")
ELSE_RE = re.compile(r"else\s*\{(.*)")
WHILE_RE = re.compile(r"while\s*\((.*?)\)\s*\{(.*)")
FOR_RE = re.compile(r"for\s*\((.*?);(.*?);(.*?)\)\s*\{(.*)")
ASSERT_RE = re.compile(r"assert\s*\((.*)\)\s*;")
ASSIGN_RE = re.compile(rf"({IDENT})\s*:=\s*(.*)")
ARRAY_HEAD_RE = re.compile(rf"({IDENT})\s*\[")

# characters after which a '-' is a sign, not a subtraction
_SIGN_CONTEXT = "=!<>+-*/%"


def parse(text: str) -> Program:
    """Parse program text into a ``Program``; raises ``ParseError``."""
    lines = []
    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.split("//", 1)[0].strip()
        if stripped:
            lines.append((number, stripped))
    program = Program(tuple(_parse_block(lines)))
    logger.debug("parsed %d top-level statements", len(program.body))
    return program


def _parse_block(lines):
    body = []
    i = 0
    while i < len(lines):
        number, line = lines[i]
        i += 1
        keyword = KEYWORD_RE.match(line)
        keyword = keyword.group(1) if keyword else None

        if keyword == "if":
            m = IF_RE.fullmatch(line)
            if not m:
                raise ParseError(number, f"invalid if statement: {line}")
            cond = parse_expression(m.group(1), number)
            then_lines, trailing, closing, i = _extract_block(lines, i, number, m.group(2))
            if not trailing and i < len(lines) and lines[i][1].startswith("else"):
                closing, trailing = lines[i]
                i += 1
            else_lines = []
            if trailing and KEYWORD_RE.match(trailing) and trailing.startswith("else"):
                em = ELSE_RE.fullmatch(trailing)
                if not em:
                    raise ParseError(closing, f"invalid else clause: {trailing}")
                else_lines, trailing, closing, i = _extract_block(lines, i, closing, em.group(1))
            _push_back(lines, i, closing, trailing)
            body.append(If(cond, tuple(_parse_block(then_lines)),
                           tuple(_parse_block(else_lines))))

        elif keyword == "while":
            m = WHILE_RE.fullmatch(line)
            if not m:
                raise ParseError(number, f"invalid while statement: {line}")
            cond = parse_expression(m.group(1), number)
            block, trailing, closing, i = _extract_block(lines, i, number, m.group(2))
            _push_back(lines, i, closing, trailing)
            body.append(While(cond, tuple(_parse_block(block))))

        elif keyword == "for":
            m = FOR_RE.fullmatch(line)
            if not m:
                raise ParseError(number, f"invalid for statement: {line}")
            init = _parse_assignment(m.group(1), number)
            cond = parse_expression(m.group(2), number)
            update = _parse_assignment(m.group(3).strip().rstrip(";"), number)
            block, trailing, closing, i = _extract_block(lines, i, number, m.group(4))
            _push_back(lines, i, closing, trailing)
            body.append(For(init, cond, update, tuple(_parse_block(block))))

        elif keyword == "assert":
            m = ASSERT_RE.fullmatch(line)
            if not m:
                raise ParseError(number, f"invalid assert statement: {line}")
            body.append(Assert(parse_expression(m.group(1), number)))

        elif keyword == "else":
            raise ParseError(number, "'else' without a matching 'if'")

        elif line.startswith("}"):
            raise ParseError(number, "unmatched '}'")

        elif ":=" in line:
            if not line.endswith(";"):
                raise ParseError(number, f"expected ';' after assignment: {line}")
            body.append(_parse_assignment(line[:-1], number))

        else:
            raise ParseError(number, f"unrecognized statement: {line}")
    return body


def _extract_block(lines, start, header_line, rest):
    """Collect the body of a block whose opening brace was already consumed.

    ``rest`` is the text after that brace on the header line. Returns the body
    lines, the text after the matching ``}``, the line number of that brace and
    the index of the next unread line.
    """
    depth = 1
    block = []
    number, chunk = header_line, rest
    i = start
    while True:
        for pos, ch in enumerate(chunk):
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    head = chunk[:pos].strip()
                    if head:
                        block.append((number, head))
                    return block, chunk[pos + 1:].strip(), number, i
        if chunk.strip():
            block.append((number, chunk.strip()))
        if i >= len(lines):
            raise ParseError(header_line, "unterminated block: missing '}'")
        number, chunk = lines[i]
        i += 1


def _push_back(lines, i, number, text):
    # statement sharing a line with the closing brace of the previous block
    if text:
        lines.insert(i, (number, text))


def _parse_assignment(text, line):
    m = ASSIGN_RE.fullmatch(text.strip())
    if not m:
        raise ParseError(line, f"invalid assignment: {text.strip()}")
    return Assignment(m.group(1), parse_expression(m.group(2), line))


def parse_expression(text: str, line: int = 0):
    """Parse one expression with the fixed-priority, left-first split rule."""
    expr = text.strip()
    if not expr:
        raise ParseError(line, "missing operand")
    if INT_RE.fullmatch(expr):
        return Literal(int(expr))

    access = _match_array_access(expr)
    if access is not None:
        name, index = access
        return ArrayAccess(name, parse_expression(index, line))

    for op in BINARY_OPS:
        pos = _find_operator(expr, op)
        if pos >= 0:
            left = parse_expression(expr[:pos], line)
            right = parse_expression(expr[pos + len(op):], line)
            return BinaryOp(op, left, right)

    if expr.startswith("!"):
        return UnaryOp("!", parse_expression(expr[1:], line))
    if IDENT_RE.fullmatch(expr):
        return Variable(expr)
    raise ParseError(line, f"invalid expression: {expr}")


def _match_array_access(expr):
    m = ARRAY_HEAD_RE.match(expr)
    if not m:
        return None
    depth = 0
    for pos in range(m.end() - 1, len(expr)):
        if expr[pos] == "[":
            depth += 1
        elif expr[pos] == "]":
            depth -= 1
            if depth == 0:
                if pos != len(expr) - 1:
                    return None
                return m.group(1), expr[m.end():pos]
    return None


def _find_operator(expr, op):
    """Index of the first occurrence of ``op`` outside brackets, or -1."""
    depth = 0
    for pos, ch in enumerate(expr):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif depth == 0 and expr.startswith(op, pos):
            if op == "-" and _is_sign(expr, pos):
                continue
            return pos
    return -1


def _is_sign(expr, pos):
    before = expr[:pos].rstrip()
    return not before or before[-1] in _SIGN_CONTEXT
