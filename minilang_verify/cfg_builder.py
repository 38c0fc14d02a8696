# cfg_builder.py
from dataclasses import dataclass, field
from typing import Optional

import graphviz

from .ast_nodes import Assert, Assignment, For, If, Program, While, format_stmt
from .errors import UnknownConstruct


@dataclass(frozen=True)
class CFGNode:
    id: int
    label: str


@dataclass(frozen=True)
class CFGEdge:
    source: int
    target: int
    label: Optional[str] = None


@dataclass
class ControlFlowGraph:
    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)

    def to_dict(self):
        edges = []
        for edge in self.edges:
            item = {"from": edge.source, "to": edge.target}
            if edge.label:
                item["label"] = edge.label
            edges.append(item)
        return {
            "nodes": [{"id": n.id, "label": n.label} for n in self.nodes],
            "edges": edges,
        }

    def to_dot(self, name="CFG"):
        dot = graphviz.Digraph(name)
        dot.attr(rankdir="TB")
        dot.attr("node", fontname="Helvetica", fontsize="10")
        decisions = {e.source for e in self.edges if e.label in ("T", "F")}
        for node in self.nodes:
            shape = "diamond" if node.id in decisions else "box"
            if node.id == 0:
                shape = "ellipse"
            dot.node(str(node.id), label=node.label, shape=shape)
        for edge in self.edges:
            dot.edge(str(edge.source), str(edge.target), label=edge.label or "")
        return dot


class CFGBuilder:
    """Structural CFG: one node per statement, ids in pre-order.

    Statements hang off their enclosing container (program start, then/else
    branch or loop body). Loops get a back edge from the body node to the
    decision node and no explicit exit edge.
    """

    def __init__(self):
        self.nodes = []
        self.edges = []
        self.next_id = 0

    def _new_node(self, label):
        node = CFGNode(self.next_id, label)
        self.next_id += 1
        self.nodes.append(node)
        return node.id

    def _add_edge(self, source, target, label=None):
        self.edges.append(CFGEdge(source, target, label))

    def build(self, program: Program) -> ControlFlowGraph:
        start = self._new_node("Program Start")
        for stmt in program.body:
            self._process(stmt, start)
        return ControlFlowGraph(self.nodes, self.edges)

    def _process(self, stmt, parent):
        if not isinstance(stmt, (Assignment, Assert, If, While, For)):
            raise UnknownConstruct(stmt, "cfg")
        node = self._new_node(format_stmt(stmt))
        self._add_edge(parent, node)

        if isinstance(stmt, If):
            then_node = self._new_node("Then")
            self._add_edge(node, then_node, "T")
            for child in stmt.then_body:
                self._process(child, then_node)
            else_node = self._new_node("Else")
            self._add_edge(node, else_node, "F")
            for child in stmt.else_body:
                self._process(child, else_node)

        elif isinstance(stmt, (While, For)):
            body_node = self._new_node("Loop Body")
            self._add_edge(node, body_node, "T")
            for child in stmt.body:
                self._process(child, body_node)
            if isinstance(stmt, For):
                self._process(stmt.update, body_node)
            self._add_edge(body_node, node)


def build_cfg(program: Program) -> ControlFlowGraph:
    return CFGBuilder().build(program)
