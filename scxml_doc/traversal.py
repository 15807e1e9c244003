"""
Depth-first traversal of the structural model.

Dispatch uses the ``tag`` discriminant each model class carries. The
CHILD_FIELDS table lists, per tag, the fields that hold structural
children in serialization order; every class in model.STRUCTURAL_TYPES
has an entry.
"""

from typing import Iterator

from .model import Node

CHILD_FIELDS = {
    'scxml': ('datamodel', 'children'),
    'state': (
        'onentry', 'onexit', 'initial_transition', 'datamodel',
        'invokes', 'histories', 'transitions', 'children',
    ),
    'parallel': (
        'onentry', 'onexit', 'datamodel',
        'invokes', 'histories', 'transitions', 'children',
    ),
    'final': ('onentry', 'onexit', 'donedata'),
    'history': ('onentry', 'onexit', 'transitions'),
    'transition': (),
    'invoke': ('finalize',),
    'onentry': (),
    'onexit': (),
    'finalize': (),
    'datamodel': ('data',),
    'data': (),
    'donedata': (),
}


def child_nodes(node: Node) -> Iterator[Node]:
    """Direct structural children of node, in serialization order"""
    try:
        fields = CHILD_FIELDS[node.tag]
    except KeyError:
        raise TypeError(f"Not a structural node: {node!r}")
    for name in fields:
        value = getattr(node, name)
        if value is None:
            continue
        if isinstance(value, tuple):
            yield from value
        else:
            yield value


def iter_nodes(node: Node) -> Iterator[Node]:
    """Yield node and every structural descendant, depth-first (pre-order)"""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(child_nodes(current))))


class NodeVisitor:
    """
    Walks the structural tree and calls a visitor function for every node.

    Subclasses define ``visit_<tag>`` methods (``visit_state``,
    ``visit_transition``, ...). Nodes without one go to generic_visit, which
    visits their children. A ``visit_<tag>`` method that wants the
    children visited too must call generic_visit itself.
    """

    def visit(self, node: Node):
        visitor = getattr(self, f'visit_{node.tag}', self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: Node):
        for child in child_nodes(node):
            self.visit(child)
