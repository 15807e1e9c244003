"""
Identifier references within a document.

``initial`` and ``target`` fields hold id strings. resolve() is the single
lookup used to turn them into nodes; check_references() is an optional
validation pass, never run by construction or parsing.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import ReferenceResolutionError
from .model import Document, Node
from .traversal import iter_nodes

# W3C SCXML 3.11: ids a transition target or an initial attribute may name
REFERENCEABLE_TAGS = ('state', 'parallel', 'final', 'history')


@dataclass(frozen=True)
class ReferenceIssue:
    """One reference that does not resolve"""
    source: str  # owning element, e.g. "state 'a'"
    attribute: str  # initial, target, id
    reference: str
    message: str

    def __str__(self):
        return f"{self.source} {self.attribute}=\"{self.reference}\": {self.message}"


def index_ids(document: Document) -> Dict[str, Node]:
    """Map every referenceable id to its node (first occurrence wins)"""
    index: Dict[str, Node] = {}
    for node in iter_nodes(document):
        if node.tag in REFERENCEABLE_TAGS and node.id and node.id not in index:
            index[node.id] = node
    return index


def resolve(document: Document, node_id: str) -> Optional[Node]:
    """Find the state, parallel, final or history with this id anywhere in document"""
    return index_ids(document).get(node_id)


def _describe(node: Node) -> str:
    if node.tag == 'scxml':
        return '<scxml>'
    node_id = getattr(node, 'id', None)
    return f"{node.tag} '{node_id}'" if node_id else node.tag


def find_reference_issues(document: Document) -> List[ReferenceIssue]:
    """
    Collect unresolved references, in document order

    Checks:
        - ids are unique across states, parallels, finals and histories
        - <scxml initial> names a direct child (W3C SCXML 3.2)
        - <state initial> names a child or history of that state and is
          not set on an atomic state (W3C SCXML 3.3)
        - every transition target exists in the document (W3C SCXML 3.5)
    """
    issues: List[ReferenceIssue] = []
    index: Dict[str, Node] = {}

    for node in iter_nodes(document):
        if node.tag in REFERENCEABLE_TAGS and node.id:
            if node.id in index:
                issues.append(ReferenceIssue(_describe(node), 'id', node.id, "duplicate id"))
            else:
                index[node.id] = node

    if document.initial:
        direct = {child.id for child in document.children}
        for ref in document.initial.split():
            if ref not in direct:
                issues.append(ReferenceIssue(
                    '<scxml>', 'initial', ref, "not a top-level state"
                ))

    owner = {}
    for node in iter_nodes(document):
        for child in getattr(node, 'transitions', ()):
            owner[id(child)] = node
        if node.tag == 'state' and node.initial_transition is not None:
            owner[id(node.initial_transition)] = node

        if node.tag == 'state' and node.initial:
            if not node.children:
                issues.append(ReferenceIssue(
                    _describe(node), 'initial', node.initial, "initial set on an atomic state"
                ))
            else:
                local = {child.id for child in node.children + node.histories}
                for ref in node.initial.split():
                    if ref not in local:
                        issues.append(ReferenceIssue(
                            _describe(node), 'initial', ref, "not a child or history of this state"
                        ))

        if node.tag == 'transition':
            source = owner.get(id(node))
            for ref in node.target:
                if ref not in index:
                    issues.append(ReferenceIssue(
                        f"transition in {_describe(source)}" if source is not None else 'transition',
                        'target', ref, "no such state",
                    ))

    return issues


def check_references(document: Document) -> Document:
    """
    Validate references

    Returns:
        document, unchanged

    Raises:
        ReferenceResolutionError: listing every issue found
    """
    issues = find_reference_issues(document)
    if issues:
        logging.debug(f"Reference check found {len(issues)} issue(s)")
        raise ReferenceResolutionError(issues)
    return document
