"""
HTML outline report of a document (Jinja2).

One row per structural node, indented by nesting depth, plus a summary and
the result of the reference check.
"""

from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .model import Document
from .references import find_reference_issues
from .traversal import NodeVisitor, iter_nodes


class OutlineBuilder(NodeVisitor):
    """Collects outline rows while walking the tree"""

    def __init__(self):
        self.rows: List[Dict] = []
        self.depth = 0

    def _row(self, node, label: str, detail: str = ''):
        self.rows.append({
            'depth': self.depth,
            'tag': node.tag,
            'label': label,
            'detail': detail,
        })

    def _nested(self, node):
        self.depth += 1
        self.generic_visit(node)
        self.depth -= 1

    def visit_state(self, node):
        detail = node.kind
        if node.initial:
            detail += f", initial {node.initial}"
        self._row(node, node.id or '(anonymous)', detail)
        self._nested(node)

    def visit_parallel(self, node):
        self._row(node, node.id or '(anonymous)', f"{len(node.children)} region(s)")
        self._nested(node)

    def visit_final(self, node):
        self._row(node, node.id or '(anonymous)')
        self._nested(node)

    def visit_history(self, node):
        self._row(node, node.id or '(anonymous)', node.type)
        self._nested(node)

    def visit_transition(self, node):
        label = ' '.join(node.event) or '(eventless)'
        detail = f"-> {' '.join(node.target)}" if node.target else 'targetless'
        if node.type == 'internal':
            detail += ', internal'
        if node.cond:
            detail += f" [{node.cond}]"
        self._row(node, label, detail)

    def visit_invoke(self, node):
        self._row(node, node.id or '(anonymous)', node.src or node.type or '')
        self._nested(node)

    def visit_onentry(self, node):
        self._row(node, node.tag, f"{len(node.execution)} action(s)")

    visit_onexit = visit_onentry
    visit_finalize = visit_onentry

    def visit_datamodel(self, node):
        ids = ', '.join(data.id for data in node.data if data.id)
        self._row(node, node.tag, ids)


class OutlineRenderer:
    """
    Renders outline.html.jinja2

    Uses Jinja2 templates from scxml_doc/templates unless template_dir is given.
    """

    def __init__(self, template_dir=None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'

        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml', 'jinja2']),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, document: Document, title: Optional[str] = None) -> str:
        builder = OutlineBuilder()
        builder.visit(document)

        counts: Dict[str, int] = {}
        for node in iter_nodes(document):
            counts[node.tag] = counts.get(node.tag, 0) + 1

        template = self.env.get_template('outline.html.jinja2')
        return template.render(
            document=document,
            title=title or document.name or 'SCXML document',
            rows=builder.rows,
            counts=counts,
            issues=find_reference_issues(document),
        )


def render_outline(document: Document, title: Optional[str] = None, template_dir=None) -> str:
    """Render the HTML outline of document"""
    return OutlineRenderer(template_dir).render(document, title)
