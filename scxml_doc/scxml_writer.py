"""
SCXML Writer

Serializes a scxml_doc.model.Document to W3C SCXML markup.

Output is deterministic: elements appear in the order they are stored in
the model, attributes without a value are omitted, elements without a body
self-close, and text bodies are written inline so that parsing the output
and writing it again yields identical text.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .config import (
    FORMAT_CONFIG, FORMAT_PREFIX, ROOT_TAG, SCXML_NS, SERIALIZER_DEFAULTS, XML_NS,
)
from .errors import SerializationError
from .model import Document

Attributes = Iterable[Tuple[str, Optional[str]]]

# XML 1.0 section 2.2: everything outside the Char production
INVALID_XML_CHARS = re.compile('[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]')


def escape_text(text: str) -> str:
    """Escape character data (ampersand first so existing entities are not doubled)"""
    text = text.replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')
    # XML parsers fold CR into LF, keep it as a character reference
    return text.replace('\r', '&#13;')


def escape_attribute(value: str) -> str:
    """Escape an attribute value for a double-quoted attribute"""
    value = escape_text(value).replace('"', '&quot;')
    # Attribute-value normalization would turn raw whitespace into spaces
    return value.replace('\t', '&#9;').replace('\n', '&#10;')


def _join_tokens(tokens) -> Optional[str]:
    """W3C SCXML 3.5: single-space separated list, as the parser will split it"""
    return ' '.join(' '.join(tokens).split()) or None


def _check_chars(tag: str, where: str, value: str):
    """Raise SerializationError if value holds a character XML cannot carry"""
    match = INVALID_XML_CHARS.search(value)
    if match is not None:
        raise SerializationError(
            f"Character {match.group()!r} cannot be written in XML ({where} of <{tag}>)"
        )


def _is_declaration(name: str) -> bool:
    return name == 'xmlns' or name.startswith('xmlns:')


@dataclass
class SerializerOptions:
    """Formatting options for serialize()"""
    indent: str = SERIALIZER_DEFAULTS['indent']
    newline: str = SERIALIZER_DEFAULTS['newline']
    pretty: bool = SERIALIZER_DEFAULTS['pretty']


class SCXMLWriter:
    """
    Depth-first SCXML emitter

    Each model element maps to exactly one ``_write_<tag>`` method.
    Dispatch goes through the ``tag`` discriminant via the tables below.
    """

    # W3C SCXML 4: executable content
    EXECUTABLE_EMITTERS = {
        'raise': '_write_raise',
        'send': '_write_send',
        'log': '_write_log',
        'cancel': '_write_cancel',
        'assign': '_write_assign',
        'if': '_write_if',
        'foreach': '_write_foreach',
        'script': '_write_script',
        'custom': '_write_custom',
    }

    # Custom names that a parse would read back as SCXML executable content
    SHADOWED_TAGS = frozenset(EXECUTABLE_EMITTERS) - {'custom'}
    # W3C SCXML 4.3: branch markers, only meaningful directly inside <if>
    BRANCH_MARKERS = frozenset(['elseif', 'else'])

    # W3C SCXML 3: children of <scxml>, <state> and <parallel>
    CHILD_EMITTERS = {
        'state': '_write_state',
        'parallel': '_write_parallel',
        'final': '_write_final',
    }

    def __init__(self, options: Optional[SerializerOptions] = None):
        self.options = options or SerializerOptions()
        self.pretty = self.options.pretty
        self.indent = self.options.indent if self.pretty else ''
        self.newline = self.options.newline if self.pretty else ''
        self.depth = 0
        self.parts: List[str] = []
        self.scope: Dict[str, str] = {}

    def write(self, document: Document) -> str:
        """
        Serialize a document

        Args:
            document: Root of the model tree

        Returns:
            SCXML markup, starting with the XML declaration, trimmed
        """
        self.depth = 0
        self.parts = [FORMAT_CONFIG['declaration'] + self.newline]
        self._write_scxml(document)
        logging.debug(
            f"Serialized <{ROOT_TAG}> with {len(document.children)} top-level state(s)"
        )
        return ''.join(self.parts).strip()

    # ------------------------------------------------------------------
    # Low-level emission
    # ------------------------------------------------------------------

    def _pad(self) -> str:
        return self.indent * self.depth

    def _attrs(self, tag: str, attrs: Attributes, keep_empty: bool = False) -> str:
        # "" reads back as absent, so it is only written for Custom attributes
        parts = []
        for name, value in attrs:
            if value is None or (value == '' and not keep_empty):
                continue
            _check_chars(tag, f"attribute '{name}'", value)
            parts.append(f' {name}="{escape_attribute(value)}"')
        return ''.join(parts)

    def _element(self, tag: str, attrs: Attributes, emit_body=None, keep_empty: bool = False):
        """Emit <tag> around whatever emit_body writes, self-closed if it writes nothing"""
        attr_text = self._attrs(tag, attrs, keep_empty)
        mark = len(self.parts)
        self.depth += 1
        if emit_body is not None:
            emit_body()
        self.depth -= 1

        if len(self.parts) == mark:
            self.parts.append(f'{self._pad()}<{tag}{attr_text}/>{self.newline}')
            return

        body = self.parts[mark:]
        del self.parts[mark:]
        self.parts.append(f'{self._pad()}<{tag}{attr_text}>{self.newline}')
        self.parts.extend(body)
        self.parts.append(f'{self._pad()}</{tag}>{self.newline}')

    def _text_element(self, tag: str, attrs: Attributes, text: Optional[str], keep_empty: bool = False):
        """Emit <tag>text</tag> on one line so the text survives a parse verbatim"""
        attr_text = self._attrs(tag, attrs, keep_empty)
        if not text:
            self.parts.append(f'{self._pad()}<{tag}{attr_text}/>{self.newline}')
            return
        _check_chars(tag, 'text', text)
        self.parts.append(
            f'{self._pad()}<{tag}{attr_text}>{escape_text(text)}</{tag}>{self.newline}'
        )

    def _body_element(self, tag: str, attrs: Attributes, body, keep_empty: bool = False):
        """Body is text, a tuple of executable content, or None"""
        if isinstance(body, str):
            self._text_element(tag, attrs, body, keep_empty)
        else:
            self._element(tag, attrs, lambda: self._write_executables(body or ()), keep_empty)

    # ------------------------------------------------------------------
    # Executable content
    # ------------------------------------------------------------------

    def _write_executables(self, nodes):
        for node in nodes:
            self._write_executable(node)

    def _write_executable(self, node):
        method = self.EXECUTABLE_EMITTERS.get(getattr(node, 'tag', None))
        if method is None:
            raise TypeError(f"Not an executable content element: {node!r}")
        getattr(self, method)(node)

    def _write_raise(self, node):
        self._element('raise', [('event', node.event)])

    def _write_log(self, node):
        self._element('log', [('label', node.label), ('expr', node.expr)])

    def _write_cancel(self, node):
        self._element('cancel', [('sendid', node.sendid), ('sendidexpr', node.sendidexpr)])

    def _write_assign(self, node):
        self._element('assign', [
            ('location', node.location),
            ('expr', node.expr),
            ('src', node.src),
        ])

    def _write_script(self, node):
        self._text_element('script', [('src', node.src)], node.content)

    def _write_param(self, node):
        self._element('param', [
            ('name', node.name),
            ('expr', node.expr),
            ('location', node.location),
        ])

    def _write_content(self, node):
        if node is None:
            return
        self._body_element('content', [('expr', node.expr)], node.body)

    def _write_send(self, node):
        attrs = [
            ('event', node.event),
            ('eventexpr', node.eventexpr),
            ('target', node.target),
            ('targetexpr', node.targetexpr),
            ('type', node.type),
            ('typeexpr', node.typeexpr),
            ('id', node.id),
            ('idlocation', node.idlocation),
            ('delay', node.delay),
            ('delayexpr', node.delayexpr),
            ('namelist', node.namelist),
        ]

        def body():
            for param in node.params:
                self._write_param(param)
            self._write_content(node.content)

        self._element('send', attrs, body)

    def _write_if(self, node):
        # W3C SCXML 4.3: branches are siblings separated by empty markers
        branches = [node.then] + [branch.then for branch in node.elseifs]
        if node.else_ is not None:
            branches.append(node.else_.then)
        for branch in branches:
            for child in branch:
                if self._reads_as_scxml(child, self.BRANCH_MARKERS):
                    raise SerializationError(
                        f"Custom element <{child.name}> inside <if> would be read back as a branch marker"
                    )

        def body():
            self._write_executables(node.then)
            for branch in node.elseifs:
                self._element('elseif', [('cond', branch.cond)])
                self._write_executables(branch.then)
            if node.else_ is not None:
                self._element('else', [])
                self._write_executables(node.else_.then)

        self._element('if', [('cond', node.cond)], body)

    def _write_foreach(self, node):
        attrs = [('array', node.array), ('item', node.item), ('index', node.index)]
        self._element('foreach', attrs, lambda: self._write_executables(node.body))

    def _custom_declarations(self, node):
        """
        Namespace declarations a Custom element writes, and the scope inside it

        Declarations already in scope are dropped, since a parse cannot
        tell them apart from inherited ones. The rest come first, sorted.
        """
        scope = dict(self.scope)
        declarations = []
        for name in sorted(key for key in node.attributes if _is_declaration(key)):
            prefix = name.partition(':')[2]
            uri = node.attributes[name]
            if self.scope.get(prefix) != uri:
                declarations.append((name, uri))
                scope[prefix] = uri
        return declarations, scope

    def _namespace_of(self, name: str, scope) -> str:
        """Namespace a prefix:local name resolves to in scope ('' for none)"""
        prefix = name.rpartition(':')[0]
        if prefix == 'xml':
            return XML_NS
        if prefix not in scope:
            raise SerializationError(f"Unbound namespace prefix in '{name}'")
        return scope[prefix]

    def _reads_as_scxml(self, node, names) -> bool:
        """True when Custom node would parse back as one of the SCXML elements in names"""
        if getattr(node, 'tag', None) != 'custom':
            return False
        scope = self._custom_declarations(node)[1]
        return (node.name.rpartition(':')[2] in names
                and self._namespace_of(node.name, scope) in (SCXML_NS, ''))

    def _write_custom(self, node):
        declarations, scope = self._custom_declarations(node)
        if self._reads_as_scxml(node, self.SHADOWED_TAGS):
            raise SerializationError(
                f"Custom element <{node.name}> would be read back as SCXML executable content"
            )
        attributes = [(key, value) for key, value in node.attributes.items() if not _is_declaration(key)]
        for key, _ in attributes:
            if ':' in key:
                self._namespace_of(key, scope)

        outer = self.scope
        self.scope = scope
        try:
            self._body_element(node.name, declarations + attributes, node.body, keep_empty=True)
        finally:
            self.scope = outer

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _write_block(self, tag: str, block):
        """<onentry>, <onexit>, <finalize>"""
        if block is None:
            return
        self._element(tag, [], lambda: self._write_executables(block.execution))

    def _write_datamodel(self, datamodel):
        if datamodel is None:
            return

        def body():
            for data in datamodel.data:
                self._body_element('data', [
                    ('id', data.id),
                    ('src', data.src),
                    ('expr', data.expr),
                    ('location', data.location),
                ], data.body)

        self._element('datamodel', [], body)

    def _write_transition(self, transition):
        attrs = [
            ('event', _join_tokens(transition.event)),
            ('cond', transition.cond),
            ('target', _join_tokens(transition.target)),
            # W3C SCXML 3.5: "external" is the default and stays implicit
            ('type', transition.type if transition.type != 'external' else None),
        ]
        self._element('transition', attrs, lambda: self._write_executables(transition.execution))

    def _write_history(self, history):
        def body():
            self._write_block('onentry', history.onentry)
            self._write_block('onexit', history.onexit)
            for transition in history.transitions:
                self._write_transition(transition)

        # W3C SCXML 3.10: type is always written, "shallow" when unset
        self._element('history', [('id', history.id), ('type', history.type or 'shallow')], body)

    def _write_invoke(self, invoke):
        attrs = [
            ('id', invoke.id),
            ('type', invoke.type),
            ('typeexpr', invoke.typeexpr),
            ('src', invoke.src),
            ('srcexpr', invoke.srcexpr),
            ('idlocation', invoke.idlocation),
            ('namelist', invoke.namelist),
            ('autoforward', 'true' if invoke.autoforward else None),
        ]

        def body():
            for param in invoke.params:
                self._write_param(param)
            self._write_block('finalize', invoke.finalize)
            self._write_content(invoke.content)

        self._element('invoke', attrs, body)

    def _write_children(self, children):
        for child in children:
            method = self.CHILD_EMITTERS.get(getattr(child, 'tag', None))
            if method is None:
                raise TypeError(f"Not a state, parallel or final element: {child!r}")
            getattr(self, method)(child)

    def _write_compound_body(self, node):
        for invoke in node.invokes:
            self._write_invoke(invoke)
        for history in node.histories:
            self._write_history(history)
        for transition in node.transitions:
            self._write_transition(transition)
        self._write_children(node.children)

    def _write_state(self, state):
        def body():
            self._write_block('onentry', state.onentry)
            self._write_block('onexit', state.onexit)
            if state.initial_transition is not None:
                self._element('initial', [], lambda: self._write_transition(state.initial_transition))
            self._write_datamodel(state.datamodel)
            self._write_compound_body(state)

        self._element('state', [('id', state.id), ('initial', state.initial)], body)

    def _write_parallel(self, parallel):
        def body():
            self._write_block('onentry', parallel.onentry)
            self._write_block('onexit', parallel.onexit)
            self._write_datamodel(parallel.datamodel)
            self._write_compound_body(parallel)

        self._element('parallel', [('id', parallel.id)], body)

    def _write_final(self, final):
        def body():
            self._write_block('onentry', final.onentry)
            self._write_block('onexit', final.onexit)
            if final.donedata is not None:
                donedata = final.donedata

                def donedata_body():
                    for param in donedata.params:
                        self._write_param(param)
                    self._write_content(donedata.content)

                self._element('donedata', [], donedata_body)

        self._element('final', [('id', final.id)], body)

    def _write_scxml(self, document: Document):
        attrs = [
            ('xmlns', SCXML_NS),
            ('version', document.version or FORMAT_CONFIG['default_version']),
            ('name', document.name),
            ('datamodel', document.profile),
            ('initial', document.initial),
            ('binding', document.binding),
        ]
        # W3C SCXML 3.2: canonical binding is the default namespace above
        for prefix in sorted(document.xmlns):
            if prefix != FORMAT_PREFIX:
                attrs.append((f'xmlns:{prefix}', document.xmlns[prefix]))
        self.scope = {'': SCXML_NS}
        self.scope.update((prefix, uri) for prefix, uri in document.xmlns.items() if prefix != FORMAT_PREFIX)

        def body():
            if document.script is not None:
                self._write_script(document.script)
            self._write_datamodel(document.datamodel)
            self._write_children(document.children)

        self._element(ROOT_TAG, attrs, body)


def serialize(document: Document, options: Optional[SerializerOptions] = None) -> str:
    """Serialize a document to SCXML markup (see SCXMLWriter)"""
    return SCXMLWriter(options).write(document)


def write_file(document: Document, path, options: Optional[SerializerOptions] = None) -> Path:
    """Serialize a document and write it to path as UTF-8"""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        f.write(serialize(document, options))
        f.write('\n')
    logging.info(f"Wrote SCXML document: {output_path}")
    return output_path
