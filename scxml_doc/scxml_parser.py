"""
SCXML Parser

Parses W3C SCXML markup into the immutable scxml_doc.model tree.

Parsing is lossless for everything the model stores: executable content
the parser does not recognize is kept as Custom, and empty attributes are
treated as absent so that ``attr=""`` and no attribute at all read back the
same way.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from lxml import etree

from .config import ROOT_TAG, SCXML_NS, XML_NS
from .errors import FormatError
from .model import (
    Assign, Cancel, Content, Custom, Data, Datamodel, Document, DoneData, Else,
    ElseIf, Final, Finalize, Foreach, History, If, Invoke, Log, OnEntry, OnExit,
    Parallel, Param, Raise, Script, Send, State, Transition,
)
from .tokenizer import MarkupTokenizer, get_tokenizer


def _attr(elem, name: str) -> Optional[str]:
    """Attribute value, with "" read as absent"""
    value = elem.get(name)
    return value if value else None


def _localname(elem) -> str:
    return etree.QName(elem).localname


def _is_scxml(elem) -> bool:
    namespace = etree.QName(elem).namespace
    return namespace is None or namespace == SCXML_NS


def _elements(parent):
    """Element children only (text, comments and processing instructions are skipped)"""
    for child in parent:
        if isinstance(child.tag, str):
            yield child


def _stray_text(parent) -> str:
    """Non-whitespace text between the children of parent, space-joined"""
    chunks = [parent.text] + [child.tail for child in parent]
    return ' '.join(chunk.strip() for chunk in chunks if chunk and chunk.strip())


class SCXMLParser:
    """
    SCXML markup to Document

    Structural children are classified by element name per container;
    anything unknown in an executable-content position becomes Custom.
    """

    # W3C SCXML 4: executable content
    EXECUTABLE_PARSERS = {
        'raise': '_parse_raise',
        'send': '_parse_send',
        'log': '_parse_log',
        'cancel': '_parse_cancel',
        'assign': '_parse_assign',
        'if': '_parse_if',
        'foreach': '_parse_foreach',
        'script': '_parse_script',
    }

    def __init__(self, tokenizer: Optional[MarkupTokenizer] = None):
        self.tokenizer = tokenizer or get_tokenizer()
        self._nsmap: Dict[Optional[str], str] = {}

    def parse(self, text: Union[str, bytes]) -> Document:
        """
        Parse SCXML markup

        Args:
            text: Markup as str or UTF-8 bytes

        Returns:
            Document

        Raises:
            TokenizerError: if the markup is not well-formed
            FormatError: if the root element is not <scxml>
        """
        root = self.tokenizer.parse_from_string(text)
        return self.parse_element(root)

    def parse_file(self, scxml_path) -> Document:
        """Parse an SCXML file (read as bytes so its encoding declaration applies)"""
        path = Path(scxml_path)
        logging.info(f"Parsing SCXML document: {path}")
        return self.parse(path.read_bytes())

    def parse_element(self, root) -> Document:
        """W3C SCXML 3.2: <scxml> root element"""
        name = _localname(root)
        if name != ROOT_TAG:
            raise FormatError(name)
        if not _is_scxml(root):
            raise FormatError(root.tag)

        self._nsmap = dict(root.nsmap)
        xmlns = {prefix: uri for prefix, uri in root.nsmap.items() if prefix is not None}

        script = None
        datamodel = None
        children = []
        for child in _elements(root):
            tag = _localname(child) if _is_scxml(child) else None
            if tag in ('state', 'parallel', 'final'):
                children.append(self._parse_child(child))
            elif tag == 'datamodel':
                datamodel = self._merge_datamodel(datamodel, self._parse_datamodel(child))
            elif tag == 'script':
                if script is not None:
                    logging.warning("W3C SCXML 5.8: Multiple top-level <script> elements, keeping the first")
                    continue
                script = self._parse_script(child)
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <{ROOT_TAG}>")

        document = Document(
            version=_attr(root, 'version') or Document.version,
            name=_attr(root, 'name'),
            # Older documents spell these "profile" and "bindings"
            profile=_attr(root, 'datamodel') or _attr(root, 'profile'),
            binding=_attr(root, 'binding') or _attr(root, 'bindings'),
            initial=_attr(root, 'initial'),
            xmlns=xmlns,
            children=children,
            script=script,
            datamodel=datamodel,
        )
        logging.debug(f"Parsed <{ROOT_TAG}> with {len(children)} top-level state(s)")
        return document

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _parse_child(self, elem):
        tag = _localname(elem)
        if tag == 'state':
            return self._parse_state(elem)
        if tag == 'parallel':
            return self._parse_parallel(elem)
        return self._parse_final(elem)

    def _parse_compound(self, elem, allow_initial: bool) -> dict:
        """Children shared by <state> and <parallel>"""
        parts = {
            'onentry': None, 'onexit': None, 'datamodel': None,
            'invokes': [], 'histories': [], 'transitions': [], 'children': [],
        }
        if allow_initial:
            parts['initial_transition'] = None

        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag in ('state', 'parallel', 'final'):
                parts['children'].append(self._parse_child(child))
            elif tag == 'transition':
                parts['transitions'].append(self._parse_transition(child))
            elif tag == 'history':
                parts['histories'].append(self._parse_history(child))
            elif tag == 'invoke':
                parts['invokes'].append(self._parse_invoke(child))
            elif tag == 'onentry':
                parts['onentry'] = self._merge_block(parts['onentry'], self._parse_block(child, OnEntry))
            elif tag == 'onexit':
                parts['onexit'] = self._merge_block(parts['onexit'], self._parse_block(child, OnExit))
            elif tag == 'datamodel':
                parts['datamodel'] = self._merge_datamodel(parts['datamodel'], self._parse_datamodel(child))
            elif tag == 'initial' and allow_initial:
                parts['initial_transition'] = self._parse_initial(child)
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <{_localname(elem)}>")
        return parts

    def _parse_state(self, elem) -> State:
        """W3C SCXML 3.3: State element"""
        return State(
            id=_attr(elem, 'id'),
            initial=_attr(elem, 'initial'),
            **self._parse_compound(elem, allow_initial=True),
        )

    def _parse_parallel(self, elem) -> Parallel:
        """W3C SCXML 3.4: Parallel element"""
        return Parallel(id=_attr(elem, 'id'), **self._parse_compound(elem, allow_initial=False))

    def _parse_initial(self, elem) -> Optional[Transition]:
        """W3C SCXML 3.6: <initial> holds exactly one transition"""
        for child in _elements(elem):
            if _is_scxml(child) and _localname(child) == 'transition':
                return self._parse_transition(child)
        logging.warning("W3C SCXML 3.6: <initial> without a <transition>")
        return None

    def _parse_final(self, elem) -> Final:
        """W3C SCXML 3.7: Final state"""
        onentry = onexit = donedata = None
        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag == 'onentry':
                onentry = self._merge_block(onentry, self._parse_block(child, OnEntry))
            elif tag == 'onexit':
                onexit = self._merge_block(onexit, self._parse_block(child, OnExit))
            elif tag == 'donedata':
                donedata = self._parse_donedata(child)
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <final>")
        return Final(id=_attr(elem, 'id'), onentry=onentry, onexit=onexit, donedata=donedata)

    def _parse_history(self, elem) -> History:
        """W3C SCXML 3.10: History pseudo-state"""
        transitions = []
        onentry = onexit = None
        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag == 'transition':
                transitions.append(self._parse_transition(child))
            elif tag == 'onentry':
                onentry = self._merge_block(onentry, self._parse_block(child, OnEntry))
            elif tag == 'onexit':
                onexit = self._merge_block(onexit, self._parse_block(child, OnExit))
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <history>")
        return History(
            id=_attr(elem, 'id'),
            type=_attr(elem, 'type') or 'shallow',
            transitions=transitions,
            onentry=onentry,
            onexit=onexit,
        )

    def _parse_transition(self, elem) -> Transition:
        """W3C SCXML 3.5: Transition element"""
        return Transition(
            event=_attr(elem, 'event'),
            target=_attr(elem, 'target'),
            cond=_attr(elem, 'cond'),
            type=_attr(elem, 'type') or 'external',
            execution=self._parse_executables(elem),
        )

    def _parse_invoke(self, elem) -> Invoke:
        """W3C SCXML 6.4: <invoke>"""
        params = []
        finalize = content = None
        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag == 'param':
                params.append(self._parse_param(child))
            elif tag == 'finalize':
                finalize = self._merge_block(finalize, self._parse_block(child, Finalize))
            elif tag == 'content':
                content = self._parse_content(child)
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <invoke>")
        return Invoke(
            id=_attr(elem, 'id'),
            type=_attr(elem, 'type'),
            typeexpr=_attr(elem, 'typeexpr'),
            src=_attr(elem, 'src'),
            srcexpr=_attr(elem, 'srcexpr'),
            idlocation=_attr(elem, 'idlocation'),
            namelist=_attr(elem, 'namelist'),
            autoforward=elem.get('autoforward') == 'true',
            params=params,
            finalize=finalize,
            content=content,
        )

    # ------------------------------------------------------------------
    # Blocks and data
    # ------------------------------------------------------------------

    def _parse_block(self, elem, block_type):
        """<onentry>, <onexit>, <finalize>"""
        return block_type(execution=self._parse_executables(elem))

    def _merge_block(self, existing, block):
        if existing is None:
            return block
        # W3C SCXML 3.8: repeated handlers run in document order
        logging.warning(f"Merging repeated <{block.tag}> blocks")
        return type(block)(execution=existing.execution + block.execution, id=existing.id)

    def _parse_datamodel(self, elem) -> Datamodel:
        """W3C SCXML 5.2: <datamodel>"""
        data = []
        for child in _elements(elem):
            if _is_scxml(child) and _localname(child) == 'data':
                data.append(Data(
                    id=_attr(child, 'id'),
                    src=_attr(child, 'src'),
                    expr=_attr(child, 'expr'),
                    location=_attr(child, 'location'),
                    body=self._parse_body(child),
                ))
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <datamodel>")
        return Datamodel(data=data)

    def _merge_datamodel(self, existing, datamodel):
        if existing is None:
            return datamodel
        logging.warning("Merging repeated <datamodel> blocks")
        return Datamodel(data=existing.data + datamodel.data, id=existing.id)

    def _parse_donedata(self, elem) -> DoneData:
        """W3C SCXML 5.5: <donedata>"""
        params, content = self._parse_params_and_content(elem, 'donedata')
        return DoneData(params=params, content=content)

    def _parse_params_and_content(self, elem, owner: str):
        params = []
        content = None
        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag == 'param':
                params.append(self._parse_param(child))
            elif tag == 'content':
                content = self._parse_content(child)
            else:
                logging.warning(f"Ignoring <{child.tag}> inside <{owner}>")
        return params, content

    def _parse_param(self, elem) -> Param:
        return Param(
            name=_attr(elem, 'name'),
            expr=_attr(elem, 'expr'),
            location=_attr(elem, 'location'),
        )

    def _parse_content(self, elem) -> Content:
        """W3C SCXML 5.6: <content> (inline children are kept as parsed elements)"""
        return Content(expr=_attr(elem, 'expr'), body=self._parse_body(elem))

    def _parse_body(self, elem):
        """Text when the element has no element children, parsed children otherwise"""
        children = list(_elements(elem))
        if children:
            self._warn_stray_text(elem)
            return tuple(self._parse_executable(child) for child in children)
        return elem.text

    def _warn_stray_text(self, elem):
        text = _stray_text(elem)
        if text:
            logging.warning(f"Dropping text mixed with elements inside <{_localname(elem)}>: {text!r}")

    # ------------------------------------------------------------------
    # Executable content
    # ------------------------------------------------------------------

    def _parse_executables(self, parent) -> List:
        self._warn_stray_text(parent)
        return [self._parse_executable(child) for child in _elements(parent)]

    def _parse_executable(self, elem):
        method = None
        if _is_scxml(elem):
            method = self.EXECUTABLE_PARSERS.get(_localname(elem))
        if method is None:
            return self._parse_custom(elem)
        return getattr(self, method)(elem)

    def _parse_raise(self, elem) -> Raise:
        """W3C SCXML 4.2: <raise>"""
        return Raise(event=_attr(elem, 'event'))

    def _parse_send(self, elem) -> Send:
        """W3C SCXML 6.2: <send>"""
        params, content = self._parse_params_and_content(elem, 'send')
        return Send(
            event=_attr(elem, 'event'),
            eventexpr=_attr(elem, 'eventexpr'),
            target=_attr(elem, 'target'),
            targetexpr=_attr(elem, 'targetexpr'),
            type=_attr(elem, 'type'),
            typeexpr=_attr(elem, 'typeexpr'),
            id=_attr(elem, 'id'),
            idlocation=_attr(elem, 'idlocation'),
            delay=_attr(elem, 'delay'),
            delayexpr=_attr(elem, 'delayexpr'),
            namelist=_attr(elem, 'namelist'),
            params=params,
            content=content,
        )

    def _parse_log(self, elem) -> Log:
        return Log(label=_attr(elem, 'label'), expr=_attr(elem, 'expr'))

    def _parse_cancel(self, elem) -> Cancel:
        return Cancel(sendid=_attr(elem, 'sendid'), sendidexpr=_attr(elem, 'sendidexpr'))

    def _parse_assign(self, elem) -> Assign:
        return Assign(
            location=_attr(elem, 'location'),
            expr=_attr(elem, 'expr'),
            src=_attr(elem, 'src'),
        )

    def _parse_if(self, elem) -> If:
        """
        W3C SCXML 4.3: <if>

        The standard form separates branches with empty <elseif>/<else>
        markers. Branch content nested inside the marker is accepted too.
        """
        then: List = []
        branches = []
        else_body = None
        current = then
        self._warn_stray_text(elem)
        for child in _elements(elem):
            tag = _localname(child) if _is_scxml(child) else None
            if tag == 'elseif':
                current = self._parse_executables(child)
                branches.append((_attr(child, 'cond'), current))
            elif tag == 'else':
                current = self._parse_executables(child)
                else_body = current
            else:
                current.append(self._parse_executable(child))

        return If(
            cond=_attr(elem, 'cond'),
            then=then,
            elseifs=[ElseIf(cond=cond, then=body) for cond, body in branches],
            else_=Else(then=else_body) if else_body is not None else None,
        )

    def _parse_foreach(self, elem) -> Foreach:
        """W3C SCXML 4.6: <foreach>"""
        return Foreach(
            array=_attr(elem, 'array'),
            item=_attr(elem, 'item'),
            index=_attr(elem, 'index'),
            body=self._parse_executables(elem),
        )

    def _parse_script(self, elem) -> Script:
        """W3C SCXML 5.8: <script>"""
        return Script(content=elem.text or '', src=_attr(elem, 'src'))

    def _parse_custom(self, elem) -> Custom:
        """
        Unrecognized element, kept verbatim

        The name keeps its prefix. Namespace bindings that differ from the
        enclosing Custom element (or the root) are kept as xmlns attributes,
        sorted and ahead of the element's own attributes. A default
        namespace undeclared here reads as xmlns="". Declarations on SCXML
        elements between the root and here are not written back, so they
        are not in scope.
        """
        qname = etree.QName(elem)
        name = f'{elem.prefix}:{qname.localname}' if elem.prefix else qname.localname

        inherited = self._nsmap
        nsmap = dict(elem.nsmap)
        if not elem.prefix:
            # an unprefixed name is in the default namespace, if any
            if qname.namespace:
                nsmap[None] = qname.namespace
            else:
                nsmap.pop(None, None)

        attributes = {}
        if inherited.get(None) and None not in nsmap:
            attributes['xmlns'] = ''
        for prefix, uri in sorted(nsmap.items(), key=lambda item: item[0] or ''):
            if inherited.get(prefix) != uri:
                attributes[f'xmlns:{prefix}' if prefix else 'xmlns'] = uri
        for key, value in elem.attrib.items():
            attributes[self._attribute_name(elem, key)] = value

        self._nsmap = nsmap
        try:
            body = self._parse_body(elem)
        finally:
            self._nsmap = inherited
        return Custom(name=name, attributes=attributes, body=body)

    def _attribute_name(self, elem, key: str) -> str:
        """Turn lxml's {uri}local attribute key back into prefix:local"""
        qname = etree.QName(key)
        if qname.namespace is None:
            return qname.localname
        if qname.namespace == XML_NS:
            return f'xml:{qname.localname}'
        for prefix, uri in elem.nsmap.items():
            if prefix is not None and uri == qname.namespace:
                return f'{prefix}:{qname.localname}'
        return qname.localname


def parse(text: Union[str, bytes], tokenizer: Optional[MarkupTokenizer] = None) -> Document:
    """Parse SCXML markup into a Document (see SCXMLParser.parse)"""
    return SCXMLParser(tokenizer).parse(text)


def parse_file(scxml_path, tokenizer: Optional[MarkupTokenizer] = None) -> Document:
    """Parse an SCXML file into a Document"""
    return SCXMLParser(tokenizer).parse_file(scxml_path)
