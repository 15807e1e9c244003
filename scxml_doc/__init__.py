"""
scxml-doc: W3C SCXML document model with a lossless parser and serializer.

    from scxml_doc import Document, State, Transition, parse, serialize

    doc = Document(initial='s', children=[State(id='s')])
    assert serialize(parse(serialize(doc))) == serialize(doc)
"""

from .errors import (
    FormatError, NodeNotFoundError, ReferenceResolutionError, SchemaError,
    SCXMLError, SerializationError, TokenizerError,
)
from .model import (
    Assign, Cancel, Content, Custom, Data, Datamodel, Document, DoneData, Else,
    ElseIf, Final, Finalize, Foreach, History, If, Invoke, Log, OnEntry, OnExit,
    Parallel, Param, Raise, Script, Send, State, Transition,
)
from .references import ReferenceIssue, check_references, find_reference_issues, resolve
from .scxml_parser import SCXMLParser, parse, parse_file
from .scxml_writer import SCXMLWriter, SerializerOptions, serialize, write_file
from .traversal import NodeVisitor, iter_nodes

__version__ = '0.1.0'
