"""
SCXML Document Model

In-memory representation of a W3C SCXML document. Every element is a
frozen dataclass carrying a class-level ``tag`` (its element name), which
is the discriminant used by the writer, the parser and the traversal
helpers.

Ordered sequences are stored as tuples. Constructors accept any iterable
and normalize it; ``event`` and ``target`` also accept a space-separated
string. References (``initial``, ``target``) are plain id strings, resolved
through scxml_doc.references, never object links.

Builder methods (``with_*`` / ``without_*``) return a new instance and
leave the receiver untouched.
"""

from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, Optional, Tuple, Union

from .config import FORMAT_CONFIG, FORMAT_PREFIX, SCXML_NS
from .errors import NodeNotFoundError


def _seq(value) -> tuple:
    if value is None:
        return ()
    return tuple(value)


def _tokens(value) -> tuple:
    """W3C SCXML 3.5: event and target are space-separated token lists"""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    return tuple(value)


def _body(value):
    # Text bodies stay strings, element bodies become tuples
    if value is None or isinstance(value, str):
        return value
    return tuple(value)


def _without(items: tuple, node_id: str, kind: str) -> tuple:
    for index, item in enumerate(items):
        if item.id == node_id:
            return items[:index] + items[index + 1:]
    raise NodeNotFoundError(kind, node_id)


class Node:
    """Common base for every model element."""

    tag: ClassVar[str] = ''

    def _freeze(self, *names):
        for name in names:
            object.__setattr__(self, name, _seq(getattr(self, name)))


# ---------------------------------------------------------------------------
# Executable content (W3C SCXML 4)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Raise(Node):
    """W3C SCXML 4.2: <raise>"""
    tag: ClassVar[str] = 'raise'

    event: Optional[str] = None


@dataclass(frozen=True)
class Param(Node):
    """W3C SCXML 5.7: <param> of send, invoke and donedata"""
    tag: ClassVar[str] = 'param'

    name: Optional[str] = None
    expr: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class Content(Node):
    """
    W3C SCXML 5.6: <content>

    Either ``expr`` or an inline ``body``: text, or a tuple of nested
    elements (an inline <scxml> child document ends up here as Custom).
    """
    tag: ClassVar[str] = 'content'

    expr: Optional[str] = None
    body: Union[str, tuple, None] = None

    def __post_init__(self):
        object.__setattr__(self, 'body', _body(self.body))


@dataclass(frozen=True)
class Send(Node):
    """W3C SCXML 6.2: <send>"""
    tag: ClassVar[str] = 'send'

    event: Optional[str] = None
    eventexpr: Optional[str] = None
    target: Optional[str] = None
    targetexpr: Optional[str] = None
    type: Optional[str] = None
    typeexpr: Optional[str] = None
    id: Optional[str] = None
    idlocation: Optional[str] = None
    delay: Optional[str] = None
    delayexpr: Optional[str] = None
    namelist: Optional[str] = None
    params: Tuple[Param, ...] = ()
    content: Optional[Content] = None

    def __post_init__(self):
        self._freeze('params')


@dataclass(frozen=True)
class Log(Node):
    """W3C SCXML 4.7: <log>"""
    tag: ClassVar[str] = 'log'

    label: Optional[str] = None
    expr: Optional[str] = None


@dataclass(frozen=True)
class Cancel(Node):
    """W3C SCXML 6.3: <cancel>"""
    tag: ClassVar[str] = 'cancel'

    sendid: Optional[str] = None
    sendidexpr: Optional[str] = None


@dataclass(frozen=True)
class Assign(Node):
    """W3C SCXML 5.4: <assign>"""
    tag: ClassVar[str] = 'assign'

    location: Optional[str] = None
    expr: Optional[str] = None
    src: Optional[str] = None


@dataclass(frozen=True)
class ElseIf(Node):
    """W3C SCXML 4.4: <elseif> branch of an <if>"""
    tag: ClassVar[str] = 'elseif'

    cond: Optional[str] = None
    then: tuple = ()

    def __post_init__(self):
        self._freeze('then')


@dataclass(frozen=True)
class Else(Node):
    """W3C SCXML 4.5: <else> branch of an <if>"""
    tag: ClassVar[str] = 'else'

    then: tuple = ()

    def __post_init__(self):
        self._freeze('then')


@dataclass(frozen=True)
class If(Node):
    """
    W3C SCXML 4.3: <if>

    The markup keeps all branches as siblings separated by empty
    <elseif>/<else> markers; the model nests each branch body.
    """
    tag: ClassVar[str] = 'if'

    cond: Optional[str] = None
    then: tuple = ()
    elseifs: Tuple[ElseIf, ...] = ()
    else_: Optional[Else] = None

    def __post_init__(self):
        self._freeze('then', 'elseifs')


@dataclass(frozen=True)
class Foreach(Node):
    """W3C SCXML 4.6: <foreach>"""
    tag: ClassVar[str] = 'foreach'

    array: Optional[str] = None
    item: Optional[str] = None
    index: Optional[str] = None
    body: tuple = ()

    def __post_init__(self):
        self._freeze('body')


@dataclass(frozen=True)
class Script(Node):
    """W3C SCXML 5.8: <script>"""
    tag: ClassVar[str] = 'script'

    content: str = ''
    src: Optional[str] = None


@dataclass(frozen=True)
class Custom(Node):
    """
    W3C SCXML 4.1: executable content from another namespace.

    Any element the parser does not recognize in an executable-content
    position. ``name`` keeps its prefix, ``attributes`` keep document order.
    """
    tag: ClassVar[str] = 'custom'

    name: str = ''
    attributes: Dict[str, str] = field(default_factory=dict)
    body: Union[str, tuple, None] = None

    def __post_init__(self):
        object.__setattr__(self, 'attributes', dict(self.attributes))
        object.__setattr__(self, 'body', _body(self.body))

    def __hash__(self):
        # attribute order does not take part in equality
        return hash((self.name, frozenset(self.attributes.items()), self.body))


ExecutableContent = Union[Raise, Send, Log, Cancel, Assign, If, Foreach, Script, Custom]

EXECUTABLE_CONTENT_TYPES = (Raise, Send, Log, Cancel, Assign, If, Foreach, Script, Custom)


# ---------------------------------------------------------------------------
# Executable content containers and data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OnEntry(Node):
    """W3C SCXML 3.8: <onentry>"""
    tag: ClassVar[str] = 'onentry'

    execution: tuple = ()
    id: Optional[str] = None  # model-internal, not serialized

    def __post_init__(self):
        self._freeze('execution')


@dataclass(frozen=True)
class OnExit(Node):
    """W3C SCXML 3.9: <onexit>"""
    tag: ClassVar[str] = 'onexit'

    execution: tuple = ()
    id: Optional[str] = None  # model-internal, not serialized

    def __post_init__(self):
        self._freeze('execution')


@dataclass(frozen=True)
class Finalize(Node):
    """W3C SCXML 6.5: <finalize>"""
    tag: ClassVar[str] = 'finalize'

    execution: tuple = ()
    id: Optional[str] = None  # model-internal, not serialized

    def __post_init__(self):
        self._freeze('execution')


@dataclass(frozen=True)
class Data(Node):
    """W3C SCXML 5.3: <data>"""
    tag: ClassVar[str] = 'data'

    id: Optional[str] = None
    src: Optional[str] = None
    expr: Optional[str] = None
    location: Optional[str] = None
    body: Union[str, tuple, None] = None

    def __post_init__(self):
        object.__setattr__(self, 'body', _body(self.body))


@dataclass(frozen=True)
class Datamodel(Node):
    """W3C SCXML 5.2: <datamodel>"""
    tag: ClassVar[str] = 'datamodel'

    data: Tuple[Data, ...] = ()
    id: Optional[str] = None  # model-internal, not serialized

    def __post_init__(self):
        self._freeze('data')


@dataclass(frozen=True)
class DoneData(Node):
    """W3C SCXML 5.5: <donedata> of a final state"""
    tag: ClassVar[str] = 'donedata'

    params: Tuple[Param, ...] = ()
    content: Optional[Content] = None

    def __post_init__(self):
        self._freeze('params')


# ---------------------------------------------------------------------------
# State-chart structure (W3C SCXML 3)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transition(Node):
    """W3C SCXML 3.5: Transition element"""
    tag: ClassVar[str] = 'transition'

    event: Tuple[str, ...] = ()
    target: Tuple[str, ...] = ()
    cond: Optional[str] = None  # guard condition, opaque
    type: str = 'external'  # external or internal
    execution: tuple = ()
    id: Optional[str] = None  # model-internal, not serialized

    def __post_init__(self):
        object.__setattr__(self, 'event', _tokens(self.event))
        object.__setattr__(self, 'target', _tokens(self.target))
        self._freeze('execution')

    def with_event(self, event: str) -> 'Transition':
        return replace(self, event=self.event + (event,))

    def without_event(self, event: str) -> 'Transition':
        if event not in self.event:
            raise NodeNotFoundError('Event', event)
        events = list(self.event)
        events.remove(event)
        return replace(self, event=events)

    def with_target(self, target) -> 'Transition':
        return replace(self, target=target)

    def with_type(self, transition_type: str) -> 'Transition':
        return replace(self, type=transition_type)


@dataclass(frozen=True)
class History(Node):
    """W3C SCXML 3.10: History pseudo-state"""
    tag: ClassVar[str] = 'history'

    id: Optional[str] = None
    type: str = 'shallow'  # shallow or deep
    transitions: Tuple[Transition, ...] = ()
    onentry: Optional[OnEntry] = None
    onexit: Optional[OnExit] = None

    def __post_init__(self):
        self._freeze('transitions')

    def with_transition(self, transition: Transition) -> 'History':
        return replace(self, transitions=self.transitions + (transition,))

    def without_transition(self, transition_id: str) -> 'History':
        return replace(self, transitions=_without(self.transitions, transition_id, 'Transition'))

    def with_type(self, history_type: str) -> 'History':
        return replace(self, type=history_type)


@dataclass(frozen=True)
class Invoke(Node):
    """W3C SCXML 6.4: <invoke>"""
    tag: ClassVar[str] = 'invoke'

    id: Optional[str] = None
    type: Optional[str] = None
    typeexpr: Optional[str] = None
    src: Optional[str] = None
    srcexpr: Optional[str] = None
    idlocation: Optional[str] = None
    namelist: Optional[str] = None
    params: Tuple[Param, ...] = ()
    autoforward: bool = False
    finalize: Optional[Finalize] = None
    content: Optional[Content] = None

    def __post_init__(self):
        self._freeze('params')


class _ChildContainer:
    """Child state handling shared by State, Parallel and Document."""

    @property
    def states(self) -> tuple:
        return tuple(child for child in self.children if child.tag == 'state')

    @property
    def parallels(self) -> tuple:
        return tuple(child for child in self.children if child.tag == 'parallel')

    @property
    def finals(self) -> tuple:
        return tuple(child for child in self.children if child.tag == 'final')

    def with_child(self, child):
        return replace(self, children=self.children + (child,))

    def without_child(self, child_id: str):
        return replace(self, children=_without(self.children, child_id, 'State'))


class _StateContainer(_ChildContainer):
    """Transition, history and invoke handling shared by State and Parallel."""

    def with_transition(self, transition: Transition):
        return replace(self, transitions=self.transitions + (transition,))

    def without_transition(self, transition_id: str):
        return replace(self, transitions=_without(self.transitions, transition_id, 'Transition'))

    def with_history(self, history: History):
        return replace(self, histories=self.histories + (history,))

    def without_history(self, history_id: str):
        return replace(self, histories=_without(self.histories, history_id, 'History'))

    def with_invoke(self, invoke: Invoke):
        return replace(self, invokes=self.invokes + (invoke,))


@dataclass(frozen=True)
class State(_StateContainer, Node):
    """
    W3C SCXML 3.3: State element

    ``kind`` is derived from ``children`` on every access: "compound" when
    the state has child states, "simple" otherwise.
    """
    tag: ClassVar[str] = 'state'

    id: Optional[str] = None
    initial: Optional[str] = None
    initial_transition: Optional[Transition] = None  # W3C SCXML 3.6: <initial>
    transitions: Tuple[Transition, ...] = ()
    children: tuple = ()
    histories: Tuple[History, ...] = ()
    invokes: Tuple[Invoke, ...] = ()
    onentry: Optional[OnEntry] = None
    onexit: Optional[OnExit] = None
    datamodel: Optional[Datamodel] = None

    def __post_init__(self):
        self._freeze('transitions', 'children', 'histories', 'invokes')

    @property
    def kind(self) -> str:
        return 'compound' if self.children else 'simple'

    def with_initial(self, initial: str) -> 'State':
        known = [node.id for node in self.children + self.histories]
        if initial not in known:
            raise NodeNotFoundError('Initial state', initial)
        return replace(self, initial=initial)


@dataclass(frozen=True)
class Parallel(_StateContainer, Node):
    """W3C SCXML 3.4: Parallel element (no initial, every child is active)"""
    tag: ClassVar[str] = 'parallel'

    id: Optional[str] = None
    transitions: Tuple[Transition, ...] = ()
    children: tuple = ()
    histories: Tuple[History, ...] = ()
    invokes: Tuple[Invoke, ...] = ()
    onentry: Optional[OnEntry] = None
    onexit: Optional[OnExit] = None
    datamodel: Optional[Datamodel] = None

    def __post_init__(self):
        self._freeze('transitions', 'children', 'histories', 'invokes')


@dataclass(frozen=True)
class Final(Node):
    """W3C SCXML 3.7: Final state"""
    tag: ClassVar[str] = 'final'

    id: Optional[str] = None
    onentry: Optional[OnEntry] = None
    onexit: Optional[OnExit] = None
    donedata: Optional[DoneData] = None


ChildState = Union[State, Parallel, Final]


def _default_namespaces() -> Dict[str, str]:
    return {FORMAT_PREFIX: SCXML_NS}


@dataclass(frozen=True)
class Document(_ChildContainer, Node):
    """
    W3C SCXML 3.2: <scxml> root

    ``xmlns`` always holds the canonical SCXML binding under the "scxml"
    key unless the caller supplies that key explicitly.
    """
    tag: ClassVar[str] = 'scxml'

    version: str = FORMAT_CONFIG['default_version']
    profile: Optional[str] = None  # serialized as the datamodel attribute
    binding: Optional[str] = None  # early or late
    xmlns: Dict[str, str] = field(default_factory=_default_namespaces)
    children: tuple = ()
    initial: Optional[str] = None
    script: Optional[Script] = None
    datamodel: Optional[Datamodel] = None
    name: Optional[str] = None

    def __post_init__(self):
        namespaces = _default_namespaces()
        namespaces.update(self.xmlns or {})
        object.__setattr__(self, 'xmlns', namespaces)
        self._freeze('children')

    def __hash__(self):
        return hash((
            self.version, self.profile, self.binding, frozenset(self.xmlns.items()),
            self.children, self.initial, self.script, self.datamodel, self.name,
        ))

    def with_initial(self, initial: str) -> 'Document':
        if initial not in [child.id for child in self.children]:
            raise NodeNotFoundError('Initial state', initial)
        return replace(self, initial=initial)

    def with_name(self, name: str) -> 'Document':
        return replace(self, name=name)

    def with_namespace(self, prefix: str, uri: str) -> 'Document':
        namespaces = dict(self.xmlns)
        namespaces[prefix] = uri
        return replace(self, xmlns=namespaces)

    def without_namespace(self, prefix: str) -> 'Document':
        if prefix not in self.xmlns:
            raise NodeNotFoundError('Namespace', prefix)
        namespaces = dict(self.xmlns)
        del namespaces[prefix]
        return replace(self, xmlns=namespaces)


STRUCTURAL_TYPES = (
    Document, State, Parallel, Final, History, Transition, Invoke,
    OnEntry, OnExit, Finalize, Datamodel, Data, DoneData,
)
