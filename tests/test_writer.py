import pytest

from scxml_doc import (
    Assign, Content, Custom, Data, Datamodel, Document, DoneData, Else, ElseIf,
    Final, Finalize, History, If, Invoke, Log, OnEntry, OnExit, Param, Raise,
    Script, Send, SerializationError, SerializerOptions, State, Transition,
    serialize, write_file,
)
from scxml_doc.scxml_writer import escape_attribute, escape_text

from conftest import DECLARATION, NS


def lines(*parts):
    return "\n".join(parts)


def root_open(extra=""):
    return f'<scxml xmlns="{NS}" version="1.0"{extra}>'


def test_minimal_document():
    document = Document(initial="s", children=[State(id="s")])
    assert serialize(document) == lines(
        DECLARATION,
        root_open(' initial="s"'),
        '  <state id="s"/>',
        "</scxml>",
    )


def test_empty_document_self_closes():
    assert serialize(Document()) == lines(DECLARATION, f'<scxml xmlns="{NS}" version="1.0"/>')


def test_compact_output():
    document = Document(initial="s", children=[State(id="s")])
    output = serialize(document, SerializerOptions(pretty=False))
    assert output == DECLARATION + root_open(' initial="s"') + '<state id="s"/></scxml>'


def test_custom_indent_and_newline():
    document = Document(children=[State(id="s")])
    output = serialize(document, SerializerOptions(indent="\t", newline="\r\n"))
    assert output == DECLARATION + "\r\n" + root_open() + '\r\n\t<state id="s"/>\r\n</scxml>'


def test_root_attribute_order():
    document = Document(
        name="machine",
        profile="ecmascript",
        initial="a",
        binding="late",
        xmlns={"zz": "urn:z", "aa": "urn:a"},
        children=[State(id="a")],
    )
    first_line = serialize(document).splitlines()[1]
    assert first_line == (
        f'<scxml xmlns="{NS}" version="1.0" name="machine" datamodel="ecmascript"'
        ' initial="a" binding="late" xmlns:aa="urn:a" xmlns:zz="urn:z">'
    )
    assert "xmlns:scxml" not in first_line


def test_transition_attributes():
    state = State(id="a", transitions=[
        Transition(event=["e1", "e2"], cond="x > 1", target=["b", "c"]),
        Transition(target="b", type="internal"),
    ])
    output = serialize(Document(children=[state]))
    assert '<transition event="e1 e2" cond="x &gt; 1" target="b c"/>' in output
    assert '<transition target="b" type="internal"/>' in output


def test_external_transition_type_is_implicit():
    output = serialize(Document(children=[State(id="a", transitions=[Transition(target="a")])]))
    assert 'type=' not in output


def test_history_type_always_written():
    state = State(id="a", histories=[History(id="h")])
    assert '<history id="h" type="shallow"/>' in serialize(Document(children=[state]))


def test_invoke_autoforward_only_when_true():
    on = Invoke(id="i1", src="child.scxml", autoforward=True)
    off = Invoke(id="i2", src="child.scxml")
    output = serialize(Document(children=[State(id="a", invokes=[on, off])]))
    assert '<invoke id="i1" src="child.scxml" autoforward="true"/>' in output
    assert '<invoke id="i2" src="child.scxml"/>' in output


def test_empty_values_are_omitted():
    state = State(id="a", initial="", transitions=[Transition(event="", cond="", target="b")])
    output = serialize(Document(children=[state]))
    assert '<state id="a">' in output
    assert '<transition target="b"/>' in output


def test_state_child_order():
    state = State(
        id="a",
        initial="b",
        transitions=[Transition(target="b")],
        children=[State(id="b")],
        histories=[History(id="h")],
        invokes=[Invoke(id="i")],
        onentry=OnEntry(execution=[Raise(event="in")]),
        onexit=OnExit(execution=[Raise(event="out")]),
        datamodel=Datamodel(data=[Data(id="d")]),
        initial_transition=None,
    )
    output = serialize(Document(children=[state]))
    order = ["<onentry>", "<onexit>", "<datamodel>", "<invoke", "<history", "<transition", '<state id="b"']
    positions = [output.index(tag) for tag in order]
    assert positions == sorted(positions)


def test_initial_element():
    state = State(
        id="a",
        initial_transition=Transition(target="b", execution=[Log(expr="1")]),
        children=[State(id="b")],
    )
    output = serialize(Document(children=[state]))
    assert lines(
        '    <initial>',
        '      <transition target="b">',
        '        <log expr="1"/>',
        '      </transition>',
        '    </initial>',
    ) in output


def test_document_order_script_datamodel_children():
    document = Document(
        children=[State(id="a")],
        script=Script(content="x = 1;"),
        datamodel=Datamodel(data=[Data(id="x", expr="1")]),
    )
    assert serialize(document) == lines(
        DECLARATION,
        root_open(),
        "  <script>x = 1;</script>",
        "  <datamodel>",
        '    <data id="x" expr="1"/>',
        "  </datamodel>",
        '  <state id="a"/>',
        "</scxml>",
    )


def test_if_written_in_flat_form():
    conditional = If(
        cond="a",
        then=[Raise(event="x")],
        elseifs=[ElseIf(cond="b", then=[Raise(event="y")])],
        else_=Else(then=[Raise(event="z")]),
    )
    output = serialize(Document(children=[State(id="s", onentry=OnEntry(execution=[conditional]))]))
    assert lines(
        '    <onentry>',
        '      <if cond="a">',
        '        <raise event="x"/>',
        '        <elseif cond="b"/>',
        '        <raise event="y"/>',
        '        <else/>',
        '        <raise event="z"/>',
        '      </if>',
        '    </onentry>',
    ) in output


def test_send_with_params_and_content():
    send = Send(
        event="go",
        target="#_parent",
        delay="1s",
        params=[Param(name="a", expr="1")],
        content=Content(body="payload"),
    )
    output = serialize(Document(children=[State(id="s", onentry=OnEntry(execution=[send]))]))
    assert lines(
        '      <send event="go" target="#_parent" delay="1s">',
        '        <param name="a" expr="1"/>',
        '        <content>payload</content>',
        '      </send>',
    ) in output


def test_invoke_children_order():
    invoke = Invoke(
        id="i",
        params=[Param(name="p", location="loc")],
        finalize=Finalize(execution=[Assign(location="x", expr="1")]),
        content=Content(expr="doc"),
    )
    output = serialize(Document(children=[State(id="s", invokes=[invoke])]))
    assert lines(
        '    <invoke id="i">',
        '      <param name="p" location="loc"/>',
        '      <finalize>',
        '        <assign location="x" expr="1"/>',
        '      </finalize>',
        '      <content expr="doc"/>',
        '    </invoke>',
    ) in output


def test_final_donedata():
    final = Final(id="f", donedata=DoneData(params=[Param(name="r", expr="1")]))
    assert lines(
        '  <final id="f">',
        '    <donedata>',
        '      <param name="r" expr="1"/>',
        '    </donedata>',
        '  </final>',
    ) in serialize(Document(children=[final]))


def test_empty_entry_block_self_closes():
    output = serialize(Document(children=[State(id="s", onentry=OnEntry())]))
    assert "<onentry/>" in output


def test_custom_element():
    custom = Custom(name="ext:blink", attributes={"times": "2", "empty": ""}, body="on")
    output = serialize(Document(xmlns={"ext": "urn:ext"},
                                children=[State(id="s", onentry=OnEntry(execution=[custom]))]))
    assert '<ext:blink times="2" empty="">on</ext:blink>' in output


def test_custom_nested_body():
    custom = Custom(name="wrap", body=[Raise(event="x")])
    output = serialize(Document(children=[State(id="s", onentry=OnEntry(execution=[custom]))]))
    assert lines('      <wrap>', '        <raise event="x"/>', '      </wrap>') in output


def test_text_escaping():
    script = Script(content='if (a < b && c > d) { s = "x"; }')
    output = serialize(Document(script=script))
    assert '<script>if (a &lt; b &amp;&amp; c &gt; d) { s = "x"; }</script>' in output


def test_attribute_escaping():
    assert escape_attribute('say "hi"\n\tnow & <then>') == "say &quot;hi&quot;&#10;&#9;now &amp; &lt;then&gt;"
    assert escape_text("a\r\nb") == "a&#13;\nb"


@pytest.mark.parametrize("value", ["a\x01b", "nul\x00", "\ufffe", "lone \ud800"])
def test_invalid_xml_character_in_attribute_rejected(value):
    document = Document(datamodel=Datamodel(data=[Data(id="d", expr=value)]))
    with pytest.raises(SerializationError, match=r"attribute 'expr' of <data>"):
        serialize(document)


def test_invalid_xml_character_in_text_rejected():
    with pytest.raises(SerializationError, match=r"text of <script>"):
        serialize(Document(script=Script(content="x = \x1b;")))


def test_characters_outside_bmp_written():
    output = serialize(Document(datamodel=Datamodel(data=[Data(id="d", expr="'\U0001F600'")])))
    assert "expr=\"'\U0001F600'\"" in output


def test_unknown_executable_rejected():
    document = Document(children=[State(id="s", onentry=OnEntry(execution=["raise"]))])
    with pytest.raises(TypeError):
        serialize(document)


def test_unknown_child_rejected():
    with pytest.raises(TypeError):
        serialize(Document(children=[History(id="h")]))


def test_write_file(tmp_path):
    document = Document(initial="s", children=[State(id="s")])
    path = write_file(document, tmp_path / "nested" / "out.scxml")
    assert path.read_text(encoding="utf-8") == serialize(document) + "\n"
