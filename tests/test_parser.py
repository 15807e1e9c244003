import logging

import pytest
from lxml import etree

from scxml_doc import (
    Custom, FormatError, If, Log, Parallel, Raise, Send, State, TokenizerError,
    parse, parse_file,
)
from scxml_doc.config import SCXML_NS
from scxml_doc.tokenizer import get_tokenizer

from conftest import NS


def wrap(body, extra=""):
    return f'<scxml xmlns="{NS}" version="1.0"{extra}>{body}</scxml>'


def onentry(markup, extra=""):
    document = parse(wrap(f'<state id="s"><onentry>{markup}</onentry></state>', extra))
    return document.children[0].onentry.execution


def test_minimal_document():
    document = parse('<scxml initial="s"><state id="s"/></scxml>')
    assert document.initial == "s"
    assert len(document.children) == 1
    state = document.children[0]
    assert isinstance(state, State)
    assert state.id == "s"
    assert state.kind == "simple"
    assert document.version == "1.0"


def test_declaration_in_str_input():
    document = parse('<?xml version="1.0" encoding="UTF-8"?>\n' + wrap('<state id="a"/>'))
    assert document.children[0].id == "a"


def test_bytes_input():
    document = parse(wrap('<state id="ä"/>').encode("utf-8"))
    assert document.children[0].id == "ä"


def test_root_attributes():
    document = parse(wrap("", ' name="m" datamodel="ecmascript" binding="late" initial="a"'))
    assert document.name == "m"
    assert document.profile == "ecmascript"
    assert document.binding == "late"
    assert document.initial == "a"


def test_legacy_root_attributes():
    document = parse(wrap("", ' profile="xpath" bindings="early"'))
    assert document.profile == "xpath"
    assert document.binding == "early"


def test_empty_attributes_are_absent():
    document = parse(wrap('<state id="a" initial=""><transition event="" cond="" target="a"/></state>'))
    state = document.children[0]
    assert state.initial is None
    transition = state.transitions[0]
    assert transition.event == ()
    assert transition.cond is None


def test_event_and_target_lists():
    document = parse(wrap('<state id="a"><transition event="a  b\tc" target="x y"/></state>'))
    transition = document.children[0].transitions[0]
    assert transition.event == ("a", "b", "c")
    assert transition.target == ("x", "y")


def test_nested_structure():
    document = parse(wrap(
        '<state id="main" initial="sub1">'
        '<history id="h" type="deep"><transition target="sub1"/></history>'
        '<state id="sub1"/><state id="sub2"/>'
        '</state>'
        '<parallel id="p"><state id="r1"/><state id="r2"/></parallel>'
    ))
    main, parallel = document.children
    assert main.kind == "compound"
    assert [child.id for child in main.children] == ["sub1", "sub2"]
    assert main.histories[0].type == "deep"
    assert main.histories[0].transitions[0].target == ("sub1",)
    assert isinstance(parallel, Parallel)
    assert len(parallel.children) == 2


def test_history_type_defaults_to_shallow():
    document = parse(wrap('<state id="a"><history id="h"/></state>'))
    assert document.children[0].histories[0].type == "shallow"


def test_initial_element():
    document = parse(wrap(
        '<state id="a"><initial><transition target="b"/></initial><state id="b"/></state>'
    ))
    assert document.children[0].initial_transition.target == ("b",)


def test_comments_and_text_ignored():
    document = parse(wrap('<!-- note -->\n  <state id="a">text<!-- x --></state>\n'))
    assert [child.id for child in document.children] == ["a"]


def test_executable_content():
    execution = onentry(
        '<raise event="r"/>'
        '<log label="l" expr="1"/>'
        '<send event="e" targetexpr="t"><param name="p" expr="2"/><content expr="c"/></send>'
    )
    raise_, log, send = execution
    assert raise_ == Raise(event="r")
    assert log == Log(label="l", expr="1")
    assert isinstance(send, Send)
    assert send.targetexpr == "t"
    assert send.params[0].name == "p"
    assert send.content.expr == "c"


def test_if_flat_form():
    (conditional,) = onentry(
        '<if cond="a"><raise event="x"/><elseif cond="b"/><raise event="y"/>'
        '<else/><raise event="z"/></if>'
    )
    assert isinstance(conditional, If)
    assert conditional.then == (Raise(event="x"),)
    assert conditional.elseifs[0].cond == "b"
    assert conditional.elseifs[0].then == (Raise(event="y"),)
    assert conditional.else_.then == (Raise(event="z"),)


def test_if_nested_form_matches_flat_form():
    flat = onentry(
        '<if cond="a"><raise event="x"/><elseif cond="b"/><raise event="y"/>'
        '<else/><raise event="z"/></if>'
    )
    nested = onentry(
        '<if cond="a"><raise event="x"/><elseif cond="b"><raise event="y"/></elseif>'
        '<else><raise event="z"/></else></if>'
    )
    assert nested == flat


def test_foreach_and_script():
    foreach, script = onentry(
        '<foreach array="xs" item="x" index="i"><log expr="x"/></foreach>'
        '<script>a &lt; b</script>'
    )
    assert foreach.body == (Log(expr="x"),)
    assert script.content == "a < b"


def test_unknown_element_becomes_custom():
    (custom,) = onentry('<ext:thing a="1" b="">text</ext:thing>', ' xmlns:ext="urn:ext"')
    assert custom == Custom(name="ext:thing", attributes={"a": "1", "b": ""}, body="text")


def test_custom_keeps_local_namespace():
    (custom,) = onentry('<x:thing xmlns:x="urn:x" x:flag="on"/>')
    assert custom.name == "x:thing"
    assert custom.attributes == {"xmlns:x": "urn:x", "x:flag": "on"}
    assert custom.body is None


def test_custom_nested_elements():
    (custom,) = onentry('<wrap><raise event="x"/><other/></wrap>')
    assert custom.name == "wrap"
    assert custom.body == (Raise(event="x"), Custom(name="other"))


def test_invoke_inline_content():
    document = parse(wrap(
        '<state id="a"><invoke id="i" autoforward="true">'
        '<content><scxml version="1.0"><state id="child"/></scxml></content>'
        '</invoke></state>'
    ))
    invoke = document.children[0].invokes[0]
    assert invoke.autoforward is True
    inline = invoke.content.body[0]
    assert inline.name == "scxml"
    assert inline.attributes == {"version": "1.0"}
    assert inline.body[0].name == "state"


def test_datamodel_and_donedata():
    document = parse(wrap(
        '<datamodel><data id="a" expr="1"/><data id="b">{"k": 1}</data></datamodel>'
        '<final id="f"><donedata><param name="r" expr="a"/></donedata></final>'
    ))
    assert [data.id for data in document.datamodel.data] == ["a", "b"]
    assert document.datamodel.data[1].body == '{"k": 1}'
    assert document.children[0].donedata.params[0].name == "r"


def test_repeated_onentry_merged(caplog):
    markup = wrap(
        '<state id="a"><onentry><raise event="1"/></onentry>'
        '<onentry><raise event="2"/></onentry></state>'
    )
    with caplog.at_level(logging.WARNING):
        document = parse(markup)
    assert [action.event for action in document.children[0].onentry.execution] == ["1", "2"]
    assert "Merging repeated <onentry>" in caplog.text


def test_namespaces_preserved():
    document = parse(wrap("", ' xmlns:b="urn:b" xmlns:a="urn:a"'))
    assert document.xmlns == {"scxml": SCXML_NS, "a": "urn:a", "b": "urn:b"}


def test_wrong_root_raises_format_error():
    with pytest.raises(FormatError) as excinfo:
        parse("<statechart/>")
    assert excinfo.value.tag == "statechart"
    assert "Expected <scxml> root element" in str(excinfo.value)


def test_malformed_markup_raises_tokenizer_error():
    with pytest.raises(TokenizerError) as excinfo:
        parse("<scxml>\n<state></scxml>")
    assert excinfo.value.line is not None
    assert isinstance(excinfo.value.__cause__, etree.XMLSyntaxError)


def test_scxml_root_in_other_namespace_raises_format_error():
    with pytest.raises(FormatError) as excinfo:
        parse('<scxml xmlns="urn:other" version="1.0"><state id="a"/></scxml>')
    assert excinfo.value.tag == "{urn:other}scxml"


def test_prefixed_scxml_root_accepted():
    document = parse(f'<sc:scxml xmlns:sc="{NS}" version="1.0"><sc:state id="a"/></sc:scxml>')
    assert [child.id for child in document.children] == ["a"]


def test_malformed_markup_reports_position_once():
    with pytest.raises(TokenizerError) as excinfo:
        parse("<scxml>\n<state></scxml>")
    error = excinfo.value
    message = str(error)
    assert message.count(f"column {error.column}") == 1
    assert message.endswith(f"(line {error.line}, column {error.column})")


def test_text_mixed_with_custom_children_warns(caplog):
    with caplog.at_level(logging.WARNING):
        (custom,) = onentry("<foo>hello <b/> world</foo>")
    assert custom.body == (Custom(name="b"),)
    assert "Dropping text mixed with elements inside <foo>: 'hello world'" in caplog.text


def test_text_inside_executable_block_warns(caplog):
    with caplog.at_level(logging.WARNING):
        (action,) = onentry('stray<raise event="x"/>')
    assert action == Raise(event="x")
    assert "inside <onentry>: 'stray'" in caplog.text


def test_whitespace_between_children_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING):
        onentry('\n  <foo>\n    <b/>\n  </foo>\n')
    assert "Dropping text" not in caplog.text


def test_custom_default_namespace_undeclared():
    (custom,) = onentry('<plain xmlns=""><child/></plain>')
    assert custom.attributes == {"xmlns": ""}
    assert custom.body == (Custom(name="child"),)


def test_unknown_tokenizer():
    with pytest.raises(ValueError, match="Unknown tokenizer"):
        get_tokenizer("sax")


def test_parse_file(samples_dir):
    document = parse_file(samples_dir / "sample-valid.scxml")
    assert document.initial == "start"
    assert [child.id for child in document.children] == ["start", "running", "end"]
    start, running, _ = document.children
    assert start.transitions[0].event == ("move",)
    assert start.transitions[0].target == ("running",)
    assert running.transitions[0].target == ("end",)
