from pathlib import Path

import pytest

from scxml_doc import Document, History, State, Transition

SAMPLES_DIR = Path(__file__).parent / "samples"
SAMPLE_FILES = sorted(SAMPLES_DIR.glob("*.scxml"))

NS = "http://www.w3.org/2005/07/scxml"
DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


@pytest.fixture
def samples_dir():
    return SAMPLES_DIR


@pytest.fixture
def schema_path():
    return SAMPLES_DIR / "scxml-lite.xsd"


@pytest.fixture
def nested_document():
    """
    main (initial sub1)
      history h (deep) -> sub1
      sub1
      sub2
    """
    main = State(
        id="main",
        initial="sub1",
        children=[State(id="sub1"), State(id="sub2")],
        histories=[History(id="h", type="deep", transitions=[Transition(target="sub1")])],
    )
    return Document(initial="main", children=[main])
