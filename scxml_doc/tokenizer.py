"""
Markup tokenizer used by the SCXML parser.

The parser needs exactly one capability, ``parse_from_string(text)``,
returning the root element of a generic element tree. The lxml-backed
implementation is the default; other implementations can be registered in
TOKENIZERS and selected by name.
"""

import logging
import re
from typing import Dict, Optional, Type, Union

from lxml import etree

from .config import TOKENIZER_DEFAULT
from .errors import TokenizerError

# libxml2 messages end with the position, which TokenizerError reports itself
POSITION_SUFFIX = re.compile(r',? line \d+, column \d+$')


class MarkupTokenizer:
    """
    lxml-based tokenizer

    Network access and entity expansion are disabled: SCXML documents are
    often loaded from untrusted sources and never need either.
    """

    name = 'lxml'

    def __init__(self):
        self._parser = etree.XMLParser(
            resolve_entities=False,
            no_network=True,
            remove_blank_text=False,
        )

    def parse_from_string(self, text: Union[str, bytes]):
        """
        Parse markup text and return the root element

        Args:
            text: Markup as str or UTF-8 bytes

        Returns:
            lxml root element

        Raises:
            TokenizerError: if the markup is not well-formed XML
        """
        # lxml rejects str input that carries an encoding declaration
        data = text.encode('utf-8') if isinstance(text, str) else text
        try:
            return etree.fromstring(data, self._parser)
        except etree.XMLSyntaxError as e:
            line, column = e.position if e.position else (None, None)
            logging.debug(f"Tokenizer rejected markup: {e}")
            message = POSITION_SUFFIX.sub('', e.msg or str(e))
            raise TokenizerError(f"Malformed SCXML markup: {message}", line, column) from e


TOKENIZERS: Dict[str, Type[MarkupTokenizer]] = {
    MarkupTokenizer.name: MarkupTokenizer,
}


def get_tokenizer(name: Optional[str] = None) -> MarkupTokenizer:
    """Return a tokenizer instance by registry name (default from config)"""
    name = name or TOKENIZER_DEFAULT
    try:
        return TOKENIZERS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown tokenizer '{name}'. Available: {', '.join(sorted(TOKENIZERS))}"
        )
