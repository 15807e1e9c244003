"""
XML Schema validation collaborator.

Thin wrapper over lxml.etree.XMLSchema. Validation is structural only:
the W3C SCXML schemas (or any project schema) decide what is legal, this
module only reports the result.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

from lxml import etree

from .errors import SchemaError
from .model import Document
from .scxml_writer import serialize
from .tokenizer import get_tokenizer


def load_schema(schema_path) -> etree.XMLSchema:
    """
    Load an XSD file

    Raises:
        SchemaError: if the file is missing, malformed, or not a valid schema
    """
    path = Path(schema_path)
    try:
        return etree.XMLSchema(etree.parse(str(path)))
    except (OSError, etree.XMLSyntaxError, etree.XMLSchemaParseError) as e:
        raise SchemaError(f"Cannot load schema {path}: {e}") from e


def validate_markup(text: Union[str, bytes], schema_path) -> Tuple[bool, List[str]]:
    """
    Validate SCXML markup against an XSD

    Args:
        text: Markup as str or UTF-8 bytes
        schema_path: Path to the .xsd file

    Returns:
        (valid, diagnostics) where each diagnostic reads "line N: message"

    Raises:
        SchemaError: if the schema cannot be loaded
        TokenizerError: if the markup is not well-formed
    """
    schema = load_schema(schema_path)
    root = get_tokenizer().parse_from_string(text)

    valid = schema.validate(root)
    diagnostics = [f"line {error.line}: {error.message}" for error in schema.error_log]
    logging.debug(f"Schema validation against {schema_path}: valid={valid}, {len(diagnostics)} diagnostic(s)")
    return valid, diagnostics


def validate_document(document: Document, schema_path) -> Tuple[bool, List[str]]:
    """Serialize document and validate the result (see validate_markup)"""
    return validate_markup(serialize(document), schema_path)
