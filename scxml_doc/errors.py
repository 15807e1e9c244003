"""
Exception types raised by scxml-doc.

Everything derives from SCXMLError, itself a ValueError: a document that
cannot be read or that references missing states is a bad value, not a
program bug.
"""

from typing import List, Optional


class SCXMLError(ValueError):
    """Base class for all scxml-doc errors."""


class FormatError(SCXMLError):
    """Input markup is well-formed but its root is not <scxml>."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(
            f"W3C SCXML 3.2: Expected <scxml> root element, found <{tag}>"
        )


class TokenizerError(SCXMLError):
    """
    Markup could not be tokenized (malformed XML).

    Raised from the underlying parser error, which stays reachable as
    __cause__.
    """

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)


class SerializationError(SCXMLError):
    """
    The model holds a value that cannot be written as SCXML that reads
    back the same way (invalid XML characters, a Custom element shadowing
    an SCXML element, an unbound namespace prefix).
    """


class NodeNotFoundError(SCXMLError, LookupError):
    """A builder operation named an id that is not present."""

    def __init__(self, kind: str, node_id: str):
        self.kind = kind
        self.node_id = node_id
        super().__init__(f"{kind} with id {node_id} not found.")


class ReferenceResolutionError(SCXMLError):
    """One or more initial/target references do not resolve."""

    def __init__(self, issues: List):
        self.issues = list(issues)
        lines = [str(issue) for issue in self.issues]
        super().__init__(
            f"{len(self.issues)} unresolved reference(s):\n  " + "\n  ".join(lines)
        )


class SchemaError(SCXMLError):
    """Schema file could not be loaded for validation."""
