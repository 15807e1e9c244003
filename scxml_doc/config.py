"""
scxml-doc Configuration - Single Source of Truth

Format constants and serializer defaults used throughout the package.
Change indentation style, the XML declaration or the tokenizer here
instead of at each call site.

Usage:
    from scxml_doc.config import FORMAT_CONFIG
    print(FORMAT_CONFIG['namespace'])
"""

FORMAT_CONFIG = {
    # W3C SCXML 3.2: Root element and its fixed namespace
    'root_tag': 'scxml',
    'namespace': 'http://www.w3.org/2005/07/scxml',

    # Namespaces XML 3: bound to the "xml" prefix without a declaration
    'xml_namespace': 'http://www.w3.org/XML/1998/namespace',

    # Key under which the canonical namespace lives in Document.xmlns
    'prefix': 'scxml',

    # W3C SCXML 3.2: version attribute, "1.0" is the only legal value
    'default_version': '1.0',

    'declaration': '<?xml version="1.0" encoding="UTF-8"?>',
}

SERIALIZER_DEFAULTS = {
    'indent': '  ',
    'newline': '\n',
    'pretty': True,
}

# Name registered in scxml_doc.tokenizer.TOKENIZERS
TOKENIZER_DEFAULT = 'lxml'

SCXML_NS = FORMAT_CONFIG['namespace']
XML_NS = FORMAT_CONFIG['xml_namespace']
ROOT_TAG = FORMAT_CONFIG['root_tag']
FORMAT_PREFIX = FORMAT_CONFIG['prefix']
