"""Well-formedness check for transcript markup."""

import re
from xml.etree import ElementTree

# Fragments may hold several top-level nodes, so they are parsed inside a wrapper
_WRAPPER = "transcript-fragment"

# Only valid at the very start of a document, i.e. outside the wrapper
_XML_DECLARATION = re.compile(r"^\s*<\?xml\s[^>]*\?>")


def is_valid_xhtml(fragment: str) -> bool:
    """True when the fragment is a well formed XML token stream.

    Tags must balance and entities must be XML entities; the markup itself
    is not interpreted. A leading XML declaration is accepted.
    """
    body = _XML_DECLARATION.sub("", fragment, count=1)
    try:
        ElementTree.fromstring(f"<{_WRAPPER}>{body}</{_WRAPPER}>")
    except ElementTree.ParseError:
        return False
    return True
