"""Sanitization of user-edited rich content.

Article bodies come from a content-editable surface and from imported
snapshots, so they can contain anything. Before a fragment is stored or
rendered it is parsed into a BeautifulSoup tree, stripped of the markup that
can execute code, and serialized again.
"""

import logging

from bs4 import BeautifulSoup, ParserRejectedMarkup
from bs4.dammit import EntitySubstitution
from bs4.element import Declaration, Doctype, ProcessingInstruction
from bs4.formatter import HTMLFormatter

logger = logging.getLogger(__name__)

PARSER = "html.parser"

REMOVED_ELEMENTS = ["script"]

EVENT_HANDLER_PREFIX = "on"

URI_ATTRIBUTES = frozenset(
    {"href", "src", "action", "formaction", "xlink:href", "poster", "background"}
)

SCRIPT_SCHEMES = ("javascript:", "vbscript:")

# Browsers ignore these inside URLs, so "java\tscript:" still executes.
_URL_IGNORED_CHARS = str.maketrans("", "", "\t\n\r")

# URL parsing trims C0 controls and space from both ends.
_URL_TRIMMED_CHARS = "".join(chr(code) for code in range(0x21))

# Markup-level nodes that are not part of a content fragment.
NON_FRAGMENT_NODES = (Doctype, Declaration, ProcessingInstruction)


class SourceOrderFormatter(HTMLFormatter):
    """Minimal entity substitution, attributes kept in source order."""

    def attributes(self, tag):
        if tag.attrs is None:
            return []
        return list(tag.attrs.items())


FORMATTER = SourceOrderFormatter(entity_substitution=EntitySubstitution.substitute_xml)


def is_script_uri(value: str) -> bool:
    """Check whether a URI value would execute script when followed."""
    cleaned = value.translate(_URL_IGNORED_CHARS).strip(_URL_TRIMMED_CHARS).lower()
    return cleaned.startswith(SCRIPT_SCHEMES)


def parse_fragment(fragment: str) -> BeautifulSoup:
    """Parse a rich-content fragment into a tree of typed nodes."""
    return BeautifulSoup(fragment, PARSER)


def serialize(soup: BeautifulSoup) -> str:
    """Serialize a tree back to markup without reordering attributes."""
    return soup.decode(formatter=FORMATTER)


def clean_tree(soup: BeautifulSoup) -> BeautifulSoup:
    """Apply the removal rules to a parsed tree in place and return it."""
    for node in [n for n in soup.descendants if isinstance(n, NON_FRAGMENT_NODES)]:
        node.extract()

    for element in soup.find_all(REMOVED_ELEMENTS):
        element.decompose()

    for element in soup.find_all(True):
        for name in list(element.attrs):
            value = element.attrs[name]
            if isinstance(value, list):
                value = " ".join(value)
            lowered = name.lower()
            if lowered.startswith(EVENT_HANDLER_PREFIX):
                del element.attrs[name]
            elif lowered in URI_ATTRIBUTES and is_script_uri(value or ""):
                del element.attrs[name]
    return soup


def sanitize(fragment: str) -> str:
    """Return a copy of ``fragment`` with executable markup removed.

    Removes ``<script>`` elements with their content, every ``on*`` event
    handler attribute, and URI attributes pointing at a script scheme. All
    other markup is kept. The function never raises: input that is not a
    string, or that the parser rejects, yields an empty fragment.

    Args:
        fragment: Rich-content markup as produced by the editor.

    Returns:
        Sanitized markup. ``sanitize(sanitize(x)) == sanitize(x)``.
    """
    if not isinstance(fragment, str) or not fragment:
        return ""
    try:
        soup = parse_fragment(fragment)
    except ParserRejectedMarkup:
        logger.warning("Discarding fragment the HTML parser rejected")
        return ""
    return serialize(clean_tree(soup))
