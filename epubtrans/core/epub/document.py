"""
Content document model

Loads one XHTML file into an lxml tree, exposes the attribute queries the
marker and the merger rely on, and serializes the tree back to text.

XHTML is parsed with the XML parser so namespaces and self-closing tags
survive a round trip. Files that are not well-formed XML (stray ``&nbsp;``
without a DTD, unclosed tags) fall back to the lenient HTML parser.
"""
import copy
import logging
import re
from html.entities import name2codepoint
from pathlib import Path
from typing import List, Optional

import aiofiles
from lxml import etree, html as lxml_html

from epubtrans.config import CONTENT_ID_KEY, TRANSLATION_BY_ID_KEY, TRANSLATION_ID_KEY
from epubtrans.core.adapters.exceptions import DocumentParseError, FileReadError, FileWriteError

logger = logging.getLogger(__name__)

UNTRANSLATED_XPATH = (f"//*[@{CONTENT_ID_KEY} and not(@{TRANSLATION_BY_ID_KEY})"
                      f" and not(@{TRANSLATION_ID_KEY})]")
MARKED_XPATH = f"//*[@{CONTENT_ID_KEY}]"

_XML_DECLARATION = re.compile(r'^\s*<\?xml[^>]*\?>', re.IGNORECASE)

# An ampersand, optionally followed by a complete character or entity reference
_AMPERSAND = re.compile(r'&(#[0-9]+;|#[xX][0-9a-fA-F]+;|[A-Za-z][A-Za-z0-9]*;)?')
_XML_PREDEFINED_ENTITIES = {'amp', 'lt', 'gt', 'quot', 'apos'}

# Prefixes a model may echo back inside a fragment
FRAGMENT_NAMESPACES = {
    'epub': 'http://www.idpf.org/2007/ops',
    'xlink': 'http://www.w3.org/1999/xlink',
    'svg': 'http://www.w3.org/2000/svg',
    'm': 'http://www.w3.org/1998/Math/MathML',
}


def is_element(node) -> bool:
    """True for elements, False for comments, processing instructions and entities."""
    return isinstance(node.tag, str)


def local_name(element: etree._Element) -> str:
    """Tag name without namespace, lower-cased ("" for non-elements)."""
    if not is_element(element):
        return ""
    return etree.QName(element).localname.lower()


def iter_child_elements(element: etree._Element):
    for child in element:
        if is_element(child):
            yield child


def inner_html(element: etree._Element) -> str:
    """
    Serialize the content of ``element`` without its own start and end tags.

    Example:
        >>> inner_html(etree.fromstring('<p>Hello <b>world</b></p>'))
        'Hello <b>world</b>'
    """
    if not element.text and len(element) == 0:
        return ""

    content = etree.tostring(element, encoding='unicode', method='xml', with_tail=False)
    match = re.match(r'^<[^>]+>', content)
    if not match:
        return content
    closing_match = re.search(r'</[^>]+>$', content)
    if not closing_match:
        return ""
    return content[match.end():closing_match.start()]


def normalize_fragment(fragment: str) -> str:
    """
    Make model output safe for the XML parser.

    HTML named entities become their characters and ampersands that start no
    valid reference are escaped. Numeric references and the five XML entities
    are kept.

    Example:
        >>> normalize_fragment('Tom&nbsp;&amp; Jerry & co')
        'Tom\\xa0&amp; Jerry &amp; co'
    """
    def replace(match):
        reference = match.group(1)
        if reference is None:
            return '&amp;'
        if reference.startswith('#'):
            return match.group(0)
        name = reference[:-1]
        if name in _XML_PREDEFINED_ENTITIES:
            return match.group(0)
        codepoint = name2codepoint.get(name)
        if codepoint is None:
            return '&amp;' + reference
        return chr(codepoint)

    return _AMPERSAND.sub(replace, fragment)


def parse_fragment(fragment: str, nsmap: Optional[dict] = None) -> etree._Element:
    """
    Parse an inner HTML fragment under a temporary root, strictly.

    The root declares ``nsmap`` (the host element's namespaces) on top of
    ``FRAGMENT_NAMESPACES``, so unprefixed tags land in the host namespace and
    prefixed attributes (``epub:type``) resolve.

    Raises:
        etree.XMLSyntaxError: If the fragment is not well-formed
    """
    namespaces = dict(FRAGMENT_NAMESPACES)
    namespaces.update(nsmap or {})
    declarations = " ".join(
        f'xmlns="{uri}"' if prefix is None else f'xmlns:{prefix}="{uri}"'
        for prefix, uri in namespaces.items()
    )
    parser = etree.XMLParser(resolve_entities=False)
    return etree.fromstring(f"<temp_root {declarations}>{fragment}</temp_root>".encode('utf-8'), parser)


def set_inner_html(element: etree._Element, fragment: str) -> None:
    """
    Replace the content of ``element`` with the parsed ``fragment``.

    A fragment that stays malformed after ``normalize_fragment`` is inserted
    as plain text, so the document always serializes to well-formed XML.
    """
    for child in list(element):
        element.remove(child)
    element.text = None

    try:
        temp_root = parse_fragment(normalize_fragment(fragment), element.nsmap)
    except etree.XMLSyntaxError as e:
        logger.warning("Fragment is not well-formed, inserting it as text: %s", e)
        element.text = fragment
        return

    element.text = temp_root.text
    for child in list(temp_root):
        element.append(child)


def clone_element(element: etree._Element) -> etree._Element:
    """Deep copy of ``element`` without its tail text."""
    clone = copy.deepcopy(element)
    clone.tail = None
    return clone


def insert_after(element: etree._Element, new_element: etree._Element) -> None:
    """Insert ``new_element`` as the next sibling of ``element``.

    The original's tail (whitespace or text after it) moves to the new
    sibling so the text stays after both.
    """
    new_element.tail = element.tail
    element.tail = None
    element.addnext(new_element)


class ContentDocument:
    """One parsed content document.

    Attributes:
        path: File the document was loaded from (may be None for in-memory documents)
        tree: The lxml ElementTree
        is_xml: True when parsed as XHTML, False after the HTML fallback
    """

    def __init__(self, tree: etree._ElementTree, is_xml: bool = True, path: Optional[Path] = None):
        self.tree = tree
        self.is_xml = is_xml
        self.path = Path(path) if path else None

    @property
    def root(self) -> etree._Element:
        return self.tree.getroot()

    @classmethod
    def parse(cls, content: str, path: Optional[Path] = None) -> 'ContentDocument':
        """Parse text, falling back to the HTML parser when it is not well-formed XML.

        Raises:
            DocumentParseError: If neither parser yields a document
        """
        data = content.encode('utf-8')
        try:
            parser = etree.XMLParser(encoding='utf-8', resolve_entities=False,
                                     remove_blank_text=False, huge_tree=True)
            root = etree.fromstring(data, parser)
            return cls(root.getroottree(), is_xml=True, path=path)
        except etree.XMLSyntaxError as xml_error:
            logger.debug("XML parse failed for %s, using HTML parser: %s", path, xml_error)
            try:
                # The HTML parser rejects unicode strings carrying an encoding declaration
                root = lxml_html.document_fromstring(_XML_DECLARATION.sub('', content))
            except (etree.ParserError, ValueError) as html_error:
                raise DocumentParseError(
                    f"Cannot parse {path or 'document'}",
                    original_error=html_error,
                    content_preview=content,
                    path=str(path) if path else None
                ) from html_error
            return cls(root.getroottree(), is_xml=False, path=path)

    @classmethod
    async def load(cls, path: Path) -> 'ContentDocument':
        """Read and parse a content file.

        Raises:
            FileReadError: If the file cannot be read or decoded
            DocumentParseError: If the file cannot be parsed
        """
        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(f"Cannot read {path}: {e}", path=str(path)) from e
        return cls.parse(content, path=path)

    def serialize(self) -> str:
        if self.is_xml:
            return etree.tostring(self.tree, encoding='utf-8', xml_declaration=True).decode('utf-8')
        return lxml_html.tostring(self.tree, encoding='unicode', doctype=self.tree.docinfo.doctype or '<!DOCTYPE html>')

    async def save(self, path: Optional[Path] = None) -> None:
        """Write the serialized document.

        Raises:
            FileWriteError: If the file cannot be written
        """
        target = Path(path) if path else self.path
        if target is None:
            raise FileWriteError("Document has no path to save to")
        try:
            async with aiofiles.open(target, 'w', encoding='utf-8') as f:
                await f.write(self.serialize())
        except OSError as e:
            raise FileWriteError(f"Cannot write {target}: {e}", path=str(target)) from e

    def find_untranslated(self) -> List[etree._Element]:
        """Elements carrying a content-id but no translated-by, in document order."""
        return [el for el in self.root.xpath(UNTRANSLATED_XPATH) if is_element(el)]

    def find_marked(self) -> List[etree._Element]:
        return [el for el in self.root.xpath(MARKED_XPATH) if is_element(el)]

    def find_first(self, name: str) -> Optional[etree._Element]:
        """First element with the given local name, in document order."""
        for el in self.root.iter():
            if local_name(el) == name:
                return el
        return None

    def ensure_utf8_charset(self) -> bool:
        """Add ``<meta charset="utf-8"/>`` to the head when no charset is declared.

        Returns:
            True if the document was modified
        """
        head = self.find_first('head')
        if head is None:
            return False

        for meta in iter_child_elements(head):
            if local_name(meta) != 'meta':
                continue
            if meta.get('charset'):
                return False
            if (meta.get('http-equiv') or '').lower() == 'content-type' and 'charset' in (meta.get('content') or '').lower():
                return False

        namespace = etree.QName(head).namespace
        meta = head.makeelement(etree.QName(namespace, 'meta').text if namespace else 'meta', {})
        meta.set('charset', 'utf-8')
        meta.tail = head.text
        head.insert(0, meta)
        return True
