"""
Container and package document (OPF) parsing for an unpacked book.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from lxml import etree

from epubtrans.config import CONTAINER_FILE_PATH, NAMESPACES, XHTML_MEDIA_TYPE
from epubtrans.core.adapters.exceptions import EpubStructureError

logger = logging.getLogger(__name__)


@dataclass
class ManifestItem:
    """One ``<item>`` of the package manifest."""
    id: str
    href: str
    media_type: str
    properties: str = ""

    @property
    def is_content_document(self) -> bool:
        return self.media_type == XHTML_MEDIA_TYPE


@dataclass
class BookPackage:
    """Parsed package document.

    Attributes:
        root_dir: Directory of the unpacked book
        opf_path: Absolute path of the package document
        title: dc:title, empty when missing
        language: dc:language, empty when missing
        creator: dc:creator, empty when missing
        items: Manifest items in manifest order
        spine: idrefs of the spine, in reading order
    """
    root_dir: Path
    opf_path: Path
    title: str = ""
    language: str = ""
    creator: str = ""
    items: List[ManifestItem] = field(default_factory=list)
    spine: List[str] = field(default_factory=list)

    @property
    def opf_dir(self) -> Path:
        return self.opf_path.parent

    def get_item(self, item_id: str) -> Optional[ManifestItem]:
        if not item_id:
            return None
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def resolve(self, item: ManifestItem) -> Path:
        """Absolute path of a manifest item (hrefs are relative to the OPF)."""
        return (self.opf_dir / unquote(item.href)).resolve()

    def content_documents(self) -> List[Path]:
        """XHTML content documents, in manifest order."""
        return [self.resolve(item) for item in self.items if item.is_content_document]


def _parse_xml(path: Path, what: str) -> etree._Element:
    if not path.is_file():
        raise EpubStructureError(f"{what} not found", path=str(path))
    try:
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        return etree.parse(str(path), parser).getroot()
    except etree.XMLSyntaxError as e:
        raise EpubStructureError(f"Invalid {what}: {e}", path=str(path)) from e


def find_package_path(book_root: Path) -> Path:
    """Locate the package document through META-INF/container.xml.

    Raises:
        EpubStructureError: Missing or invalid container, or no rootfile
    """
    container = _parse_xml(Path(book_root) / CONTAINER_FILE_PATH, "container file")
    rootfile = container.find('.//container:rootfiles/container:rootfile', namespaces=NAMESPACES)
    if rootfile is None:
        # Some generators omit the namespace
        rootfile = container.find('.//rootfile')
    full_path = rootfile.get('full-path') if rootfile is not None else None
    if not full_path:
        raise EpubStructureError("container file has no rootfile full-path",
                                 path=str(Path(book_root) / CONTAINER_FILE_PATH))
    return Path(book_root) / unquote(full_path)


def _text(parent: etree._Element, path: str) -> str:
    node = parent.find(path, namespaces=NAMESPACES)
    if node is not None and node.text:
        return node.text.strip()
    return ""


def load_package(book_root: Path) -> BookPackage:
    """
    Parse the container and package documents of an unpacked book.

    Raises:
        EpubStructureError: If either document is missing or invalid
    """
    book_root = Path(book_root)
    opf_path = find_package_path(book_root)
    opf_root = _parse_xml(opf_path, "package document")

    manifest = opf_root.find('opf:manifest', namespaces=NAMESPACES)
    if manifest is None:
        raise EpubStructureError("package document has no manifest", path=str(opf_path))

    items = []
    for item in manifest.findall('opf:item', namespaces=NAMESPACES):
        href = item.get('href')
        if not href:
            logger.debug("Manifest item without href skipped: %s", item.get('id'))
            continue
        items.append(ManifestItem(
            id=item.get('id', ''),
            href=href,
            media_type=item.get('media-type', ''),
            properties=item.get('properties', ''),
        ))

    spine = []
    spine_elem = opf_root.find('opf:spine', namespaces=NAMESPACES)
    if spine_elem is not None:
        spine = [ref.get('idref') for ref in spine_elem.findall('opf:itemref', namespaces=NAMESPACES)
                 if ref.get('idref')]

    metadata = opf_root.find('opf:metadata', namespaces=NAMESPACES)
    title = language = creator = ""
    if metadata is not None:
        title = _text(metadata, 'dc:title')
        language = _text(metadata, 'dc:language')
        creator = _text(metadata, 'dc:creator')

    return BookPackage(
        root_dir=book_root.resolve(),
        opf_path=opf_path.resolve(),
        title=title,
        language=language,
        creator=creator,
        items=items,
        spine=spine,
    )
