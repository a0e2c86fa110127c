"""Feed parser service.

This module parses RSS and Atom documents into FeedMetadata and FeedItem
records. Parsing is synchronous; fetching is left to the caller.

Field values are resolved through ordered accessor chains: each field lists
the element names (or attribute lookups) to try, and the first non-empty
value wins. Element names follow DOM ``getElementsByTagName`` conventions:
a plain name matches the element's qualified name, while ``prefix:local``
matches ``local`` in any namespace.
"""

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from lxml import etree

from feed_ingest.errors import EmptyFeed, FeedParseError
from feed_ingest.logging_config import get_logger
from feed_ingest.models.schemas import FeedItem, FeedMetadata


XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

IMG_SRC_PATTERN = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

Accessor = Callable[[etree._Element], Optional[str]]


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _qualified_name(element: etree._Element) -> Optional[str]:
    """Return ``prefix:local`` (or ``local``) for an element, None for comments."""
    tag = element.tag
    if not isinstance(tag, str):
        return None
    if tag.startswith("{"):
        local = tag.split("}", 1)[1]
        return f"{element.prefix}:{local}" if element.prefix else local
    return tag


def _local_name(element: etree._Element) -> Optional[str]:
    name = _qualified_name(element)
    if name is None:
        return None
    return name.rsplit(":", 1)[-1]


def _matches(element: etree._Element, name: str) -> bool:
    if ":" in name:
        if _local_name(element) == name.rsplit(":", 1)[-1]:
            return True
    return _qualified_name(element) == name


def _descendants(element: etree._Element, name: str) -> Iterator[etree._Element]:
    for child in element.iterdescendants():
        if _matches(child, name):
            yield child


def _children(element: etree._Element, name: str) -> Iterator[etree._Element]:
    for child in element:
        if _matches(child, name):
            yield child


def _text(element: etree._Element) -> str:
    return "".join(element.itertext())


def _first_text(elements: Iterator[etree._Element]) -> Optional[str]:
    for element in elements:
        return _text(element) or None
    return None


def element_text(element: etree._Element, name: str) -> Optional[str]:
    """Text of the first descendant matching ``name``, or None."""
    return _first_text(_descendants(element, name))


def child_text(element: etree._Element, name: str) -> Optional[str]:
    """Trimmed text of the first direct child matching ``name``, or None."""
    for child in _children(element, name):
        return _text(child).strip() or None
    return None


def first_of(element: etree._Element, accessors: Sequence[Accessor]) -> Optional[str]:
    """Run accessors in order and return the first non-empty value."""
    for accessor in accessors:
        value = accessor(element)
        if value:
            return value
    return None


def _descendant_text(name: str) -> Accessor:
    return lambda element: element_text(element, name)


def _trimmed_text(name: str) -> Accessor:
    def accessor(element: etree._Element) -> Optional[str]:
        value = element_text(element, name)
        return value.strip() if value else None

    return accessor


def _link_text(element: etree._Element) -> Optional[str]:
    for link in _descendants(element, "link"):
        return _text(link).strip() or None
    return None


def _link_href(element: etree._Element) -> Optional[str]:
    for link in _descendants(element, "link"):
        return link.get("href") or None
    return None


# ---------------------------------------------------------------------------
# Field alias chains
# ---------------------------------------------------------------------------

TITLE_FIELDS: List[Accessor] = [_trimmed_text("title")]

LINK_FIELDS: List[Accessor] = [_link_text, _link_href]

DATE_FIELDS: List[Accessor] = [
    _descendant_text("pubDate"),
    _descendant_text("published"),
    _descendant_text("date"),
    _descendant_text("updated"),
    _descendant_text("dc:date"),
]

CONTENT_FIELDS: List[Accessor] = [
    _descendant_text("content:encoded"),
    _descendant_text("content"),
]

SUMMARY_FIELDS: List[Accessor] = [
    _descendant_text("description"),
    _descendant_text("summary"),
]

GUID_FIELDS: List[Accessor] = [
    _trimmed_text("guid"),
    _trimmed_text("id"),
]

# Sources scanned for an embedded <img> when no media element is present
IMAGE_HTML_FIELDS: List[Accessor] = [
    _descendant_text("content:encoded"),
    _descendant_text("content"),
    _descendant_text("description"),
]


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------


def parse_xml(xml: str, permissive: bool = True) -> Optional[etree._Element]:
    """Parse feed text into an element tree root.

    Args:
        xml: Feed document text
        permissive: Recover from malformed markup instead of failing

    Returns:
        Root element, or None when nothing could be recovered in permissive mode

    Raises:
        FeedParseError: In strict mode, when the document is not well-formed
    """
    parser = etree.XMLParser(
        recover=permissive,
        encoding="utf-8",
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
    )
    data = xml.lstrip("\ufeff").strip().encode("utf-8")
    if not data:
        if permissive:
            return None
        raise FeedParseError("Empty document")

    try:
        return etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        if permissive:
            get_logger(__name__).debug(f"Unrecoverable XML: {e}")
            return None
        raise FeedParseError(f"Malformed XML: {e}") from e


def normalize_date(value: Optional[str]) -> Optional[datetime]:
    """Normalize a feed date string to a timezone-aware UTC datetime.

    ISO-8601 is tried first, then RFC-822. Values without an offset are
    taken as UTC. Unparseable values give None.
    """
    if not value:
        return None
    value = value.strip()
    if not value:
        return None

    parsed = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass

    if parsed is None:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def extract_image_url(item: etree._Element) -> Optional[str]:
    """Find the first image for an item.

    Precedence: a namespaced media ``content`` element's ``url``, then an
    image ``enclosure``, then the first ``<img src>`` in the item's HTML.
    """
    for element in _descendants(item, "media:content"):
        url = element.get("url")
        if url:
            return url

    for enclosure in _descendants(item, "enclosure"):
        mime = enclosure.get("type") or ""
        url = enclosure.get("url")
        if mime.startswith("image/") and url:
            return url

    html = first_of(item, IMAGE_HTML_FIELDS) or ""
    match = IMG_SRC_PATTERN.search(html)
    if match:
        return match.group(1)

    return None


def _categories(item: etree._Element) -> List[str]:
    return [text for text in (_text(c) for c in _descendants(item, "category")) if text]


def _item_elements(root: etree._Element) -> List[etree._Element]:
    items = [e for e in root.iter() if _qualified_name(e) == "item"]
    if items:
        return items
    return [e for e in root.iter() if _qualified_name(e) == "entry"]


def _parse_item(element: etree._Element) -> Optional[FeedItem]:
    title = first_of(element, TITLE_FIELDS)
    link = first_of(element, LINK_FIELDS)
    if not title or not link:
        return None

    return FeedItem(
        title=title,
        link=link,
        publication_date=normalize_date(first_of(element, DATE_FIELDS)),
        content=first_of(element, CONTENT_FIELDS),
        summary=first_of(element, SUMMARY_FIELDS),
        guid=first_of(element, GUID_FIELDS) or link,
        categories=_categories(element),
        image_url=extract_image_url(element),
    )


def iter_feed_items(xml: str, *, permissive: bool = True) -> Iterator[FeedItem]:
    """Lazily yield valid items from an RSS or Atom document.

    RSS ``<item>`` elements take priority; Atom ``<entry>`` elements are used
    only when there are none. Items without a title or link are skipped.

    Raises:
        FeedParseError: If no document could be read, or the document is
            neither RSS nor Atom and holds no items (e.g. an HTML page)
    """
    logger = get_logger(__name__)

    root = parse_xml(xml, permissive=permissive)
    if root is None:
        raise FeedParseError("No XML document could be recovered")

    elements = _item_elements(root)
    if not elements and _dialect(root)[0] is None:
        raise FeedParseError(f"Document is not an RSS or Atom feed: <{_local_name(root)}>")

    for index, element in enumerate(elements):
        item = _parse_item(element)
        if item is None:
            logger.warning(f"Skipping feed item {index}: missing title or link")
            continue
        yield item


def parse_feed_items(xml: str, *, permissive: bool = True) -> List[FeedItem]:
    """Parse all valid items from an RSS or Atom document.

    Args:
        xml: Feed document text
        permissive: Recover from malformed markup

    Returns:
        Non-empty list of FeedItem objects in document order

    Raises:
        EmptyFeed: If the document holds no valid items
        FeedParseError: If no document could be read or it is not a feed
    """
    items = list(iter_feed_items(xml, permissive=permissive))
    if not items:
        raise EmptyFeed("No items found in feed")

    get_logger(__name__).info(f"Parsed {len(items)} items from feed")
    return items


def _atom_link(feed: etree._Element) -> Optional[str]:
    for link in _children(feed, "link"):
        rel = link.get("rel")
        if not rel or rel in ("self", "alternate"):
            href = link.get("href")
            if href:
                return href
    return None


def _rss_metadata(channel: etree._Element) -> FeedMetadata:
    return FeedMetadata(
        title=child_text(channel, "title"),
        description=child_text(channel, "description"),
        link=child_text(channel, "link"),
        language=child_text(channel, "language"),
        copyright=child_text(channel, "copyright"),
        publication_date=child_text(channel, "pubDate"),
        last_build_date=child_text(channel, "lastBuildDate"),
        generator=child_text(channel, "generator"),
        managing_editor=child_text(channel, "managingEditor"),
        web_master=child_text(channel, "webMaster"),
    )


def _atom_metadata(feed: etree._Element) -> FeedMetadata:
    return FeedMetadata(
        title=child_text(feed, "title"),
        description=child_text(feed, "subtitle") or child_text(feed, "summary"),
        link=_atom_link(feed),
        language=feed.get(XML_LANG) or None,
        copyright=child_text(feed, "rights"),
        publication_date=child_text(feed, "updated"),
        generator=child_text(feed, "generator"),
    )


def _dialect(root: etree._Element) -> Tuple[Optional[str], Optional[etree._Element]]:
    if _qualified_name(root) == "channel":
        return "rss", root
    channel = next(_descendants(root, "channel"), None)
    if channel is not None:
        return "rss", channel
    if _local_name(root) in ("rss", "RDF"):
        return "rss", root
    if _local_name(root) == "feed":
        return "atom", root
    return None, None


def parse_feed_metadata(xml: str, *, permissive: bool = True) -> FeedMetadata:
    """Extract channel-level metadata from an RSS or Atom document.

    A ``<channel>`` element selects RSS; otherwise the root must be an Atom
    ``<feed>``. Anything else yields empty metadata.

    Raises:
        FeedParseError: In strict mode, when the document is not well-formed
    """
    root = parse_xml(xml, permissive=permissive)
    if root is None:
        return FeedMetadata()

    dialect, element = _dialect(root)
    if dialect == "rss":
        return _rss_metadata(element)
    if dialect == "atom":
        return _atom_metadata(element)
    return FeedMetadata()


def detect_dialect(xml: str, *, permissive: bool = True) -> Optional[str]:
    """Return "rss" or "atom" for a feed document, None for anything else."""
    root = parse_xml(xml, permissive=permissive)
    if root is None:
        return None
    return _dialect(root)[0]
