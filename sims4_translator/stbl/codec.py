"""
Sims 4 string-table XML codec.

Expected structure::

    <STBLXMLResources>
      <Content>
        <Table>
          <String id="0x1234ABCD">
            <Source>Hello</Source>
            <Dest>Hello</Dest>
          </String>
        </Table>
      </Content>
    </STBLXMLResources>

Parsing goes through lxml. Rendering never re-serializes the document: the
original text is scanned with expat to find the byte span of each entry's
``Dest`` content and only those spans are rewritten, so whitespace,
attribute order, comments and the XML declaration survive untouched.
"""

import re
from dataclasses import dataclass
from typing import List, Mapping, NamedTuple, Optional
from xml.parsers import expat
from xml.sax.saxutils import escape

from lxml import etree

from sims4_translator.logger import get_logger

logger = get_logger(__name__)

STRING_TAG = "String"
SOURCE_TAG = "Source"
DEST_TAG = "Dest"
ID_ATTRIBUTE = "id"

_BOM = "\ufeff"


class ParseError(Exception):
    """The document is not well-formed XML."""

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


@dataclass(frozen=True)
class StringRecord:
    """One translatable string-table entry."""
    id: str
    source: str
    dest: str

    def to_dict(self):
        return {"id": self.id, "source": self.source, "dest": self.dest}


class _DestSpan(NamedTuple):
    string_id: str
    start: int        # byte offset where the replacement begins
    end: int          # byte offset where the replacement ends (exclusive)
    open_tag: bytes   # only set for <Dest/>, which has to be expanded
    close_tag: bytes


# ------------------------------------------------------------------
# Parse
# ------------------------------------------------------------------

def _parse_tree(content: str):
    parser = etree.XMLParser(encoding="utf-8", resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(content.lstrip(_BOM).encode("utf-8"), parser)
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Failed to parse XML: {e}") from e


def _text_content(element) -> str:
    # XPath string value: descendant text only, comments excluded
    return str(element.xpath("string()"))


def parse_xml(content: str) -> List[StringRecord]:
    """
    Extract the string-table entries of a document in document order.

    Entries without an ``id`` attribute, a ``Source`` or a ``Dest`` element
    are skipped. Duplicate ids are returned as they appear.

    Raises:
        ParseError: the content is not well-formed XML.
    """
    root = _parse_tree(content)

    records = []
    skipped = 0
    for node in root.iter(STRING_TAG):
        string_id = node.get(ID_ATTRIBUTE)
        source_node = node.find(f".//{SOURCE_TAG}")
        dest_node = node.find(f".//{DEST_TAG}")

        if not string_id or source_node is None or dest_node is None:
            skipped += 1
            continue

        records.append(StringRecord(
            id=string_id,
            source=_text_content(source_node),
            dest=_text_content(dest_node),
        ))

    if skipped:
        logger.debug(f"Skipped {skipped} incomplete string entries")
    logger.debug(f"Parsed {len(records)} string entries")
    return records


# ------------------------------------------------------------------
# Render
# ------------------------------------------------------------------

def _start_tag_end(data: bytes, start: int) -> int:
    """Index of the '>' closing the start tag that begins at ``start``."""
    quote = None
    for i in range(start + 1, len(data)):
        char = data[i:i + 1]
        if quote:
            if char == quote:
                quote = None
        elif char in (b'"', b"'"):
            quote = char
        elif char == b'>':
            return i
    raise ParseError("Unterminated start tag")


def _locate_dest_spans(data: bytes) -> List[_DestSpan]:
    """
    Find the content span of the first ``Dest`` inside every ``String``.

    Offsets come from expat's byte index, which points at the ``<`` of the
    tag that triggered each event.
    """
    parser = expat.ParserCreate(encoding="UTF-8")
    spans = []
    frames = []       # one [string_id, dest_seen] per open String
    depth = 0
    pending = None    # (string_id, start_of_dest_tag, depth, name)

    def on_start(name, attrs):
        nonlocal depth, pending
        depth += 1
        if name == STRING_TAG:
            frames.append([attrs.get(ID_ATTRIBUTE), False])
        elif name == DEST_TAG and frames and not frames[-1][1] and pending is None:
            frames[-1][1] = True
            if frames[-1][0]:
                pending = (frames[-1][0], parser.CurrentByteIndex, depth, name)

    def on_end(name):
        nonlocal depth, pending
        if pending is not None and pending[2] == depth:
            string_id, tag_start, _, tag_name = pending
            pending = None
            tag_end = _start_tag_end(data, tag_start)
            if data[tag_end - 1:tag_end] == b'/':
                # <Dest/> is replaced as a whole by <Dest>text</Dest>
                open_tag = data[tag_start:tag_end - 1].rstrip() + b'>'
                close_tag = b'</' + tag_name.encode("utf-8") + b'>'
                spans.append(_DestSpan(string_id, tag_start, tag_end + 1, open_tag, close_tag))
            else:
                spans.append(_DestSpan(string_id, tag_end + 1, parser.CurrentByteIndex, b'', b''))
        if name == STRING_TAG and frames:
            frames.pop()
        depth -= 1

    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end

    try:
        parser.Parse(data, True)
    except expat.ExpatError as e:
        raise ParseError(f"Failed to parse XML: {e}") from e
    return spans


def render_xml(original_content: str, translations: Mapping[str, str]) -> str:
    """
    Write translations into the ``Dest`` elements of the original document.

    Only the text between each matching entry's ``Dest`` tags changes; every
    other byte of ``original_content`` is kept. Ids not present in the
    document are ignored and entries sharing an id all receive the same text.
    Rendering is idempotent and an empty mapping returns the content as is.

    Raises:
        ParseError: the content is not well-formed XML.
    """
    if not translations:
        return original_content

    bom = _BOM if original_content.startswith(_BOM) else ""
    data = original_content[len(bom):].encode("utf-8")

    pieces = []
    cursor = 0
    replaced = 0
    for span in _locate_dest_spans(data):
        if span.string_id not in translations:
            continue
        text = escape(translations[span.string_id] or "").encode("utf-8")
        pieces.append(data[cursor:span.start])
        pieces.append(span.open_tag + text + span.close_tag)
        cursor = span.end
        replaced += 1
    pieces.append(data[cursor:])

    logger.debug(f"Rendered {replaced} Dest elements from {len(translations)} translations")
    return bom + b"".join(pieces).decode("utf-8")


def export_file_name(file_name: str) -> str:
    """Download name for a translated file: ``Strings.xml`` -> ``Strings_translated.xml``."""
    base_name = re.sub(r"\.xml$", "", file_name or "strings", flags=re.IGNORECASE)
    return f"{base_name}_translated.xml"
