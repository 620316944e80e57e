"""Paragraph-based chunking of markdown notes.

Splits a note into chunks of whole paragraphs, extracts its front-matter and
tags, and attaches both to every chunk of the note. The chunker is pure:
identical content always yields identical chunks.
"""

import re

from shared.models.index import (
    ChunkDraft,
    ChunkMetadata,
    DocumentRef,
    FrontMatterList,
    FrontMatterNumber,
    FrontMatterString,
    FrontMatterUnknown,
    FrontMatterValue,
)

PARAGRAPH_SEPARATOR = "\n\n"

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_BLANK_LINE_RE = re.compile(r"\r?\n[ \t]*\r?\n(?:[ \t]*\r?\n)*")
_TAG_RE = re.compile(r"(?:^|(?<=\s))#([\w/-]+)")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_LIST_ITEM_RE = re.compile(r"^\s*-\s+(.*)$")


################ FRONT-MATTER ##################
def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_scalar(raw: str) -> FrontMatterValue:
    value = raw.strip()
    if not value or (value.startswith("{") and value.endswith("}")):
        return FrontMatterUnknown(raw=value)
    if value.startswith("[") and value.endswith("]"):
        items = [_unquote(item.strip()) for item in value[1:-1].split(",")]
        return FrontMatterList(value=[item for item in items if item])
    if _NUMBER_RE.match(value):
        return FrontMatterNumber(value=float(value))
    return FrontMatterString(value=_unquote(value))


def parse_frontmatter(block: str) -> dict[str, FrontMatterValue]:
    """Parse a flat `key: value` front-matter block.

    Lines without a colon or with an empty key are skipped. A key with an
    empty value followed by `- item` lines becomes a list.

    Args:
        block (str): Text between the `---` delimiters.

    Returns:
        dict[str, FrontMatterValue]: Parsed values by key, in order of appearance.
    """
    result: dict[str, FrontMatterValue] = {}
    current_list_key: str | None = None
    for line in block.splitlines():
        item = _LIST_ITEM_RE.match(line)
        if item and current_list_key is not None:
            entry = result[current_list_key]
            values = entry.value if isinstance(entry, FrontMatterList) else []
            result[current_list_key] = FrontMatterList(value=[*values, _unquote(item.group(1).strip())])
            continue
        current_list_key = None
        if ":" not in line:
            continue
        key, _, raw = line.partition(":")
        key = key.strip()
        if not key:
            continue
        result[key] = _parse_scalar(raw)
        if not raw.strip():
            current_list_key = key
    return result


def split_frontmatter(content: str) -> tuple[dict[str, FrontMatterValue], str, int]:
    """Separate a leading front-matter block from the note body.

    Returns:
        tuple: (parsed front-matter, body, offset of the body in content)
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content, 0
    return parse_frontmatter(match.group(1) or ""), content[match.end():], match.end()


################ TAGS ##################
def extract_tags(body: str, frontmatter: dict[str, FrontMatterValue] | None = None) -> list[str]:
    """Collect tags without the leading `#`, de-duplicated in first-seen order.

    Front-matter `tags` come first, followed by inline `#tag` tokens.
    """
    tags: list[str] = []
    fm_tags = (frontmatter or {}).get("tags")
    if isinstance(fm_tags, FrontMatterList):
        tags.extend(tag.lstrip("#") for tag in fm_tags.value)
    elif isinstance(fm_tags, FrontMatterString):
        tags.extend(tag.lstrip("#") for tag in re.split(r"[,\s]+", fm_tags.value))
    tags.extend(_TAG_RE.findall(body))
    return list(dict.fromkeys(tag for tag in tags if tag))


################ PARAGRAPHS ##################
def split_paragraphs(body: str, base_offset: int = 0) -> list[tuple[str, int, int]]:
    """Split text on blank lines.

    Returns:
        list[tuple[str, int, int]]: (paragraph, start, end) with offsets
            relative to the full content. Whitespace-only paragraphs are dropped.
    """
    paragraphs: list[tuple[str, int, int]] = []
    start = 0
    for separator in _BLANK_LINE_RE.finditer(body):
        paragraphs.append((body[start:separator.start()], start, separator.start()))
        start = separator.end()
    paragraphs.append((body[start:], start, len(body)))
    return [
        (text, base_offset + begin, base_offset + end)
        for text, begin, end in paragraphs
        if text.strip()
    ]


class Chunker:
    """Greedy paragraph packer.

    Paragraphs are joined with a blank line until adding the next one would
    exceed chunk_size. A single paragraph longer than chunk_size is kept whole.
    """

    def __init__(self, chunk_size: int = 1000) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        self.chunk_size = chunk_size

    def chunk(self, content: str, doc: DocumentRef) -> list[ChunkDraft]:
        """Split a note into chunk drafts.

        Args:
            content (str): Raw note content, including any front-matter.
            doc (DocumentRef): The note the content belongs to.

        Returns:
            list[ChunkDraft]: Ordered chunks; empty if the note has no non-blank paragraph.
        """
        frontmatter, body, body_offset = split_frontmatter(content)
        tags = extract_tags(body, frontmatter)

        groups: list[tuple[str, int, int]] = []
        buffer = ""
        buffer_start = buffer_end = 0
        for paragraph, start, end in split_paragraphs(body, body_offset):
            if buffer and len(buffer) + len(PARAGRAPH_SEPARATOR) + len(paragraph) > self.chunk_size:
                groups.append((buffer, buffer_start, buffer_end))
                buffer = ""
            if buffer:
                buffer = f"{buffer}{PARAGRAPH_SEPARATOR}{paragraph}"
            else:
                buffer, buffer_start = paragraph, start
            buffer_end = end
        if buffer:
            groups.append((buffer, buffer_start, buffer_end))

        total = len(groups)
        return [
            ChunkDraft(
                id=f"{doc.path}:{index}",
                content=text.strip(),
                metadata=ChunkMetadata(
                    file=doc.name,
                    path=doc.path,
                    tags=tags,
                    frontmatter=frontmatter,
                    chunk_index=index,
                    total_chunks=total,
                    start_offset=start,
                    end_offset=end,
                ),
            )
            for index, (text, start, end) in enumerate(groups)
        ]
