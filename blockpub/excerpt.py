from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence, assert_never

from .blocks import (
    Block,
    CalloutPayload,
    ChartPayload,
    CodePayload,
    HeadingPayload,
    ImagesPayload,
    InstagramPayload,
    ListPayload,
    PollingPayload,
    ProgressTrackerPayload,
    QuotePayload,
    TablePayload,
    TextPayload,
    TwitterPayload,
    VideoPayload,
    plain_text,
)
from .coerce import count_words, strip_html
from .errors import BadInputError

DEFAULT_CHAR_LIMIT = 200
DEFAULT_SEO_CHAR_LIMIT = 300
DEFAULT_WORDS_PER_MINUTE = 200
DEFAULT_ELLIPSIS = "..."
DEFAULT_IMAGE_ALT = "Post image"

_BACKTRACK_RATIO = 0.8


@dataclass(frozen=True)
class GeneratedExcerpt:
    text: str
    word_count: int
    image_file_id: str | None = None
    image_alt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "imageFileId": self.image_file_id,
            "imageAlt": self.image_alt,
            "wordCount": self.word_count,
        }


@dataclass(frozen=True)
class ManualExcerpt:
    """A user's stored excerpt override. Any non-empty field marks the excerpt as manual."""

    text: str | None = None
    image_file_id: str | None = None
    byline: str | None = None

    @property
    def is_configured(self) -> bool:
        return bool((self.text or "").strip() or self.image_file_id or (self.byline or "").strip())


@dataclass(frozen=True)
class PostExcerpt:
    text: str
    read_time: int
    is_manual: bool
    image_file_id: str | None = None
    image_alt: str | None = None
    byline: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "excerpt": self.text,
            "imageFileId": self.image_file_id,
            "imageAlt": self.image_alt,
            "byline": self.byline,
            "isManualExcerpt": self.is_manual,
            "readTime": self.read_time,
        }


@dataclass(frozen=True)
class ContentAnalysis:
    word_count: int
    reading_time: int
    total_blocks: int
    block_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "wordCount": self.word_count,
            "readingTime": self.reading_time,
            "totalBlocks": self.total_blocks,
            "blockCounts": dict(self.block_counts),
        }


def truncate_text(text: str, char_limit: int, *, ellipsis: str = DEFAULT_ELLIPSIS) -> str:
    """
    Cut `text` to at most `char_limit` characters plus the ellipsis marker.

    Text that fits is returned unchanged. Otherwise the cut backs up to the last
    space inside the budget, but only if that space sits at or after 80% of it.
    """
    if char_limit < 1:
        raise BadInputError(f"char_limit must be >= 1 (got {char_limit})")

    if len(text) <= char_limit:
        return text

    truncated = text[:char_limit]
    last_space = truncated.rfind(" ")
    if last_space >= 0 and last_space >= char_limit * _BACKTRACK_RATIO:
        return truncated[:last_space] + ellipsis
    return truncated + ellipsis


def _joined_text(blocks: Sequence[Block]) -> str:
    parts: list[str] = []
    for block in blocks:
        text = plain_text(block.payload)
        if text:
            parts.append(text)
    return " ".join(parts)


def _first_image(blocks: Sequence[Block]) -> tuple[str, str | None] | None:
    for block in blocks:
        payload = block.payload
        match payload:
            case ImagesPayload():
                if payload.images:
                    first = payload.ordered_images()[0]
                    return first.file_id, (first.alt or None)
            case (
                TextPayload()
                | HeadingPayload()
                | ListPayload()
                | QuotePayload()
                | CalloutPayload()
                | CodePayload()
                | VideoPayload()
                | TwitterPayload()
                | InstagramPayload()
                | PollingPayload()
                | TablePayload()
                | ChartPayload()
                | ProgressTrackerPayload()
            ):
                pass
            case _:
                assert_never(payload)
    return None


def generate_excerpt(
    blocks: Sequence[Block],
    char_limit: int = DEFAULT_CHAR_LIMIT,
    *,
    ellipsis: str = DEFAULT_ELLIPSIS,
) -> GeneratedExcerpt:
    """
    Build a preview from an ordered block sequence.

    Text comes from text-bearing blocks only, tag-stripped and space-joined, then
    truncated to `char_limit`. The image is the lowest-ordered entry of the first
    Images block that has any. `word_count` covers the full, untruncated text.
    """
    if char_limit < 1:
        raise BadInputError(f"char_limit must be >= 1 (got {char_limit})")

    full_text = _joined_text(blocks)
    image = _first_image(blocks)

    return GeneratedExcerpt(
        text=truncate_text(full_text, char_limit, ellipsis=ellipsis),
        word_count=count_words(full_text),
        image_file_id=image[0] if image else None,
        image_alt=image[1] if image else None,
    )


def estimate_read_time(word_count: int, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE) -> int:
    """Whole minutes to read `word_count` words; never less than one."""
    if words_per_minute < 1:
        raise BadInputError(f"words_per_minute must be >= 1 (got {words_per_minute})")
    return max(1, math.ceil(max(0, word_count) / words_per_minute))


def build_post_excerpt(
    blocks: Sequence[Block],
    manual: ManualExcerpt | None = None,
    *,
    char_limit: int = DEFAULT_CHAR_LIMIT,
    ellipsis: str = DEFAULT_ELLIPSIS,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
) -> PostExcerpt:
    """Effective excerpt for listings: manual fields win, generated values fill the gaps."""
    generated = generate_excerpt(blocks, char_limit, ellipsis=ellipsis)
    override = manual or ManualExcerpt()
    is_manual = override.is_configured

    text = ""
    byline = None
    image_file_id = None
    image_alt = None

    if is_manual:
        text = (override.text or "").strip()
        byline = (override.byline or "").strip() or None
        image_file_id = override.image_file_id or None

    if not text:
        text = generated.text

    if image_file_id is None and generated.image_file_id is not None:
        image_file_id = generated.image_file_id
        image_alt = generated.image_alt or DEFAULT_IMAGE_ALT

    return PostExcerpt(
        text=text,
        read_time=estimate_read_time(generated.word_count, words_per_minute),
        is_manual=is_manual,
        image_file_id=image_file_id,
        image_alt=image_alt,
        byline=byline,
    )


def seo_description(
    blocks: Sequence[Block],
    char_limit: int = DEFAULT_SEO_CHAR_LIMIT,
    *,
    ellipsis: str = DEFAULT_ELLIPSIS,
) -> str:
    return generate_excerpt(blocks, char_limit, ellipsis=ellipsis).text


def _counted_text(block: Block) -> str:
    payload = block.payload
    match payload:
        case TextPayload():
            return strip_html(payload.text)
        case QuotePayload():
            return payload.quote
        case CalloutPayload():
            return payload.content
        case CodePayload():
            return payload.code_text
        case TwitterPayload():
            return payload.content
        case (
            HeadingPayload()
            | ListPayload()
            | ImagesPayload()
            | VideoPayload()
            | InstagramPayload()
            | PollingPayload()
            | TablePayload()
            | ChartPayload()
            | ProgressTrackerPayload()
        ):
            return ""
        case _:
            assert_never(payload)


def analyze_content(blocks: Sequence[Block]) -> ContentAnalysis:
    """
    Word count, reading time and per-type block counts for a post.

    Words are counted across text, quote, callout, code and tweet content.
    Reading time here is plain `ceil(words / 200)`, so an empty post reads in 0 minutes.
    """
    word_count = sum(count_words(_counted_text(b)) for b in blocks)

    counts: dict[str, int] = {}
    for block in blocks:
        key = block.type.value
        counts[key] = counts.get(key, 0) + 1

    return ContentAnalysis(
        word_count=word_count,
        reading_time=math.ceil(word_count / DEFAULT_WORDS_PER_MINUTE),
        total_blocks=len(blocks),
        block_counts=counts,
    )
