from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Mapping, Sequence, Union, assert_never, get_args

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .charts import ChartSelections, ChartType
from .coerce import strip_html
from .errors import BadInputError


class BlockType(str, Enum):
    TEXT = "TEXT"
    HEADING = "HEADING"
    LIST = "LIST"
    QUOTE = "QUOTE"
    CALLOUT = "CALLOUT"
    CODE = "CODE"
    IMAGES = "IMAGES"
    VIDEO = "VIDEO"
    TWITTER = "TWITTER"
    INSTAGRAM = "INSTAGRAM"
    POLLING = "POLLING"
    TABLE = "TABLE"
    CHART = "CHART"
    PROGRESS_TRACKER = "PROGRESS_TRACKER"


class _Model(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TextPayload(_Model):
    type: Literal["TEXT"] = "TEXT"
    text: str = ""
    has_drop_cap: bool = False


class HeadingPayload(_Model):
    type: Literal["HEADING"] = "HEADING"
    level: int = Field(2, ge=1, le=6)
    heading: str = ""


class ListItem(_Model):
    id: str | None = None
    title: str = ""
    position: int = 0


class ListPayload(_Model):
    type: Literal["LIST"] = "LIST"
    style: Literal["BULLET", "NUMBERED", "CHECKLIST"] = "BULLET"
    title: str = ""
    content: str = ""
    checked: bool = False
    items: tuple[ListItem, ...] = ()


class QuotePayload(_Model):
    type: Literal["QUOTE"] = "QUOTE"
    quote: str = ""
    author: str | None = None
    source: str | None = None


class CalloutPayload(_Model):
    type: Literal["CALLOUT"] = "CALLOUT"
    variant: Literal["INFO", "WARNING", "ERROR", "SUCCESS", "NOTE"] = "INFO"
    title: str | None = None
    content: str = ""


class CodePayload(_Model):
    type: Literal["CODE"] = "CODE"
    code_text: str = ""
    language: str | None = None
    title: str | None = None
    show_line_numbers: bool = False
    start_line: int = Field(1, ge=1)
    max_height: int | None = Field(None, ge=1)
    highlight_lines: tuple[int, ...] = ()


class ImageEntry(_Model):
    id: str | None = None
    file_id: str = Field(min_length=1)
    alt: str = ""
    caption: str | None = None
    order: int = 0


class ImagesPayload(_Model):
    type: Literal["IMAGES"] = "IMAGES"
    caption: str | None = None
    images: tuple[ImageEntry, ...] = ()

    def ordered_images(self) -> list[ImageEntry]:
        # sorted() is stable, so equal `order` values keep their stored position.
        return sorted(self.images, key=lambda img: img.order)


class VideoPayload(_Model):
    type: Literal["VIDEO"] = "VIDEO"
    alt: str = ""
    caption: str | None = None
    video_file_id: str = Field(min_length=1)
    poster_file_id: str | None = None


class TwitterPayload(_Model):
    type: Literal["TWITTER"] = "TWITTER"
    username: str = ""
    handle: str = ""
    content: str = ""
    date: str | None = None
    likes: int = 0
    retweets: int = 0
    replies: int = 0
    verified: bool = False
    avatar_file_id: str | None = Field(
        None, validation_alias=AliasChoices("avatar_file_id", "avatarFileId", "avatarId")
    )
    image_file_id: str | None = None


class InstagramFile(_Model):
    id: str | None = None
    file_id: str = Field(min_length=1)


class InstagramPayload(_Model):
    type: Literal["INSTAGRAM"] = "INSTAGRAM"
    username: str = ""
    avatar_file_id: str | None = Field(
        None, validation_alias=AliasChoices("avatar_file_id", "avatarFileId", "avatar")
    )
    location: str | None = None
    date: str | None = None
    instagram_id: str = ""
    likes: int = 0
    comments: int = 0
    caption: str | None = None
    verified: bool = False
    files: tuple[InstagramFile, ...] = ()


class PollingOption(_Model):
    id: str | None = None
    label: str


class PollingPayload(_Model):
    type: Literal["POLLING"] = "POLLING"
    title: str | None = None
    description: str | None = None
    options: tuple[PollingOption, ...] = ()


class TablePayload(_Model):
    type: Literal["TABLE"] = "TABLE"
    caption: str | None = None
    description: str | None = None
    mobile_layout: Literal["CARDS", "STACK", "SCROLL"] = "SCROLL"
    file_id: str = Field(min_length=1)


class ChartPayload(_Model):
    type: Literal["CHART"] = "CHART"
    chart_type: ChartType = ChartType.LINE
    title: str | None = None
    description: str | None = None
    file_id: str = Field(min_length=1)
    x_axis: str = ""
    y_axis: str = ""
    series: tuple[str, ...] = ()
    label_key: str = ""
    value_key: str = ""
    show_grid: bool = True
    show_legend: bool = True
    stacked: bool = False
    connect_nulls: bool = False

    def selections(self) -> ChartSelections:
        return ChartSelections(
            x_axis=self.x_axis,
            y_axis=self.y_axis,
            series=list(self.series),
            label_key=self.label_key,
            value_key=self.value_key,
        )


class ProgressTrackerPayload(_Model):
    type: Literal["PROGRESS_TRACKER"] = "PROGRESS_TRACKER"
    variant: Literal["SUBTLE", "VIBRANT", "NONE"] = "SUBTLE"
    show_percentage: bool = False


AnyPayload = Union[
    TextPayload,
    HeadingPayload,
    ListPayload,
    QuotePayload,
    CalloutPayload,
    CodePayload,
    ImagesPayload,
    VideoPayload,
    TwitterPayload,
    InstagramPayload,
    PollingPayload,
    TablePayload,
    ChartPayload,
    ProgressTrackerPayload,
]

BlockPayload = Annotated[AnyPayload, Field(discriminator="type")]


@dataclass(frozen=True)
class ReferenceField:
    """
    One external-reference slot on a payload.

    `field` names the payload attribute. For list-valued slots, `item_attr` names the
    file id attribute on each entry and paths are `<path>.<index>`.
    """

    field: str
    path: str
    item_attr: str | None = None


@dataclass(frozen=True)
class Variant:
    payload_model: type[BaseModel]
    reference_fields: tuple[ReferenceField, ...] = ()


VARIANTS: Mapping[BlockType, Variant] = {
    BlockType.TEXT: Variant(TextPayload),
    BlockType.HEADING: Variant(HeadingPayload),
    BlockType.LIST: Variant(ListPayload),
    BlockType.QUOTE: Variant(QuotePayload),
    BlockType.CALLOUT: Variant(CalloutPayload),
    BlockType.CODE: Variant(CodePayload),
    BlockType.IMAGES: Variant(
        ImagesPayload,
        reference_fields=(ReferenceField("images", "images", item_attr="file_id"),),
    ),
    BlockType.VIDEO: Variant(
        VideoPayload,
        reference_fields=(
            ReferenceField("video_file_id", "video"),
            ReferenceField("poster_file_id", "poster"),
        ),
    ),
    BlockType.TWITTER: Variant(
        TwitterPayload,
        reference_fields=(
            ReferenceField("avatar_file_id", "avatar"),
            ReferenceField("image_file_id", "image"),
        ),
    ),
    BlockType.INSTAGRAM: Variant(
        InstagramPayload,
        reference_fields=(
            ReferenceField("files", "files", item_attr="file_id"),
            ReferenceField("avatar_file_id", "avatar"),
        ),
    ),
    BlockType.POLLING: Variant(PollingPayload),
    BlockType.TABLE: Variant(TablePayload),
    BlockType.CHART: Variant(ChartPayload),
    BlockType.PROGRESS_TRACKER: Variant(ProgressTrackerPayload),
}


def _check_variants() -> None:
    missing = [t.value for t in BlockType if t not in VARIANTS]
    if missing:
        raise RuntimeError(f"Block types without a variant: {', '.join(missing)}")

    union_models = set(get_args(AnyPayload))
    for block_type, variant in VARIANTS.items():
        model = variant.payload_model
        if model not in union_models:
            raise RuntimeError(f"{model.__name__} is not part of the payload union")
        declared = model.model_fields["type"].default
        if declared != block_type.value:
            raise RuntimeError(f"{model.__name__} declares type {declared!r}, expected {block_type.value!r}")
        for ref in variant.reference_fields:
            if ref.field not in model.model_fields:
                raise RuntimeError(f"{model.__name__} has no reference field {ref.field!r}")


_check_variants()


class Block(_Model):
    id: str = Field(min_length=1)
    post_id: str = Field(min_length=1)
    order: int = Field(ge=0, validation_alias=AliasChoices("order", "position"))
    updated_at: datetime | None = None
    payload: BlockPayload

    @model_validator(mode="before")
    @classmethod
    def _lift_type_into_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data

        out = dict(data)
        if "payload" not in out and "data" in out:
            out["payload"] = out.pop("data")

        outer = out.pop("type", None)
        payload = out.get("payload")
        if outer is None or isinstance(payload, BaseModel):
            if outer is not None and getattr(payload, "type", None) != str(getattr(outer, "value", outer)):
                raise ValueError("block type does not match payload type")
            return out

        outer_value = str(getattr(outer, "value", outer))
        if isinstance(payload, Mapping):
            inner = payload.get("type")
            if inner is not None and inner != outer_value:
                raise ValueError(f"block type {outer_value!r} does not match payload type {inner!r}")
            out["payload"] = {**payload, "type": outer_value}
        return out

    @property
    def type(self) -> BlockType:
        return BlockType(self.payload.type)

    @property
    def variant(self) -> Variant:
        return VARIANTS[self.type]


_BLOCK_LIST = TypeAdapter(list[Block])


def parse_blocks(raw: Sequence[Mapping[str, Any]] | Any) -> list[Block]:
    """Validate raw block dictionaries (snake_case or camelCase) into Blocks."""
    try:
        return _BLOCK_LIST.validate_python(raw)
    except ValidationError as e:
        lines = ["Invalid block data:"]
        for item in e.errors():
            loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
            lines.append(f"- {loc}: {item.get('msg', 'invalid value')}")
        raise BadInputError("\n".join(lines)) from e


def iter_references(block: Block) -> Iterator[tuple[str, str]]:
    """Yield (path, file_id) for every external reference declared by the block's variant."""
    payload = block.payload
    for ref in block.variant.reference_fields:
        value = getattr(payload, ref.field)
        if ref.item_attr is None:
            if value:
                yield ref.path, str(value)
            continue
        for index, item in enumerate(value or ()):
            file_id = getattr(item, ref.item_attr, None)
            if file_id:
                yield f"{ref.path}.{index}", str(file_id)


def plain_text(payload: AnyPayload) -> str | None:
    """Tag-free text a payload contributes to excerpts, or None for non-text variants."""
    match payload:
        case TextPayload():
            return strip_html(payload.text)
        case (
            HeadingPayload()
            | ListPayload()
            | QuotePayload()
            | CalloutPayload()
            | CodePayload()
            | ImagesPayload()
            | VideoPayload()
            | TwitterPayload()
            | InstagramPayload()
            | PollingPayload()
            | TablePayload()
            | ChartPayload()
            | ProgressTrackerPayload()
        ):
            return None
        case _:
            assert_never(payload)


def validate_block_order(blocks: Sequence[Block]) -> None:
    """
    Check that `order` is dense and unique per post.

    A post's orders must be exactly start..start+n-1 where start is 0 or 1.
    """
    by_post: dict[str, list[int]] = {}
    for block in blocks:
        by_post.setdefault(block.post_id, []).append(block.order)

    for post_id, orders in by_post.items():
        ordered = sorted(orders)
        if len(set(ordered)) != len(ordered):
            raise BadInputError(f"Duplicate block order in post {post_id}: {ordered}")
        start = ordered[0]
        if start not in (0, 1) or ordered != list(range(start, start + len(ordered))):
            raise BadInputError(f"Block order is not contiguous in post {post_id}: {ordered}")
