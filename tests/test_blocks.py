from __future__ import annotations

import unittest

from pydantic import ValidationError

from blockpub.blocks import (
    VARIANTS,
    Block,
    BlockType,
    ImagesPayload,
    TextPayload,
    iter_references,
    parse_blocks,
    plain_text,
    validate_block_order,
)
from blockpub.errors import BadInputError


def _block(type_: str, data: dict, *, order: int = 0, block_id: str = "b1", post_id: str = "p1") -> dict:
    return {"id": block_id, "postId": post_id, "order": order, "type": type_, "data": data}


class TestBlockParsing(unittest.TestCase):
    def test_parses_camel_case_with_outer_type(self) -> None:
        blocks = parse_blocks([_block("TEXT", {"text": "<p>Hello</p>", "hasDropCap": True})])
        self.assertEqual(len(blocks), 1)

        b = blocks[0]
        self.assertEqual(b.type, BlockType.TEXT)
        self.assertIsInstance(b.payload, TextPayload)
        self.assertTrue(b.payload.has_drop_cap)
        self.assertEqual(b.post_id, "p1")

    def test_parses_snake_case_payload(self) -> None:
        blocks = parse_blocks(
            [
                {
                    "id": "b1",
                    "post_id": "p1",
                    "position": 2,
                    "payload": {"type": "VIDEO", "video_file_id": "f-vid"},
                }
            ]
        )
        self.assertEqual(blocks[0].order, 2)
        self.assertEqual(blocks[0].type, BlockType.VIDEO)

    def test_mismatched_outer_and_payload_type_is_bad_input(self) -> None:
        with self.assertRaises(BadInputError):
            parse_blocks([_block("TEXT", {"type": "HEADING", "heading": "x"})])

    def test_unknown_type_is_bad_input(self) -> None:
        with self.assertRaises(BadInputError) as ctx:
            parse_blocks([_block("SLIDESHOW", {})])
        self.assertIn("Invalid block data", str(ctx.exception))

    def test_extra_payload_field_is_rejected(self) -> None:
        with self.assertRaises(BadInputError):
            parse_blocks([_block("TEXT", {"text": "x", "fontSize": 12})])

    def test_images_require_file_id(self) -> None:
        with self.assertRaises(BadInputError):
            parse_blocks([_block("IMAGES", {"images": [{"alt": "no file"}]})])

    def test_blocks_are_frozen(self) -> None:
        b = parse_blocks([_block("TEXT", {"text": "x"})])[0]
        with self.assertRaises(ValidationError):
            b.order = 5  # type: ignore[misc]

    def test_direct_validation_accepts_payload_model(self) -> None:
        b = Block(id="b1", post_id="p1", order=0, payload=TextPayload(text="hi"))
        self.assertEqual(b.type, BlockType.TEXT)


class TestVariantRegistry(unittest.TestCase):
    def test_every_block_type_has_a_variant(self) -> None:
        self.assertEqual(set(VARIANTS), set(BlockType))

    def test_only_text_contributes_text(self) -> None:
        blocks = parse_blocks(
            [
                _block("TEXT", {"text": "t"}, order=0, block_id="t"),
                _block("QUOTE", {"quote": "q"}, order=1, block_id="q"),
                _block("CODE", {"codeText": "c"}, order=2, block_id="c"),
            ]
        )
        self.assertEqual([plain_text(b.payload) for b in blocks], ["t", None, None])

    def test_plain_text_strips_markup(self) -> None:
        self.assertEqual(plain_text(TextPayload(text="<b>Bold</b>&nbsp;move ")), "Bold move")
        self.assertIsNone(plain_text(ImagesPayload()))


class TestReferences(unittest.TestCase):
    def test_image_paths_follow_entry_index(self) -> None:
        b = parse_blocks(
            [
                _block(
                    "IMAGES",
                    {"images": [{"fileId": "f1", "order": 1}, {"fileId": "f2", "order": 0}]},
                )
            ]
        )[0]
        self.assertEqual(list(iter_references(b)), [("images.0", "f1"), ("images.1", "f2")])

    def test_video_optional_poster(self) -> None:
        with_poster = parse_blocks([_block("VIDEO", {"videoFileId": "v", "posterFileId": "p"})])[0]
        without = parse_blocks([_block("VIDEO", {"videoFileId": "v"})])[0]

        self.assertEqual(list(iter_references(with_poster)), [("video", "v"), ("poster", "p")])
        self.assertEqual(list(iter_references(without)), [("video", "v")])

    def test_social_embeds(self) -> None:
        tweet = parse_blocks([_block("TWITTER", {"content": "hi", "avatarId": "a1", "imageFileId": "i1"})])[0]
        insta = parse_blocks(
            [_block("INSTAGRAM", {"avatar": "a2", "files": [{"fileId": "x"}, {"fileId": "y"}]})]
        )[0]

        self.assertEqual(list(iter_references(tweet)), [("avatar", "a1"), ("image", "i1")])
        self.assertEqual(
            list(iter_references(insta)),
            [("files.0", "x"), ("files.1", "y"), ("avatar", "a2")],
        )

    def test_blocks_without_references(self) -> None:
        b = parse_blocks([_block("QUOTE", {"quote": "q"})])[0]
        self.assertEqual(list(iter_references(b)), [])


class TestBlockOrder(unittest.TestCase):
    def _blocks(self, orders: list[int]) -> list[Block]:
        return parse_blocks(
            [_block("TEXT", {"text": str(o)}, order=o, block_id=f"b{i}") for i, o in enumerate(orders)]
        )

    def test_dense_orders_pass(self) -> None:
        validate_block_order(self._blocks([2, 0, 1]))
        validate_block_order(self._blocks([1, 2, 3]))

    def test_gap_is_rejected(self) -> None:
        with self.assertRaises(BadInputError):
            validate_block_order(self._blocks([0, 2]))

    def test_duplicate_is_rejected(self) -> None:
        with self.assertRaises(BadInputError):
            validate_block_order(self._blocks([0, 1, 1]))

    def test_orders_checked_per_post(self) -> None:
        blocks = parse_blocks(
            [
                _block("TEXT", {"text": "a"}, order=0, block_id="a", post_id="p1"),
                _block("TEXT", {"text": "b"}, order=0, block_id="b", post_id="p2"),
            ]
        )
        validate_block_order(blocks)


if __name__ == "__main__":
    unittest.main()
