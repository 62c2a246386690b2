import unittest

from AEP_Server.errors import MalformedRecordError, MissingChunkError
from AEP_Server.records import IDTA_DTYPE
from AEP_Server.rifx import parse_rifx

from aep_builders import chunk, idta, list_chunk, rifx, utf8


class ParseRifxTests(unittest.TestCase):
    def test_root_identifier_is_form_type(self):
        root = parse_rifx(rifx(chunk(b"head", b"\x01\x02")))
        self.assertEqual(root.identifier, "Egg!")
        self.assertEqual([block.type for block in root.blocks], ["head"])

    def test_odd_sized_chunks_are_padded(self):
        root = parse_rifx(rifx(chunk(b"odd1", b"abc"), chunk(b"nxt2", b"zz")))
        self.assertEqual(root.find_by_type("odd1").raw, b"abc")
        self.assertEqual(root.find_by_type("odd1").size, 3)
        self.assertEqual(root.find_by_type("nxt2").raw, b"zz")

    def test_nested_lists_and_lookup_helpers(self):
        data = rifx(
            list_chunk(b"Item", utf8("A")),
            list_chunk(b"Sfdr", list_chunk(b"Item", utf8("B"))),
            list_chunk(b"Item", utf8("C")),
            list_chunk(b"Sfdr", list_chunk(b"Item", utf8("D"))),
        )
        root = parse_rifx(data)

        items = root.sublist_filter("Item")
        self.assertEqual([sub.find_by_type("Utf8").to_text() for sub in items], ["A", "C"])
        self.assertEqual(root.sublist_find("Item").find_by_type("Utf8").to_text(), "A")

        merged = root.sublist_merge("Sfdr")
        self.assertEqual(merged.identifier, "Sfdr")
        names = [sub.find_by_type("Utf8").to_text() for sub in merged.sublist_filter("Item")]
        self.assertEqual(names, ["B", "D"])

    def test_merge_of_absent_group_is_empty(self):
        root = parse_rifx(rifx(chunk(b"head", b"")))
        self.assertEqual(root.sublist_merge("Sfdr").blocks, [])

    def test_btdk_list_payload_stays_raw(self):
        root = parse_rifx(rifx(list_chunk(b"btdk", b"LIST\x00\x00\xff\xff")))
        block = root.blocks[0]
        self.assertFalse(block.is_list)
        self.assertEqual(block.raw, b"LIST\x00\x00\xff\xff")

    def test_missing_chunk_names_tag_and_context(self):
        root = parse_rifx(rifx(list_chunk(b"Item", utf8("A"))))
        item_list = root.sublist_find("Item")
        with self.assertRaises(MissingChunkError) as ctx:
            item_list.find_by_type("idta", context="item 'A'")
        self.assertEqual(ctx.exception.tag, "idta")
        self.assertEqual(ctx.exception.code, "missing_chunk")
        self.assertIn("item 'A'", str(ctx.exception))

        with self.assertRaises(MissingChunkError) as ctx:
            root.sublist_find("Fold")
        self.assertIn("list 'Egg!'", ctx.exception.message)

    def test_lists_are_not_data_blocks(self):
        root = parse_rifx(rifx(list_chunk(b"Item", utf8("A"))))
        with self.assertRaises(MissingChunkError):
            root.find_by_type("LIST")
        with self.assertRaises(MalformedRecordError):
            root.blocks[0].raw

    def test_truncated_chunk_is_malformed(self):
        data = rifx(chunk(b"cdta", b"\x00" * 8))
        with self.assertRaises(MalformedRecordError) as ctx:
            parse_rifx(data[:-4])
        self.assertEqual(ctx.exception.code, "truncated_chunk")

    def test_rejects_non_rifx_input(self):
        with self.assertRaises(MalformedRecordError) as ctx:
            parse_rifx(b"RIFF\x00\x00\x00\x04WAVE")
        self.assertEqual(ctx.exception.code, "bad_container_magic")

    def test_to_record_decodes_big_endian_layout(self):
        root = parse_rifx(rifx(idta(0x04, 0x01020304)))
        record = root.find_by_type("idta").to_record(IDTA_DTYPE)
        self.assertEqual(int(record["type"]), 4)
        self.assertEqual(int(record["id"]), 0x01020304)

    def test_to_record_rejects_short_blocks(self):
        root = parse_rifx(rifx(chunk(b"idta", b"\x00\x01")))
        with self.assertRaises(MalformedRecordError) as ctx:
            root.find_by_type("idta").to_record(IDTA_DTYPE)
        self.assertEqual(ctx.exception.code, "record_too_short")


if __name__ == "__main__":
    unittest.main()
