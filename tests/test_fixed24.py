import unittest

from AEP_Server.errors import MalformedRecordError
from AEP_Server.fixed24 import Fixed24, UINT24_MAX


class Fixed24Tests(unittest.TestCase):
    def test_round_trips_boundary_values(self):
        for value in (0, 1, 0xFF, 0x100, 0xFFFF, 0x10000, 0x13C680, 0xABCDEF, UINT24_MAX):
            with self.subTest(value=value):
                self.assertEqual(Fixed24(value).to_int(), value)

    def test_stores_big_endian_bytes(self):
        encoded = Fixed24().set(0x0013C680)
        self.assertEqual(encoded.raw, b"\x13\xC6\x80")
        self.assertEqual(encoded[0], 0x13)
        self.assertEqual(Fixed24.from_bytes(b"\x00\x01\x90").to_int(), 400)

    def test_rejects_values_past_24_bits(self):
        with self.assertRaises(MalformedRecordError) as ctx:
            Fixed24(UINT24_MAX + 1)
        self.assertEqual(ctx.exception.code, "uint24_out_of_range")

        value = Fixed24(5)
        with self.assertRaises(MalformedRecordError):
            value.set(-1)
        # A failed set leaves the previous value intact.
        self.assertEqual(value.to_int(), 5)

    def test_from_bytes_requires_three_bytes(self):
        with self.assertRaises(MalformedRecordError) as ctx:
            Fixed24.from_bytes(b"\x00\x01")
        self.assertEqual(ctx.exception.code, "uint24_bad_length")

    def test_string_form_is_decimal(self):
        self.assertEqual(str(Fixed24(2400)), "2400")
        self.assertEqual(int(Fixed24(7)), 7)
        self.assertEqual(Fixed24(9), 9)


if __name__ == "__main__":
    unittest.main()
