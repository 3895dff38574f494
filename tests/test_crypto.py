import pytest
from cryptography.hazmat.primitives import cmac
from cryptography.hazmat.primitives.ciphers import algorithms

from blepairing.crypto import (
    aes_128,
    aes_cmac,
    ah,
    f5,
    f6,
    format_bytes,
    g2,
    generate_subkeys,
)

RFC_KEY = bytes([0x2b, 0x7e, 0x15, 0x16, 0x28, 0xae, 0xd2, 0xa6,
                 0xab, 0xf7, 0x15, 0x88, 0x09, 0xcf, 0x4f, 0x3c])

RFC_MESSAGE = bytes([
    0x6b, 0xc1, 0xbe, 0xe2, 0x2e, 0x40, 0x9f, 0x96, 0xe9, 0x3d, 0x7e, 0x11, 0x73, 0x93, 0x17, 0x2a,
    0xae, 0x2d, 0x8a, 0x57, 0x1e, 0x03, 0xac, 0x9c, 0x9e, 0xb7, 0x6f, 0xac, 0x45, 0xaf, 0x8e, 0x51,
    0x30, 0xc8, 0x1c, 0x46, 0xa3, 0x5c, 0xe4, 0x11,
])


def _library_cmac(key, message):
    c = cmac.CMAC(algorithms.AES(key))
    c.update(message)
    return c.finalize()


def test_aes_128_of_zero_block():
    expected = bytes([0x7d, 0xf7, 0x6b, 0x0c, 0x1a, 0xb8, 0x99, 0xb3,
                      0x3e, 0x42, 0xf0, 0x47, 0xb9, 0x1b, 0x54, 0x6f])
    assert aes_128(RFC_KEY, bytes(16)) == expected


def test_generate_subkeys():
    k1, k2 = generate_subkeys(RFC_KEY)
    assert k1 == bytes([0xfb, 0xee, 0xd6, 0x18, 0x35, 0x71, 0x33, 0x66,
                        0x7c, 0x85, 0xe0, 0x8f, 0x72, 0x36, 0xa8, 0xde])
    assert k2 == bytes([0xf7, 0xdd, 0xac, 0x30, 0x6a, 0xe2, 0x66, 0xcc,
                        0xf9, 0x0b, 0xc1, 0x1e, 0xe4, 0x6d, 0x51, 0x3b])


def test_aes_cmac_40_byte_message():
    expected = bytes([0xdf, 0xa6, 0x67, 0x47, 0xde, 0x9a, 0xe6, 0x30,
                      0x30, 0xca, 0x32, 0x61, 0x14, 0x97, 0xc8, 0x27])
    assert aes_cmac(RFC_KEY, RFC_MESSAGE) == expected


@pytest.mark.parametrize("length", [0, 1, 15, 16, 17, 32, 40, 53, 64, 80])
def test_aes_cmac_agrees_with_library(length):
    message = bytes(range(length))
    assert aes_cmac(RFC_KEY, message) == _library_cmac(RFC_KEY, message)


def test_ah_vector():
    irk = bytes([0xec, 0x02, 0x34, 0xa3, 0x57, 0xc8, 0xad, 0x05,
                 0x34, 0x10, 0x10, 0xa6, 0x0a, 0x39, 0x7d, 0x9b])
    r = bytes([0x70, 0x81, 0x94])
    expected_aes = bytes([0x15, 0x9d, 0x5f, 0xb7, 0x2e, 0xbe, 0x23, 0x11,
                          0xa4, 0x8c, 0x1b, 0xdc, 0xc4, 0x0d, 0xfb, 0xaa])
    assert aes_128(irk, bytes(13) + r) == expected_aes
    assert ah(irk, r) == bytes([0x0d, 0xfb, 0xaa])


def test_g2_vector():
    u = bytes([0x20, 0xb0, 0x03, 0xd2, 0xf2, 0x97, 0xbe, 0x2c, 0x5e, 0x2c, 0x83, 0xa7, 0xe9, 0xf9, 0xa5, 0xb9,
               0xef, 0xf4, 0x91, 0x11, 0xac, 0xf4, 0xfd, 0xdb, 0xcc, 0x03, 0x01, 0x48, 0x0e, 0x35, 0x9d, 0xe6])
    v = bytes([0x55, 0x18, 0x8b, 0x3d, 0x32, 0xf6, 0xbb, 0x9a, 0x90, 0x0a, 0xfc, 0xfb, 0xee, 0xd4, 0xe7, 0x2a,
               0x59, 0xcb, 0x9a, 0xc2, 0xf1, 0x9d, 0x7c, 0xfb, 0x6b, 0x4f, 0xdd, 0x49, 0xf4, 0x7f, 0xc5, 0xfd])
    x = bytes([0xd5, 0xcb, 0x84, 0x54, 0xd1, 0x77, 0x73, 0x3e,
               0xff, 0xff, 0xb2, 0xec, 0x71, 0x2b, 0xae, 0xab])
    y = bytes([0xa6, 0xe8, 0xe7, 0xcc, 0x25, 0xa7, 0x5f, 0x6e,
               0x21, 0x65, 0x83, 0xf7, 0xff, 0x3d, 0xc4, 0xcf])
    full_mac = bytes([0x15, 0x36, 0xd1, 0x8d, 0xe3, 0xd2, 0x0d, 0xf9,
                      0x9b, 0x70, 0x44, 0xc1, 0x2f, 0x9e, 0xd5, 0xba])
    assert aes_cmac(x, u + v + y) == full_mac
    assert g2(u, v, x, y) == full_mac[12:]


def test_f5_outputs_are_distinct_and_deterministic():
    dhkey = bytes(range(32))
    na, nb = bytes([1] * 16), bytes([2] * 16)
    a1, a2 = bytes(7), bytes([0] + [9] * 6)
    keys = f5(dhkey, na, nb, a1, a2)
    assert len(keys.mac_key) == 16
    assert len(keys.ltk) == 16
    assert keys.mac_key != keys.ltk
    assert f5(dhkey, na, nb, a1, a2) == keys


def test_f5_depends_on_address_order():
    dhkey = bytes(range(32))
    na, nb = bytes([1] * 16), bytes([2] * 16)
    a1, a2 = bytes(7), bytes([0] + [9] * 6)
    assert f5(dhkey, na, nb, a1, a2).ltk != f5(dhkey, na, nb, a2, a1).ltk


def test_f6_swapping_nonces_changes_check_value():
    w = bytes([3] * 16)
    na, nb, r = bytes([1] * 16), bytes([2] * 16), bytes(16)
    io_cap = bytes([0x2d, 0x00, 0x03])
    a1, a2 = bytes(7), bytes([0] + [9] * 6)
    ea = f6(w, na, nb, r, io_cap, a1, a2)
    eb = f6(w, nb, na, r, io_cap, a2, a1)
    assert len(ea) == 16
    assert ea != eb
    assert f6(w, na, nb, r, io_cap, a1, a2) == ea


def test_format_bytes():
    assert format_bytes(bytes([0x0a, 0xff, 0x00])) == "0xA, 0xFF, 0x0"
    assert format_bytes(b"") == ""


@pytest.mark.parametrize("call", [
    lambda: aes_128(bytes(15), bytes(16)),
    lambda: aes_128(bytes(16), bytes(17)),
    lambda: aes_cmac(bytes(8), b"abc"),
    lambda: ah(bytes(16), bytes(4)),
    lambda: g2(bytes(31), bytes(32), bytes(16), bytes(16)),
    lambda: f5(bytes(32), bytes(16), bytes(16), bytes(6), bytes(7)),
    lambda: f6(bytes(16), bytes(16), bytes(16), bytes(16), bytes(2), bytes(7), bytes(7)),
])
def test_wrong_lengths_raise(call):
    with pytest.raises(ValueError):
        call()