"""Cryptographic toolbox functions of the LE Secure Connections pairing model."""

from __future__ import annotations

from typing import NamedTuple

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16
_RB = bytes(15) + b"\x87"
_MASK_128 = (1 << 128) - 1

F5_SALT = bytes.fromhex("6C888391AAF5A53860370BDB5A6083BE")
F5_KEY_ID = b"btle"
F5_LENGTH = b"\x01\x00"


class F5Keys(NamedTuple):
    """Keys derived by the f5 function."""

    mac_key: bytes
    ltk: bytes


def _as_bytes(name: str, value, size: int) -> bytes:
    data = bytes(value)
    if len(data) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(data)}")
    return data


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def _shift_left(block: bytes) -> bytes:
    value = (int.from_bytes(block, "big") << 1) & _MASK_128
    return value.to_bytes(BLOCK_SIZE, "big")


def _double(block: bytes) -> bytes:
    shifted = _shift_left(block)
    return _xor(shifted, _RB) if block[0] & 0x80 else shifted


def format_bytes(data) -> str:
    """Render bytes as comma separated upper-case hex values, e.g. ``0xA, 0xFF``."""
    return ", ".join(f"0x{b:X}" for b in bytes(data))


def aes_128(key, block) -> bytes:
    """Encrypt a single 16-byte block with AES-128."""
    key = _as_bytes("key", key, BLOCK_SIZE)
    block = _as_bytes("block", block, BLOCK_SIZE)
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(block) + encryptor.finalize()


def generate_subkeys(key) -> tuple[bytes, bytes]:
    """Derive the CMAC subkeys K1 and K2 from ``key``."""
    l_block = aes_128(key, bytes(BLOCK_SIZE))
    k1 = _double(l_block)
    k2 = _double(k1)
    return k1, k2


def aes_cmac(key, message) -> bytes:
    """Compute the 16-byte AES-CMAC of ``message`` under ``key``."""
    key = _as_bytes("key", key, BLOCK_SIZE)
    message = bytes(message)
    k1, k2 = generate_subkeys(key)

    blocks = [message[i:i + BLOCK_SIZE] for i in range(0, len(message), BLOCK_SIZE)]
    *head, last = blocks or [b""]
    if len(last) == BLOCK_SIZE:
        last = _xor(last, k1)
    else:
        padded = last + b"\x80" + bytes(BLOCK_SIZE - len(last) - 1)
        last = _xor(padded, k2)

    x = bytes(BLOCK_SIZE)
    for block in head:
        x = aes_128(key, _xor(x, block))
    return aes_128(key, _xor(x, last))


def f5(dhkey, n_master, n_slave, addr_master, addr_slave) -> F5Keys:
    """Derive the MacKey and LTK from the DH key, nonces and 7-byte typed addresses."""
    dhkey = _as_bytes("dhkey", dhkey, 32)
    n_master = _as_bytes("n_master", n_master, 16)
    n_slave = _as_bytes("n_slave", n_slave, 16)
    addr_master = _as_bytes("addr_master", addr_master, 7)
    addr_slave = _as_bytes("addr_slave", addr_slave, 7)

    t_key = aes_cmac(F5_SALT, dhkey)
    body = F5_KEY_ID + n_master + n_slave + addr_master + addr_slave + F5_LENGTH
    mac_key = aes_cmac(t_key, b"\x00" + body)
    ltk = aes_cmac(t_key, b"\x01" + body)
    return F5Keys(mac_key, ltk)


def f6(w, n1, n2, r, io_cap, a1, a2) -> bytes:
    """Compute a DHKey check value."""
    w = _as_bytes("w", w, 16)
    message = (
        _as_bytes("n1", n1, 16)
        + _as_bytes("n2", n2, 16)
        + _as_bytes("r", r, 16)
        + _as_bytes("io_cap", io_cap, 3)
        + _as_bytes("a1", a1, 7)
        + _as_bytes("a2", a2, 7)
    )
    return aes_cmac(w, message)


def g2(u, v, x, y) -> bytes:
    """Compute the 4-byte numeric comparison value source."""
    message = _as_bytes("u", u, 32) + _as_bytes("v", v, 32) + _as_bytes("y", y, 16)
    return aes_cmac(_as_bytes("x", x, 16), message)[12:16]


def ah(k, r) -> bytes:
    """Random address hash: the low 24 bits of AES-128(k, padding || r)."""
    r = _as_bytes("r", r, 3)
    return aes_128(k, bytes(13) + r)[13:16]