"""Bit-field views of the octets exchanged during LE Secure Connections pairing."""

from __future__ import annotations

from enum import IntEnum


class _BitFlag:
    """Descriptor exposing one bit of an owner's ``octet`` as a boolean."""

    def __init__(self, mask: int) -> None:
        self.mask = mask
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: "_OctetField | None", objtype: type | None = None):
        if obj is None:
            return self
        return bool(obj.octet & self.mask)

    def __set__(self, obj: "_OctetField", state: bool) -> None:
        if state:
            obj.octet = obj.octet | self.mask
        else:
            obj.octet = obj.octet & ~self.mask & 0xFF


class _OctetField:
    """A single octet whose bits carry independent meanings."""

    def __init__(self, octet: int = 0) -> None:
        self.octet = octet

    @property
    def octet(self) -> int:
        return self._octet

    @octet.setter
    def octet(self, value: int) -> None:
        value = int(value)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"octet out of range: {value}")
        self._octet = value

    def __int__(self) -> int:
        return self._octet

    def __index__(self) -> int:
        return self._octet

    def __eq__(self, other: object) -> bool:
        if type(other) is type(self):
            return self._octet == other._octet  # type: ignore[attr-defined]
        return NotImplemented

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._octet))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(0b{self._octet:08b})"


class AuthReq(_OctetField):
    """The AuthReq field of a pairing request or response."""

    # Type of bonding requested by the initiating device.
    bonding = _BitFlag(0b00000001)
    # Set when the device requests MITM protection.
    mitm = _BitFlag(0b00000100)
    # Set when LE Secure Connections pairing is supported.
    sc = _BitFlag(0b00001000)
    # Used only by the Passkey Entry protocol.
    keypress = _BitFlag(0b00010000)
    # Indicates support for the h7 function.
    ct2 = _BitFlag(0b00100000)


class KeyDistribution(_OctetField):
    """The initiator/responder key distribution field of a pairing exchange."""

    # Ignored when SMP runs over the LE transport.
    enc_key = _BitFlag(0b00000001)
    # Distribute the IRK followed by the identity address.
    id_key = _BitFlag(0b00000010)
    # Distribute the CSRK via signing information.
    sign_key = _BitFlag(0b00000100)
    # Derive a BR/EDR link key from the LTK.
    link_key = _BitFlag(0b00001000)


class IOCap(IntEnum):
    """Input/output capabilities advertised during pairing."""

    DISPLAY_ONLY = 0
    DISPLAY_YES_NO = 1
    KEYBOARD_ONLY = 2
    NO_INPUT_NO_OUTPUT = 3
    KEYBOARD_DISPLAY = 4