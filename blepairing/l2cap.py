"""L2CAP signalling and Security Manager handling for LE connections."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Callable, Optional

from .crypto import f5, f6, g2
from .flags import AuthReq, IOCap, KeyDistribution

SIGNALING_CID = 0x0005
SECURITY_CID = 0x0006

CONNECTION_PARAMETER_UPDATE_REQUEST = 0x12
CONNECTION_PARAMETER_UPDATE_RESPONSE = 0x13

CONNECTION_PAIRING_REQUEST = 0x01
CONNECTION_PAIRING_RESPONSE = 0x02
CONNECTION_PAIRING_CONFIRM = 0x03
CONNECTION_PAIRING_RANDOM = 0x04
CONNECTION_PAIRING_FAILED = 0x05
CONNECTION_ENCRYPTION_INFORMATION = 0x06
CONNECTION_MASTER_IDENTIFICATION = 0x07
CONNECTION_IDENTITY_INFORMATION = 0x08
CONNECTION_IDENTITY_ADDRESS = 0x09
CONNECTION_SIGNING_INFORMATION = 0x0A
CONNECTION_SECURITY_REQUEST = 0x0B
CONNECTION_PAIRING_PUBLIC_KEY = 0x0C
CONNECTION_PAIRING_DHKEY_CHECK = 0x0D
CONNECTION_PAIRING_KEYPRESS = 0x0E

LOCAL_AUTHREQ = 0b00101101

OGF_LE_CTL = 0x08
LE_READ_LOCAL_P256 = 0x25
READ_LOCAL_P256_OPCODE = (OGF_LE_CTL << 10) | LE_READ_LOCAL_P256

FAILURE_DHKEY_CHECK = 0x0B
FAILURE_NUMERIC_COMPARISON = 0x0C
FAILURE_PAIRING_NOT_SUPPORTED = 0x05

_SIGNALING_HEADER = struct.Struct("<BBH")
_PARAMETER_UPDATE = struct.Struct("<HHHH")


class PeerEncryption(IntFlag):
    """Progress of the pairing procedure with one peer."""

    NO_ENCRYPTION = 0
    PAIRING_REQUEST = 1 << 0
    REQUESTED_ENCRYPTION = 1 << 1
    SENT_PUBKEY = 1 << 2
    DH_KEY_CALULATED = 1 << 3
    RECEIVED_DH_CHECK = 1 << 4
    SENT_DH_CHECK = 1 << 5
    ENCRYPTED_AES = 1 << 6


@dataclass
class _Peer:
    address_type: int
    address: bytes
    encryption: PeerEncryption = PeerEncryption.NO_ENCRYPTION
    io_cap: bytes = bytes(3)

    @property
    def address_with_type(self) -> bytes:
        return bytes([self.address_type]) + self.address[::-1]


SendAcl = Callable[[int, int, bytes], None]


@dataclass
class L2CAPSignaling:
    """Handles the signalling and security channels of LE connections.

    Outgoing ACL payloads go through ``send_acl(handle, cid, payload)``.
    """

    send_acl: SendAcl
    conn_update: Optional[Callable[[int, int, int, int, int], None]] = None
    send_command: Optional[Callable[[int, bytes], None]] = None
    display_code: Optional[Callable[[int], None]] = None
    binary_confirm_pairing: Optional[Callable[[], bool]] = None
    store_ltk: Optional[Callable[[bytes, bytes], None]] = None
    save_new_address: Optional[Callable[[int, bytes, bytes, bytes], None]] = None
    local_address: bytes = bytes(6)
    local_io_cap: IOCap = IOCap.NO_INPUT_NO_OUTPUT
    local_auth_req: AuthReq = field(default_factory=lambda: AuthReq(LOCAL_AUTHREQ))

    na: bytes = bytes(16)
    nb: bytes = bytes(16)
    dhkey: bytes = bytes(32)
    ltk: bytes = bytes(16)
    local_public_key: bytes = bytes(64)
    remote_public_key: bytes = bytes(64)
    remote_dhkey_check: bytes = bytes(16)
    peer_irk: bytes = bytes(16)
    local_irk: bytes = bytes(16)
    local_key_distribution: KeyDistribution = field(default_factory=KeyDistribution)
    remote_key_distribution: KeyDistribution = field(default_factory=KeyDistribution)
    peers: dict = field(default_factory=dict)

    _min_interval: int = 0
    _max_interval: int = 0
    _supervision_timeout: int = 0
    _pairing_enabled: int = 1

    # ------------------------------------------------------------------
    # peer state

    def _encryption(self, handle: int) -> PeerEncryption:
        peer = self.peers.get(handle)
        return peer.encryption if peer else PeerEncryption.NO_ENCRYPTION

    def _set_encryption(self, handle: int, value: int) -> bool:
        peer = self.peers.get(handle)
        if peer is None:
            return False
        peer.encryption = PeerEncryption(value)
        return True

    # ------------------------------------------------------------------
    # connection management

    def add_connection(self, handle, role, peer_bdaddr_type, peer_bdaddr, interval,
                       latency, supervision_timeout, master_clock_accuracy) -> None:
        """Register a new connection and ask for preferred parameters when acting as peripheral."""
        self.peers[handle] = _Peer(peer_bdaddr_type, bytes(peer_bdaddr))
        if role != 1:
            return

        update = False
        min_interval = max_interval = interval
        timeout = supervision_timeout

        if self._min_interval and self._max_interval:
            if not self._min_interval <= interval <= self._max_interval:
                min_interval, max_interval = self._min_interval, self._max_interval
                update = True

        if self._supervision_timeout and supervision_timeout != self._supervision_timeout:
            timeout = self._supervision_timeout
            update = True

        if update:
            request = struct.pack(
                "<BBHHHHH", CONNECTION_PARAMETER_UPDATE_REQUEST, 0x01, 8,
                min_interval, max_interval, 0x0000, timeout,
            )
            self.send_acl(handle, SIGNALING_CID, request)

    def remove_connection(self, handle, reason) -> None:
        """Forget the state kept for a closed connection."""
        self.peers.pop(handle, None)

    def set_connection_interval(self, min_interval, max_interval) -> None:
        self._min_interval = min_interval
        self._max_interval = max_interval

    def set_supervision_timeout(self, supervision_timeout) -> None:
        self._supervision_timeout = supervision_timeout

    def set_pairing_enabled(self, enabled) -> None:
        """0 disables pairing, 1 enables it, 2 allows a single pairing."""
        self._pairing_enabled = enabled

    def is_pairing_enabled(self) -> bool:
        return self._pairing_enabled > 0

    # ------------------------------------------------------------------
    # signalling channel

    def handle_data(self, connection_handle, data) -> None:
        """Process a packet received on the signalling channel."""
        data = bytes(data)
        if len(data) < _SIGNALING_HEADER.size:
            return
        code, identifier, length = _SIGNALING_HEADER.unpack_from(data)
        if len(data) != _SIGNALING_HEADER.size + length:
            return
        payload = data[_SIGNALING_HEADER.size:]

        if code == CONNECTION_PARAMETER_UPDATE_REQUEST:
            self._connection_parameter_update_request(connection_handle, identifier, payload)

    def _connection_parameter_update_request(self, handle: int, identifier: int,
                                             payload: bytes) -> None:
        if len(payload) < _PARAMETER_UPDATE.size:
            return
        min_interval, max_interval, latency, timeout = _PARAMETER_UPDATE.unpack_from(payload)

        rejected = False
        if self._min_interval and self._max_interval:
            if min_interval < self._min_interval or max_interval > self._max_interval:
                rejected = True
        if self._supervision_timeout and timeout != self._supervision_timeout:
            rejected = True

        response = struct.pack(
            "<BBHH", CONNECTION_PARAMETER_UPDATE_RESPONSE, identifier, 2, 1 if rejected else 0,
        )
        self.send_acl(handle, SIGNALING_CID, response)

        if not rejected and self.conn_update is not None:
            self.conn_update(handle, min_interval, max_interval, latency, timeout)

    # ------------------------------------------------------------------
    # security manager channel

    def handle_security_data(self, connection_handle, data) -> None:
        """Process a Security Manager packet."""
        data = bytes(data)
        if not data:
            return
        code, payload = data[0], data[1:]
        handler = {
            CONNECTION_PAIRING_REQUEST: self._pairing_request,
            CONNECTION_PAIRING_RANDOM: self._pairing_random,
            CONNECTION_PAIRING_FAILED: self._pairing_failed,
            CONNECTION_IDENTITY_INFORMATION: self._identity_information,
            CONNECTION_IDENTITY_ADDRESS: self._identity_address,
            CONNECTION_PAIRING_PUBLIC_KEY: self._public_key,
            CONNECTION_PAIRING_DHKEY_CHECK: self._dhkey_check,
        }.get(code)
        if handler is not None:
            handler(connection_handle, payload)

    def _fail(self, handle: int, reason: int) -> None:
        self.send_acl(handle, SECURITY_CID, bytes([CONNECTION_PAIRING_FAILED, reason]))
        self._set_encryption(handle, PeerEncryption.NO_ENCRYPTION)

    def _pairing_request(self, handle: int, payload: bytes) -> None:
        if not self.is_pairing_enabled():
            self._fail(handle, FAILURE_PAIRING_NOT_SUPPORTED)
            return
        if len(payload) < 6:
            return
        if self._pairing_enabled >= 2:
            self._pairing_enabled = 0

        io_capability, oob_flag, auth_req = payload[0], payload[1], payload[2]

        key_distribution = KeyDistribution()
        key_distribution.id_key = True
        self.remote_key_distribution = KeyDistribution(key_distribution.octet)
        self.local_key_distribution = KeyDistribution(key_distribution.octet)

        peer = self.peers.get(handle)
        if peer is not None:
            peer.io_cap = bytes([auth_req, oob_flag, io_capability])
        self._set_encryption(handle, self._encryption(handle) | PeerEncryption.PAIRING_REQUEST)

        response = bytes([
            CONNECTION_PAIRING_RESPONSE,
            int(self.local_io_cap),
            0,
            self.local_auth_req.octet,
            0x10,
            key_distribution.octet,
            key_distribution.octet,
        ])
        self.send_acl(handle, SECURITY_CID, response)

    def _pairing_random(self, handle: int, payload: bytes) -> None:
        if len(payload) < 16:
            return
        self.na = payload[:16][::-1]
        self.send_acl(handle, SECURITY_CID, bytes([CONNECTION_PAIRING_RANDOM]) + self.nb[::-1])

        u = self.remote_public_key[:32][::-1]
        v = self.local_public_key[:32][::-1]
        result = int.from_bytes(g2(u, v, self.na, self.nb), "big")

        if self.display_code is not None:
            self.display_code(result % 1000000)
        if self.binary_confirm_pairing is not None and not self.binary_confirm_pairing():
            self._fail(handle, FAILURE_NUMERIC_COMPARISON)

    def _pairing_failed(self, handle: int, payload: bytes) -> None:
        self._set_encryption(handle, PeerEncryption.NO_ENCRYPTION)

    def _identity_information(self, handle: int, payload: bytes) -> None:
        if len(payload) < 16:
            return
        self.peer_irk = payload[:16][::-1]

    def _identity_address(self, handle: int, payload: bytes) -> None:
        if len(payload) < 7:
            return
        address_type = payload[0]
        peer_address = payload[1:7][::-1]
        if self.save_new_address is not None:
            self.save_new_address(address_type, peer_address, self.peer_irk, self.local_irk)
        if self.store_ltk is not None:
            self.store_ltk(peer_address, self.ltk)

    def _public_key(self, handle: int, payload: bytes) -> None:
        if len(payload) < 64:
            return
        self._set_encryption(
            handle, self._encryption(handle) | PeerEncryption.REQUESTED_ENCRYPTION
        )
        self.remote_public_key = payload[:64]
        if self.send_command is not None:
            self.send_command(READ_LOCAL_P256_OPCODE, b"")

    def _dhkey_check(self, handle: int, payload: bytes) -> None:
        if len(payload) < 16:
            return
        remote_check = payload[:16][::-1]
        state = self._encryption(handle) | PeerEncryption.RECEIVED_DH_CHECK
        self._set_encryption(handle, state)
        if not state & PeerEncryption.DH_KEY_CALULATED:
            self.remote_dhkey_check = remote_check
        else:
            self.sm_calculate_ltk_and_confirm(handle, remote_check)

    def sm_calculate_ltk_and_confirm(self, handle, expected_ea) -> bool:
        """Derive the LTK, verify the peer's DHKey check and answer with ours.

        Returns True when the peer's check value matched.
        """
        peer = self.peers.get(handle)
        remote_address = peer.address_with_type if peer else bytes(7)
        master_io_cap = peer.io_cap if peer else bytes(3)
        local_address = b"\x00" + bytes(self.local_address)

        mac_key, self.ltk = f5(self.dhkey, self.na, self.nb, remote_address, local_address)

        slave_io_cap = bytes([self.local_auth_req.octet, 0x00, int(self.local_io_cap)])
        r = bytes(16)
        ea = f6(mac_key, self.na, self.nb, r, master_io_cap, remote_address, local_address)
        eb = f6(mac_key, self.nb, self.na, r, slave_io_cap, local_address, remote_address)

        if ea == bytes(expected_ea):
            self.send_acl(handle, SECURITY_CID, bytes([CONNECTION_PAIRING_DHKEY_CHECK]) + eb[::-1])
            self._set_encryption(handle, self._encryption(handle) | PeerEncryption.SENT_DH_CHECK)
            return True
        self._fail(handle, FAILURE_DHKEY_CHECK)
        return False