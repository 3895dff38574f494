# blepairing

The host side of Bluetooth Low Energy pairing and link management: the
Security Manager cryptographic functions, L2CAP signalling and Security
Manager PDU handling, and byte-stream transports to a controller.

## Modules

- **`blepairing.flags`**: `AuthReq` and `KeyDistribution`, bit-field views
  of a single pairing octet. Each bit is a boolean attribute
  (`bonding`, `mitm`, `sc`, `keypress` and `ct2` for `AuthReq`;
  `enc_key`, `id_key`, `sign_key` and `link_key` for `KeyDistribution`). The
  whole value is `octet`, which must be 0 to 255. `IOCap` enumerates the
  input/output capabilities.
- **`blepairing.crypto`**: the Bluetooth cryptographic toolbox, built on
  AES-128 from the `cryptography` library. It provides these functions:
  - `aes_128(key, block)` and `generate_subkeys(key)`.
  - `aes_cmac(key, message)`.
  - `f5(...)`, which returns an `F5Keys(mac_key, ltk)` named tuple.
  - `f6(...)`, `g2(...)` (4 bytes) and `ah(k, r)` (3 bytes).
  - `format_bytes(data)`, which renders bytes as `0xA, 0xFF`.

  Inputs of the wrong length raise `ValueError`.
- **`blepairing.l2cap`**: `L2CAPSignaling` handles the signalling channel
  (CID 5) and the Security Manager channel (CID 6) of LE connections.
  `PeerEncryption` is the flag set that tracks how far pairing has gone with
  each peer.
- **`blepairing.transport`**: the abstract `HCITransport` interface and
  three implementations of it:
  - `UartTransport` drives any serial-port object with `baudrate`,
    `is_open`, `in_waiting`, `open`, `close`, `read`, `write` and `flush`.
    A pyserial `Serial` has all of these. The default baud rate is 912600.
  - `BufferedTransport` works through an in-process driver object that has
    `initialize`, `terminate` and `write(packet_type, payload)`. The driver
    pushes received bytes in with `handle_rx_data`, which keeps them in a
    bounded buffer (256 bytes by default). A chunk that does not fit is
    dropped whole, and the call returns `False`.
  - `VirtualTransport` talks to a controller in the same process through
    two blocking stream buffers (258 bytes by default). The controller side
    calls `deliver` to hand bytes to the host and `take_outgoing` to collect
    up to 256 bytes the host wrote. `peek` always returns `None` here.

  Every transport is a context manager. Entering it calls `begin`, and a
  failed start raises `ConnectionError`. Leaving it calls `end`. `wait(timeout)`
  takes milliseconds. `read` and `peek` return `None` when there is no byte.

## L2CAPSignaling

`L2CAPSignaling` sends nothing itself. Everything goes out through callables
you supply:

- `send_acl(handle, cid, payload)` is required.
- `conn_update(handle, min_interval, max_interval, latency, timeout)` is
  called after an accepted connection-parameter update request.
- `send_command(opcode, params)` is called with `READ_LOCAL_P256_OPCODE`
  when the peer's public key arrives.
- `display_code(code)` gets the six-digit numeric comparison value.
- `binary_confirm_pairing()` returns whether the user confirmed. A false
  answer fails pairing with reason 0x0C.
- `save_new_address(address_type, address, peer_irk, local_irk)` and
  `store_ltk(address, ltk)` are called when the peer sends its identity
  address.

Pairing is controlled with `set_pairing_enabled`: 0 rejects pairing
requests, 1 accepts them, and 2 accepts one and then disables pairing.
Connection interval and supervision-timeout preferences are set with
`set_connection_interval` and `set_supervision_timeout`. When this side is
the peripheral (role 1), `add_connection` requests them from the peer.
Incoming parameter update requests are rejected when they do not meet them.

When `handle_security_data` receives the peer's DHKey check, it acts on the
`DH_KEY_CALULATED` flag:

- If the flag is set, it calls `sm_calculate_ltk_and_confirm`. That method
  derives the LTK with `f5`, checks the peer's value with `f6`, and either
  replies with its own check or fails pairing with reason 0x0B.
- Otherwise it keeps the value in `remote_dhkey_check` for later.

## What this package does not do

- It does not compute the P-256 Diffie-Hellman key or generate nonces. The
  caller fills in `dhkey`, `na`/`nb` and `local_public_key` on the
  `L2CAPSignaling` object.
- It does not implement the HCI command/event layer, ATT/GATT, or a
  controller.
- It does not open serial ports itself. You pass `UartTransport` an already
  constructed port object.
- It provides no command-line program.

## Installation

```
pip install blepairing
```

To install the test dependencies as well:

```
pip install "blepairing[test]"
```

## Example

```python
from blepairing.crypto import aes_cmac, format_bytes
from blepairing.flags import AuthReq, KeyDistribution

mac = aes_cmac(bytes(16), b"hello")
print(format_bytes(mac))

req = AuthReq(0b00101101)
print(req.bonding, req.mitm, req.sc, req.ct2)  # True True True True

kd = KeyDistribution()
kd.id_key = True
print(kd.octet)  # 2
```

```python
from blepairing.l2cap import L2CAPSignaling

sent = []
sm = L2CAPSignaling(send_acl=lambda handle, cid, payload: sent.append((handle, cid, payload)))
sm.add_connection(0x40, 1, 0, bytes(6), 24, 0, 400, 0)
sm.handle_security_data(0x40, bytes([0x01, 0x03, 0x00, 0x2D, 0x10, 0x00, 0x02]))
print(sent[-1])  # the pairing response on CID 6
```

## Running the tests

```
pytest
```