"""Bluetooth Low Energy pairing flags and crypto, L2CAP signalling and HCI transports."""

__version__ = "0.1.0"
__all__ = ["flags", "crypto", "l2cap", "transport"]