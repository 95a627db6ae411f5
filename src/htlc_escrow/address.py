"""Account address validation.

The engine never parses addresses itself; it is handed an `AddressValidator`
that returns the normalized account id or raises `AddressError`.

`Bech32AddressValidator` accepts Cosmos-style BIP-0173 addresses
(`<hrp>1<data><checksum>`, lower case, 20 or 32 byte payload).
`PermissiveAddressValidator` accepts any non-blank printable id and is meant
for hosts whose account ids are opaque strings.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol, Sequence, Tuple

from .config import ADDRESS_PAYLOAD_SIZES, DEFAULT_ADDRESS_HRP, MAX_ADDRESS_LENGTH

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}

_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


class AddressError(ValueError):
    """Raised when an address fails parsing or validation."""


class AddressValidator(Protocol):
    def __call__(self, address: str) -> str: ...


# --- BIP-0173 primitives ---


def _polymod(values: Sequence[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i in range(5):
            if (top >> i) & 1:
                chk ^= _GENERATORS[i]
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _create_checksum(hrp: str, data: Sequence[int]) -> List[int]:
    polymod = _polymod(_hrp_expand(hrp) + list(data) + [0] * 6) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def convertbits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool = True) -> List[int]:
    acc = 0
    bits = 0
    ret: List[int] = []
    maxv = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value < 0 or (value >> from_bits):
            raise AddressError("invalid value for convertbits")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        raise AddressError("invalid padding")
    return ret


def bech32_encode(hrp: str, payload: bytes) -> str:
    data = convertbits(payload, 8, 5)
    combined = data + _create_checksum(hrp, data)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


def bech32_decode(address: str) -> Tuple[str, bytes]:
    if len(address) < 8 or len(address) > MAX_ADDRESS_LENGTH:
        raise AddressError("invalid address length")
    if address != address.lower():
        # Upper-case bech32 is valid BIP-0173 but not the normalized form.
        raise AddressError("address must be lower case")
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address):
        raise AddressError("invalid position of separator '1'")

    hrp = address[:pos]
    if any(ord(c) < 33 or ord(c) > 126 for c in hrp):
        raise AddressError("invalid HRP characters")
    try:
        data = [CHARSET_REV[c] for c in address[pos + 1:]]
    except KeyError:
        raise AddressError("invalid data character") from None
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise AddressError("checksum mismatch")
    return hrp, bytes(convertbits(data[:-6], 5, 8, pad=False))


# --- validators ---


class Bech32AddressValidator:
    def __init__(self, hrp: str = DEFAULT_ADDRESS_HRP):
        self.hrp = hrp

    def __call__(self, address: str) -> str:
        hrp, payload = bech32_decode(address)
        if hrp != self.hrp:
            raise AddressError(f"wrong address prefix {hrp!r}, expected {self.hrp!r}")
        if len(payload) not in ADDRESS_PAYLOAD_SIZES:
            raise AddressError(f"invalid address payload length {len(payload)}")
        return address

    def make(self, payload: bytes) -> str:
        return bech32_encode(self.hrp, payload)


class PermissiveAddressValidator:
    def __call__(self, address: str) -> str:
        if not address or len(address) > MAX_ADDRESS_LENGTH:
            raise AddressError("invalid address length")
        if address != address.strip() or not address.isprintable():
            raise AddressError("address contains whitespace or control characters")
        return address
