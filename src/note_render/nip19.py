"""NIP-19 bech32 entity decoding (npub, nprofile).

The checksum and bit conversion come from the ``bech32`` reference library.
Its ``bech32_decode`` rejects strings longer than 90 characters (BIP-173),
but an nprofile carrying relay hints is routinely longer than that, so the
human-readable part and data are split here and only the checksum and
regrouping are delegated.

Every function raises ``Nip19Error`` on malformed input.
"""

import re
from dataclasses import dataclass, field

import bech32

HEX_PUBKEY_RE = re.compile(r"^[0-9a-f]{64}$")

# TLV types inside nprofile / nevent / naddr payloads
TLV_SPECIAL = 0
TLV_RELAY = 1


class Nip19Error(ValueError):
    """A bech32 entity could not be decoded."""


@dataclass
class ProfilePointer:
    pubkey: str  # hex
    relays: list[str] = field(default_factory=list)


def is_hex_pubkey(value: str) -> bool:
    return bool(value) and bool(HEX_PUBKEY_RE.match(value))


def decode(value: str) -> tuple[str, bytes]:
    """Decode a bech32 string into (prefix, payload bytes)."""
    if not value or (value.lower() != value and value.upper() != value):
        raise Nip19Error(f"Not a bech32 string: {value!r}")

    value = value.lower()
    sep = value.rfind("1")
    if sep < 1 or sep + 7 > len(value):
        raise Nip19Error(f"Missing separator or checksum: {value!r}")

    prefix = value[:sep]
    try:
        data = [bech32.CHARSET.index(c) for c in value[sep + 1:]]
    except ValueError:
        raise Nip19Error(f"Invalid bech32 character in {value!r}") from None

    if not bech32.bech32_verify_checksum(prefix, data):
        raise Nip19Error(f"Bad checksum: {value!r}")

    payload = bech32.convertbits(data[:-6], 5, 8, False)
    if payload is None:
        raise Nip19Error(f"Invalid padding: {value!r}")
    return prefix, bytes(payload)


def encode(prefix: str, payload: bytes) -> str:
    return bech32.bech32_encode(prefix, bech32.convertbits(payload, 8, 5))


def npub_to_hex(npub: str) -> str:
    prefix, payload = decode(npub)
    if prefix != "npub":
        raise Nip19Error(f"Expected npub, got {prefix}")
    if len(payload) != 32:
        raise Nip19Error(f"npub payload must be 32 bytes, got {len(payload)}")
    return payload.hex()


def hex_to_npub(pubkey: str) -> str:
    if not is_hex_pubkey(pubkey):
        raise Nip19Error(f"Not a hex public key: {pubkey!r}")
    return encode("npub", bytes.fromhex(pubkey))


def decode_nprofile(nprofile: str) -> ProfilePointer:
    """Decode an nprofile into its pubkey and relay hints."""
    prefix, payload = decode(nprofile)
    if prefix != "nprofile":
        raise Nip19Error(f"Expected nprofile, got {prefix}")

    pubkey: str | None = None
    relays: list[str] = []
    pos = 0
    while pos < len(payload):
        if pos + 2 > len(payload):
            raise Nip19Error("Truncated TLV header")
        tlv_type, length = payload[pos], payload[pos + 1]
        value = payload[pos + 2:pos + 2 + length]
        if len(value) != length:
            raise Nip19Error("Truncated TLV value")
        pos += 2 + length

        if tlv_type == TLV_SPECIAL:
            if length != 32:
                raise Nip19Error(f"Pubkey TLV must be 32 bytes, got {length}")
            pubkey = value.hex()
        elif tlv_type == TLV_RELAY:
            try:
                relays.append(value.decode("ascii"))
            except UnicodeDecodeError:
                raise Nip19Error("Relay hint is not ASCII") from None
        # unknown types are ignored

    if pubkey is None:
        raise Nip19Error("nprofile has no pubkey")
    return ProfilePointer(pubkey=pubkey, relays=relays)


def encode_nprofile(pubkey: str, relays: list[str] | None = None) -> str:
    if not is_hex_pubkey(pubkey):
        raise Nip19Error(f"Not a hex public key: {pubkey!r}")
    payload = bytes([TLV_SPECIAL, 32]) + bytes.fromhex(pubkey)
    for relay in relays or []:
        raw = relay.encode("ascii")
        payload += bytes([TLV_RELAY, len(raw)]) + raw
    return encode("nprofile", payload)


def nprofile_to_npub(nprofile: str) -> str:
    return hex_to_npub(decode_nprofile(nprofile).pubkey)
