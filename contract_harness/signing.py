"""Off-chain signatures for ``ecrecover``-based authorization checks.

The verifying contract rebuilds the message as::

    bytes32 hash = keccak256(abi.encodePacked(nonce, account, amount));
    bytes32 digest = keccak256(abi.encodePacked("\\x19Ethereum Signed Message:\\n32", hash));
    address signer = ecrecover(digest, v, r, s);

so the packing here is tight (``uint256`` ‖ ``address`` ‖ ``uint256``, 84 bytes)
rather than the padded call encoding. Reordering or re-widening a field does
not fail loudly: the contract simply recovers a different address.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from eth_abi.packed import encode_packed
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import keccak, to_canonical_address, to_checksum_address

from .errors import InvalidKeyError

_LOGGER = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_SECP256K1_HALF_N = SECP256K1_N // 2
_UINT256_MAX = 2**256 - 1

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"
AUTHORIZATION_TYPES = ("uint256", "address", "uint256")
AUTHORIZATION_PACKED_LENGTH = 32 + 20 + 32
SIGNATURE_LENGTH = 65


class RecoveryConvention(Enum):
    """How the recovery id is expressed in ``v``.

    ``ETHEREUM`` is what Solidity's ``ecrecover`` takes (27/28). ``RAW`` is the
    bare recovery id (0/1) expected by some library verifiers.
    """

    ETHEREUM = 27
    RAW = 0

    @property
    def offset(self) -> int:
        return self.value

    @classmethod
    def from_offset(cls, offset: int) -> "RecoveryConvention":
        try:
            return cls(offset)
        except ValueError as exc:
            raise ValueError(f"Unknown recovery id offset {offset!r}; expected 27 or 0") from exc

    @classmethod
    def detect(cls, v: int) -> "RecoveryConvention":
        """Infer the convention from a serialized ``v`` byte."""

        if v in (27, 28):
            return cls.ETHEREUM
        if v in (0, 1):
            return cls.RAW
        raise ValueError(f"v={v!r} is neither a raw (0/1) nor an Ethereum (27/28) recovery id")

    def encode(self, recovery_id: int) -> int:
        if recovery_id not in (0, 1):
            raise ValueError(f"recovery id must be 0 or 1, got {recovery_id!r}")
        return recovery_id + self.offset

    def decode(self, v: int) -> int:
        recovery_id = v - self.offset
        if recovery_id not in (0, 1):
            raise ValueError(f"v={v!r} is not valid under the {self.name} convention")
        return recovery_id


def _validate_secret(secret: bytes) -> None:
    if len(secret) != 32:
        raise InvalidKeyError(f"Private key must be 32 bytes, got {len(secret)}")
    scalar = int.from_bytes(secret, "big")
    if scalar == 0:
        raise InvalidKeyError("Private key must not be zero")
    if scalar >= SECP256K1_N:
        raise InvalidKeyError("Private key must be below the secp256k1 group order")


class SigningKey:
    """Scoped holder for a raw secp256k1 private key.

    The secret lives in a mutable buffer that :meth:`wipe` zeroes. The key never
    shows up in ``repr``, cannot be pickled or copied, and can only leave the
    object through the explicit :meth:`export_hex`. Use it as a context manager
    to wipe it when the block ends.
    """

    __slots__ = ("_secret", "_wiped")

    def __init__(self, secret: Union[bytes, bytearray]) -> None:
        if not isinstance(secret, (bytes, bytearray)):
            raise InvalidKeyError(f"Private key must be bytes, got {type(secret).__name__}")
        _validate_secret(bytes(secret))
        self._secret = bytearray(secret)
        self._wiped = False

    @classmethod
    def from_hex(cls, text: str) -> "SigningKey":
        value = text.strip()
        if value[:2].lower() == "0x":
            value = value[2:]
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            # The offending text is deliberately left out of the message.
            raise InvalidKeyError("Private key is not valid hex") from None
        return cls(raw)

    @classmethod
    def coerce(cls, value: "PrivateKeyLike") -> Tuple["SigningKey", bool]:
        """Return ``(key, owned)``; ``owned`` keys were created here and should be wiped."""

        if isinstance(value, SigningKey):
            return value, False
        if isinstance(value, str):
            return cls.from_hex(value), True
        return cls(value), True

    def _material(self) -> bytes:
        if self._wiped:
            raise InvalidKeyError("Signing key has been wiped")
        return bytes(self._secret)

    @property
    def address(self) -> str:
        """Checksummed address controlled by this key."""

        return Account.from_key(self._material()).address

    @property
    def wiped(self) -> bool:
        return self._wiped

    def wipe(self) -> None:
        for index in range(len(self._secret)):
            self._secret[index] = 0
        self._wiped = True

    def export_hex(self) -> str:
        """Return the key as ``0x``-prefixed hex. Opt-in only; handle with care."""

        return "0x" + self._material().hex()

    def __enter__(self) -> "SigningKey":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else "redacted"
        return f"SigningKey(<{state}>)"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("SigningKey cannot be serialized; use export_hex() explicitly")

    def __copy__(self):
        raise TypeError("SigningKey cannot be copied")

    def __deepcopy__(self, _memo):
        raise TypeError("SigningKey cannot be copied")


PrivateKeyLike = Union[SigningKey, bytes, bytearray, str]


@dataclass(frozen=True)
class Signature:
    """An (r, s, v) triple that also serializes to the 65-byte ``r‖s‖v`` form."""

    r: bytes
    s: bytes
    v: int
    convention: RecoveryConvention

    def __post_init__(self) -> None:
        if len(self.r) != 32 or len(self.s) != 32:
            raise ValueError("r and s must both be 32 bytes")
        self.convention.decode(self.v)

    @property
    def recovery_id(self) -> int:
        return self.convention.decode(self.v)

    @property
    def vrs(self) -> Tuple[int, int, int]:
        return self.v, int.from_bytes(self.r, "big"), int.from_bytes(self.s, "big")

    @property
    def is_canonical(self) -> bool:
        return int.from_bytes(self.s, "big") <= _SECP256K1_HALF_N

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    def with_convention(self, convention: RecoveryConvention) -> "Signature":
        return Signature(self.r, self.s, convention.encode(self.recovery_id), convention)

    @classmethod
    def from_bytes(cls, data: bytes, convention: RecoveryConvention | None = None) -> "Signature":
        """Parse ``r‖s‖v``; the convention is inferred from ``v`` when omitted."""

        if len(data) != SIGNATURE_LENGTH:
            raise ValueError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(data)}")
        v = data[64]
        if convention is None:
            convention = RecoveryConvention.detect(v)
        return cls(bytes(data[:32]), bytes(data[32:64]), v, convention)

    @classmethod
    def from_hex(cls, text: str, convention: RecoveryConvention | None = None) -> "Signature":
        value = text[2:] if text[:2].lower() == "0x" else text
        return cls.from_bytes(bytes.fromhex(value), convention)


def _validate_uint256(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= _UINT256_MAX:
        raise ValueError(f"{name} must fit in uint256, got {value}")


def pack_authorization(nonce: int, counterparty_address: Union[str, bytes], amount: int) -> bytes:
    """Return ``abi.encodePacked(uint256 nonce, address counterparty, uint256 amount)``."""

    _validate_uint256("nonce", nonce)
    _validate_uint256("amount", amount)
    try:
        address = to_checksum_address(to_canonical_address(counterparty_address))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid counterparty address {counterparty_address!r}") from exc

    packed = encode_packed(AUTHORIZATION_TYPES, (nonce, address, amount))
    if len(packed) != AUTHORIZATION_PACKED_LENGTH:  # pragma: no cover - encoder contract
        raise AssertionError(f"Packed authorization is {len(packed)} bytes, expected {AUTHORIZATION_PACKED_LENGTH}")
    return packed


def authorization_digest(nonce: int, counterparty_address: Union[str, bytes], amount: int) -> bytes:
    """Keccak-256 of the packed authorization, the ``hash`` the contract computes first."""

    return keccak(pack_authorization(nonce, counterparty_address, amount))


def signing_digest(message_hash: bytes) -> bytes:
    """Apply the personal-message prefix to a 32-byte hash and hash again."""

    if len(message_hash) != 32:
        raise ValueError(f"message hash must be 32 bytes, got {len(message_hash)}")
    return keccak(PERSONAL_MESSAGE_PREFIX + message_hash)


def _sign_message_hash(message_hash: bytes, private_key: PrivateKeyLike, convention: RecoveryConvention) -> Signature:
    if not isinstance(convention, RecoveryConvention):
        raise TypeError("convention must be a RecoveryConvention")
    if len(message_hash) != 32:
        raise ValueError(f"message hash must be 32 bytes, got {len(message_hash)}")

    key, owned = SigningKey.coerce(private_key)
    try:
        # encode_defunct adds the same "\x19Ethereum Signed Message:\n32" prefix
        # as signing_digest(); eth_account signs with RFC 6979 nonces.
        signed = Account.sign_message(encode_defunct(primitive=message_hash), private_key=key._material())
    finally:
        if owned:
            key.wipe()

    r, s = signed.r, signed.s
    recovery_id = signed.v - 27
    if s > _SECP256K1_HALF_N:
        s = SECP256K1_N - s
        recovery_id ^= 1

    return Signature(
        r=r.to_bytes(32, "big"),
        s=s.to_bytes(32, "big"),
        v=convention.encode(recovery_id),
        convention=convention,
    )


def sign_authorization(
    nonce: int,
    counterparty_address: Union[str, bytes],
    amount: int,
    private_key: PrivateKeyLike,
    *,
    convention: RecoveryConvention,
) -> Signature:
    """Sign ``(nonce, counterparty_address, amount)`` for on-chain recovery.

    Args:
        nonce: Replay-protection counter, encoded as ``uint256``.
        counterparty_address: The address the contract packs in the middle
            field. Case does not matter; only the 20 raw bytes are signed.
        amount: Authorized amount, encoded as ``uint256``.
        private_key: A :class:`SigningKey`, or raw 32 bytes / hex. Raw keys
            are wrapped in a temporary :class:`SigningKey` and wiped after use.
        convention: How ``v`` is expressed. There is no default because the
            verifier decides: ``ecrecover`` wants ``ETHEREUM`` (27/28).

    Returns:
        A canonical (low-s) :class:`Signature`. Signing is deterministic, so
        identical inputs always yield identical bytes.

    Raises:
        InvalidKeyError: ``private_key`` is not a valid secp256k1 scalar.
        ValueError: A field does not fit its packed type.
    """

    digest = authorization_digest(nonce, counterparty_address, amount)
    signature = _sign_message_hash(digest, private_key, convention)
    _LOGGER.debug("Signed authorization nonce=%d amount=%d for %s", nonce, amount, to_checksum_address(counterparty_address))
    return signature


def _coerce_signature(signature: Union[Signature, bytes, str]) -> Signature:
    if isinstance(signature, Signature):
        return signature
    if isinstance(signature, str):
        return Signature.from_hex(signature)
    return Signature.from_bytes(signature)


def recover_message_hash_signer(message_hash: bytes, signature: Union[Signature, bytes, str]) -> str:
    """Recover the checksummed signer of a prefixed 32-byte message hash."""

    parsed = _coerce_signature(signature)
    _, r, s = parsed.vrs
    try:
        public_key = keys.Signature(vrs=(parsed.recovery_id, r, s)).recover_public_key_from_msg_hash(
            signing_digest(message_hash)
        )
    except BadSignature as exc:
        raise ValueError("Signature does not recover to a public key") from exc
    return public_key.to_checksum_address()


def recover_authorization_signer(
    nonce: int,
    counterparty_address: Union[str, bytes],
    amount: int,
    signature: Union[Signature, bytes, str],
) -> str:
    """Return the address ``ecrecover`` would yield for this authorization."""

    digest = authorization_digest(nonce, counterparty_address, amount)
    return recover_message_hash_signer(digest, signature)


__all__ = [
    "AUTHORIZATION_TYPES",
    "PERSONAL_MESSAGE_PREFIX",
    "PrivateKeyLike",
    "RecoveryConvention",
    "SECP256K1_N",
    "Signature",
    "SigningKey",
    "authorization_digest",
    "pack_authorization",
    "recover_authorization_signer",
    "recover_message_hash_signer",
    "sign_authorization",
    "signing_digest",
]
