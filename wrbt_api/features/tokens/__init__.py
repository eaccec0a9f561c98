"""Pairing code and bearer token primitives."""

from wrbt_api.features.tokens.codec import (
    compute_expiry,
    generate_api_key,
    generate_pairing_code,
    is_expired,
    is_well_formed_api_key,
    token_lookup_key,
)
from wrbt_api.features.tokens.hashing import (
    BcryptHashingPolicy,
    HashingPolicy,
    PlaintextHashingPolicy,
    build_hashing_policy,
    get_hashing_policy,
    set_hashing_policy,
)

__all__ = [
    "BcryptHashingPolicy",
    "HashingPolicy",
    "PlaintextHashingPolicy",
    "build_hashing_policy",
    "get_hashing_policy",
    "set_hashing_policy",
    "compute_expiry",
    "generate_api_key",
    "generate_pairing_code",
    "is_expired",
    "is_well_formed_api_key",
    "token_lookup_key",
]
