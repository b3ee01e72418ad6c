"""
guardledger/core/canonical.py

Canonical bytes for everything GuardLedger signs or hashes, using
RFC 8785 (JSON Canonicalization Scheme):

    Transaction.tx_id        "0x" + canonical_hash(tx.to_signing_dict())
    Transaction.signature    account key over canonicalize(tx.to_signing_dict())
    LedgerEvent.signature    host key over canonicalize(event.to_signing_dict())
    LedgerEvent.causal_hash  canonical_hash(prev.to_chain_dict())
    LedgerState.fingerprint  canonical_hash(state.snapshot().to_dict())
    derive_ledger_address    canonical_hash({"creator": ..., "nonce": ...})

Two hosts that agree on these dicts agree on every id, address and
signature, whatever order the keys were built in.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "GuardLedger requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc


def canonicalize(obj: dict) -> bytes:
    """
    RFC 8785 bytes of a signing or chain dict.

    Currency amounts must already be int base units and transfer data a
    hex string; the to_*_dict() methods on the models take care of both.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """Lowercase hex SHA-256 of canonicalize(obj)."""
    return hashlib.sha256(canonicalize(obj)).hexdigest()
