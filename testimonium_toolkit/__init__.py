"""Testimonium Toolkit - Python client for the Testimonium cross-chain relay."""

__version__ = "0.1.0"

from .client import TestimoniumClient
from .proofs import BlockHeader, MerkleProof, TrieValueType

__all__ = ["TestimoniumClient", "BlockHeader", "MerkleProof", "TrieValueType"]
