# cipherfund/workflows/encryption.py
"""
CipherFund Workflows: Encrypted Inputs

Contributions reach the contract as an encrypted uint64 handle plus an
input proof binding it to (contract, user). Producing them is the job of
an FHE input encryptor, which is external to this package; implement
InputEncryptor to plug one in.

Usage:
    encryptor = MockInputEncryptor(chain)
    handle, proof = await encryptor.encrypt64(amount_wei, campaign_address, user)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple, TYPE_CHECKING

from web3 import Web3

if TYPE_CHECKING:
    from ..chain.mock import MockChainClient


class InputEncryptor(ABC):
    """Encrypts plaintext inputs for a specific contract and user."""

    @abstractmethod
    async def encrypt64(self, amount: int, contract: str, user: str) -> Tuple[str, bytes]:
        """
        Encrypt a uint64.

        Returns:
            (handle as 0x-hex bytes32, input proof)
        """
        pass


class MockInputEncryptor(InputEncryptor):
    """Registers inputs directly with a MockChainClient."""

    def __init__(self, chain: "MockChainClient"):
        self._chain = chain

    async def encrypt64(self, amount: int, contract: str, user: str) -> Tuple[str, bytes]:
        proof = bytes(Web3.keccak(text=f"input:{contract.lower()}:{user.lower()}:{amount}"))
        handle = self._chain.register_input(amount, proof)
        return handle, proof
