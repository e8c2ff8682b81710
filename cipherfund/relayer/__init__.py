"""
CipherFund Relayer Layer

Public decryption of handles a contract has marked decryptable.

Components:
    RelayerClient: Abstract public_decrypt interface
    HTTPRelayerClient: Relayer HTTP API over aiohttp
    MockRelayerClient: Decrypts against MockChainClient

Usage:
    from cipherfund.relayer import HTTPRelayerClient, init_relayer, get_relayer

    init_relayer(HTTPRelayerClient("https://relayer.testnet.zama.cloud"))
    value = await get_relayer().public_decrypt(handle, contract_address)
"""

from .client import (
    RelayerClient,
    HTTPRelayerClient,
    MockRelayerClient,
    DecryptedValue,
    build_decryption_proof,
    HTTPTransport,
    AiohttpTransport,
    MockHTTPTransport,
    init_relayer,
    get_relayer,
    reset_relayer,
    is_relayer_initialized,
    PUBLIC_DECRYPT_PATH,
)

__all__ = [
    "RelayerClient",
    "HTTPRelayerClient",
    "MockRelayerClient",
    "DecryptedValue",
    "build_decryption_proof",
    "HTTPTransport",
    "AiohttpTransport",
    "MockHTTPTransport",
    "init_relayer",
    "get_relayer",
    "reset_relayer",
    "is_relayer_initialized",
    "PUBLIC_DECRYPT_PATH",
]
