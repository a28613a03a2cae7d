"""Wallet and payment engine.

Provides an eth-account keystore with a plaintext address for password-free
lookups, amount conversion between human and raw units, network resolution
with named profiles, and a fail-fast pay pipeline over web3.
"""
