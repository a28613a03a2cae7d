"""agent-payment: an encrypted EVM wallet that can pay.

Creates a password-protected keystore, reports its address and token
balance, and sends native or ERC-20 transfers on a configured network.
"""

__version__ = "0.1.0"
