"""
Ithaca testnet automation

Per-wallet self-transfers on Ithaca (Odyssey) and native ETH bridging
between Sepolia and Ithaca, run in timed cycles over a list of keys.
"""

__version__ = "1.0.0"
