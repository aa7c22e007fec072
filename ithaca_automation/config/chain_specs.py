from dataclasses import dataclass, replace
from typing import Dict, Optional

from .environment import EnvironmentManager


@dataclass(frozen=True)
class ChainSpec:
    """Network parameters of one chain"""
    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str  # transaction URL prefix, hash is appended
    native_currency: str = "ETH"

    def tx_url(self, tx_hash: str) -> str:
        if not tx_hash.startswith('0x'):
            tx_hash = f"0x{tx_hash}"
        return f"{self.explorer_url}{tx_hash}"


SEPOLIA = ChainSpec(
    name="Sepolia",
    chain_id=11155111,
    rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
    explorer_url="https://sepolia.etherscan.io/tx/",
)

ITHACA = ChainSpec(
    name="Ithaca",
    chain_id=911867,
    rpc_url="https://odyssey.ithaca.xyz",
    explorer_url="https://odyssey-explorer.ithaca.xyz/tx/",
)

CHAIN_SPECS: Dict[str, ChainSpec] = {
    "sepolia": SEPOLIA,
    "ithaca": ITHACA,
}


def get_chain_spec(name: str, env: Optional[EnvironmentManager] = None) -> ChainSpec:
    """Look up a chain by key, applying an ``<NAME>_RPC_URL`` override

    Raises:
        KeyError: if the chain is unknown
    """
    spec = CHAIN_SPECS[name.lower()]
    override = env.rpc_url_override(name) if env else None
    if override:
        return replace(spec, rpc_url=override)
    return spec
