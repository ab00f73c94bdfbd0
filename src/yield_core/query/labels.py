"""Human labels for network and category identifiers."""

from __future__ import annotations

# Only where the generic rule gets it wrong.
NETWORK_LABELS: dict[str, str] = {
    "bsc": "BNB Smart Chain",
    "asset-hub": "Polkadot Asset Hub",
    "zksync-era": "zkSync Era",
}

# category -> (label, classification)
CATEGORY_INFO: dict[str, tuple[str, str]] = {
    "vstaking": ("Liquid Staking", "staking"),
    "staking": ("Staking", "staking"),
    "farming": ("Yield Farming", "defi"),
    "dex": ("DEX / AMM", "defi"),
    "lending": ("Lending", "lending"),
}

OTHER = "other"


def generic_label(identifier: str) -> str:
    """``"moonbeam-alpha"`` -> ``"Moonbeam Alpha"``"""
    return " ".join(word.capitalize() for word in identifier.replace("-", " ").split())


def network_label(network: str) -> str:
    return NETWORK_LABELS.get(network, generic_label(network))


def category_info(category: str) -> tuple[str, str]:
    return CATEGORY_INFO.get(category, (generic_label(category), OTHER))
