"""Known protocols and the dashboard section each belongs to."""

from __future__ import annotations

from typing import Final

from .enums import ProtocolCategory

CLM_PROTOCOLS: Final[frozenset[str]] = frozenset(
    {
        "Orca",
        "Raydium",
        "Aerodrome",
        "Cetus",
        "Hyperion",
        "PancakeSwap",
        "Uniswap",
        "Ekubo",
        "Beefy",
    }
)
HEDGE_PROTOCOLS: Final[frozenset[str]] = frozenset({"Hyperliquid", "Morpho", "Aave"})

_CATEGORY_BY_NAME: Final[dict[str, ProtocolCategory]] = {
    **{name.casefold(): ProtocolCategory.CLM for name in CLM_PROTOCOLS},
    **{name.casefold(): ProtocolCategory.HEDGE for name in HEDGE_PROTOCOLS},
}


def category_for(protocol: str | None) -> ProtocolCategory | None:
    """Return the section ``protocol`` belongs to, or ``None`` when unknown."""

    if not protocol:
        return None
    return _CATEGORY_BY_NAME.get(protocol.strip().casefold())


def is_known_protocol(protocol: str | None) -> bool:
    return category_for(protocol) is not None
