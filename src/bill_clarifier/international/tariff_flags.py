"""Brazilian tariff flag (bandeira tarifária) recognition."""
from __future__ import annotations

import re
import unicodedata

from ..models.bill import TariffFlag

_RED_TIER = re.compile(r"(?:vermelh[ao]|red)\s*(?:-|patamar|tier|p)?\s*([12]|i{1,2})\b")


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower().strip()


def parse_tariff_flag(raw: str | None) -> TariffFlag | None:
    """Map the flag text printed on a bill to a :class:`TariffFlag`.

    Recognises Portuguese and English names: ``verde``/``green``,
    ``amarela``/``yellow``, ``vermelha 1``/``vermelha patamar 2``/``red 2``.
    A bare ``vermelha`` without a tier reads as tier 1.
    """
    if not raw:
        return None
    text = _fold(raw)

    if "verde" in text or "green" in text:
        return TariffFlag.GREEN
    if "amarel" in text or "yellow" in text:
        return TariffFlag.YELLOW

    match = _RED_TIER.search(text)
    if match:
        tier = match.group(1)
        return TariffFlag.RED_2 if tier in ("2", "ii") else TariffFlag.RED_1
    if "vermelh" in text or "red" in text:
        return TariffFlag.RED_1
    return None


def is_red_flag(flag: TariffFlag | None) -> bool:
    return flag in (TariffFlag.RED_1, TariffFlag.RED_2)
