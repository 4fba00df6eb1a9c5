from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict


@dataclass(frozen=True)
class Ingredient:
    name: str
    quantity: str
    unit: str

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
