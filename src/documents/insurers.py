"""Mailing addresses of Swiss basic-insurance carriers.

Static, read-only lookup keyed by case-folded insurer name. Unknown insurers
get no address block; the lookup never raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class InsurerAddress:
    street: str
    postal_code: str
    city: str

    @property
    def postal_city(self) -> str:
        return f"{self.postal_code} {self.city}"


_ADDRESSES: dict[str, InsurerAddress] = {
    "css": InsurerAddress("Tribschenstrasse 21", "6005", "Luzern"),
    "helsana": InsurerAddress("Postfach", "8081", "Zürich"),
    "swica": InsurerAddress("Römerstrasse 38", "8401", "Winterthur"),
    "sanitas": InsurerAddress("Jägergasse 3", "8004", "Zürich"),
    "concordia": InsurerAddress("Bundesplatz 15", "6002", "Luzern"),
    "visana": InsurerAddress("Weltpoststrasse 19", "3015", "Bern"),
    "assura": InsurerAddress("Avenue C.-F. Ramuz 70", "1009", "Pully"),
    "groupe mutuel": InsurerAddress("Rue des Cèdres 5", "1919", "Martigny"),
    "kpt": InsurerAddress("Wankdorfallee 3", "3014", "Bern"),
    "atupri": InsurerAddress("Zieglerstrasse 29", "3007", "Bern"),
    "ökk": InsurerAddress("Bahnhofstrasse 13", "7302", "Landquart"),
    "sympany": InsurerAddress("Peter Merian-Weg 4", "4002", "Basel"),
    "egk": InsurerAddress("Brislachstrasse 2", "4242", "Laufen"),
}

INSURER_ADDRESSES: MappingProxyType[str, InsurerAddress] = MappingProxyType(_ADDRESSES)


def _normalize(name: str) -> str:
    return " ".join(name.split()).casefold()


def lookup_insurer_address(name: str) -> InsurerAddress | None:
    """Return the mailing address for a carrier, or None when unknown."""
    if not name:
        return None
    return INSURER_ADDRESSES.get(_normalize(name))
