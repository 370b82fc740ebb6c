"""Pizza style catalog.

Each style carries the defaults used when a request omits hydration, salt
or oil, plus the flour guidance quoted in prompts and in default analyses.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from doughcalc.models.models import OvenType


class FlourType(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    protein: float


class PizzaStyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    description: str
    default_hydration: float
    default_salt: float
    default_oil: Optional[float]
    hydration_range: tuple[float, float]
    salt_range: tuple[float, float]
    ideal_flour: str
    signature_characteristics: List[str]
    flour_types: List[FlourType]


PIZZA_STYLES: dict[str, PizzaStyle] = {
    "neapolitan": PizzaStyle(
        key="neapolitan",
        name="Neapolitan",
        description="Traditional Italian style with thin center and puffy crust (AVPN certified)",
        default_hydration=62.5,
        default_salt=2.5,
        default_oil=None,
        hydration_range=(55.5, 62.5),
        salt_range=(2.4, 3.0),
        ideal_flour="Tipo 00 flour (W260-270, 11-12.5% protein)",
        signature_characteristics=[
            "Soft and supple texture",
            "Pronounced crust bubbles",
            "Tender yet chewy cornicione",
            "Minimal thickness in center",
        ],
        flour_types=[
            FlourType(
                name="Caputo Tipo 00 Chef's Flour",
                description="Professional grade Italian 00 flour, ideal for Neapolitan pizza (W260-270)",
                protein=12.5,
            ),
            FlourType(
                name="Caputo Tipo 00 Pizzeria Flour",
                description="Higher protein Italian 00 flour, excellent for longer fermentation (W300-320)",
                protein=13.0,
            ),
        ],
    ),
    "new-york": PizzaStyle(
        key="new-york",
        name="New York",
        description="Classic American style with slightly thicker crust",
        default_hydration=62,
        default_salt=2.5,
        default_oil=2,
        hydration_range=(58, 65),
        salt_range=(2.0, 3.0),
        ideal_flour="High-gluten bread flour (14% protein)",
        signature_characteristics=[
            "Chewy yet foldable crust",
            "Crispy exterior",
            "Medium-thick edge",
            "Even browning",
        ],
        flour_types=[
            FlourType(
                name="King Arthur Sir Lancelot Flour",
                description="High gluten flour perfect for NY style (14.2% protein)",
                protein=14.2,
            ),
            FlourType(
                name="King Arthur Bread Flour",
                description="Strong bread flour suitable for NY style (12.7% protein)",
                protein=12.7,
            ),
        ],
    ),
    "detroit": PizzaStyle(
        key="detroit",
        name="Detroit",
        description="Thick, crispy bottom with airy crumb structure",
        default_hydration=70,
        default_salt=2,
        default_oil=6,
        hydration_range=(65, 75),
        salt_range=(1.8, 2.2),
        ideal_flour="High-protein bread flour (13-14% protein)",
        signature_characteristics=[
            "Crispy, oily bottom crust",
            "Light and airy interior",
            "Caramelized cheese edges",
            "Square shape",
        ],
        flour_types=[
            FlourType(
                name="King Arthur Bread Flour",
                description="Strong bread flour ideal for Detroit style (12.7% protein)",
                protein=12.7,
            ),
            FlourType(
                name="General Mills All Trumps",
                description="High gluten flour for extra chewiness (14% protein)",
                protein=14,
            ),
        ],
    ),
    "sicilian": PizzaStyle(
        key="sicilian",
        name="Sicilian",
        description="Thick, focaccia-like crust with olive oil",
        default_hydration=75,
        default_salt=2.5,
        default_oil=8,
        hydration_range=(70, 80),
        salt_range=(2.0, 3.0),
        ideal_flour="Strong bread flour (12.5-14% protein)",
        signature_characteristics=[
            "Thick, light and airy crumb",
            "Crispy, olive oil-rich bottom",
            "Focaccia-like texture",
            "Rich olive oil flavor",
        ],
        flour_types=[
            FlourType(
                name="King Arthur Bread Flour",
                description="Strong bread flour suitable for Sicilian style (12.7% protein)",
                protein=12.7,
            ),
            FlourType(
                name="Caputo Tipo 00 Chef's Flour",
                description="Fine Italian 00 flour for softer texture (12.5% protein)",
                protein=12.5,
            ),
        ],
    ),
    "roman-al-taglio": PizzaStyle(
        key="roman-al-taglio",
        name="Roman Al Taglio",
        description="Light, crispy crust with high hydration",
        default_hydration=80,
        default_salt=2.5,
        default_oil=4,
        hydration_range=(75, 85),
        salt_range=(2.0, 3.0),
        ideal_flour="Medium-strength flour (W280-300, 11-12% protein)",
        signature_characteristics=[
            "Light and airy structure",
            "Crispy bottom crust",
            "Open crumb structure",
            "Rectangle shape",
        ],
        flour_types=[
            FlourType(
                name="Caputo Tipo 00 Pizza Flour",
                description="Medium-strength Italian flour ideal for Roman style",
                protein=12.5,
            ),
            FlourType(
                name="General Purpose Flour",
                description="All-purpose flour blend for Roman style",
                protein=11.5,
            ),
        ],
    ),
    "custom": PizzaStyle(
        key="custom",
        name="Custom",
        description="Custom pizza style with adjustable parameters",
        default_hydration=65,
        default_salt=2.5,
        default_oil=0,
        hydration_range=(50, 90),
        salt_range=(1, 5),
        ideal_flour="Based on desired characteristics",
        signature_characteristics=[
            "Customizable texture",
            "Flexible fermentation",
            "Adaptable to preferences",
        ],
        flour_types=[
            FlourType(name="Bread Flour", description="Strong bread flour (12-13% protein)", protein=12.5),
            FlourType(
                name="All Purpose Flour", description="Versatile flour for various styles (10-12% protein)", protein=11
            ),
            FlourType(name="00 Flour", description="Fine Italian-style flour (11-12.5% protein)", protein=12),
            FlourType(
                name="High Gluten Flour", description="Very strong flour for chewy texture (14%+ protein)", protein=14
            ),
        ],
    ),
}

# Maximum oven temperature in °F per oven type, used when the request sends none
OVEN_MAX_TEMPS: dict[OvenType, float] = {
    OvenType.HOME: 550,
    OvenType.OUTDOOR: 950,
}

OVEN_DESCRIPTIONS: dict[OvenType, str] = {
    OvenType.HOME: "Home oven (standard kitchen oven, max 550°F)",
    OvenType.OUTDOOR: "Outdoor pizza oven (wood/gas fired, 850-950°F)",
}

# Protein ranges quoted in flour analyses, matched by substring of the flour name
FLOUR_PROTEIN_RANGES: list[tuple[str, str]] = [
    ("00", "11-12.5%"),
    ("bread", "12-14%"),
    ("high gluten", "13.5-14.5%"),
    ("all-purpose", "10-12%"),
    ("all purpose", "10-12%"),
    ("whole wheat", "13-14%"),
    ("semolina", "12-13%"),
    ("rye", "8-10%"),
]
DEFAULT_PROTEIN_RANGE = "11-13%"


def get_style(key: str) -> Optional[PizzaStyle]:
    return PIZZA_STYLES.get(key)


def protein_range_for(flour_name: str) -> str:
    """Return the protein range quoted for a flour name, e.g. ``"12-14%"`` for bread flour."""
    lowered = flour_name.lower()
    for needle, protein in FLOUR_PROTEIN_RANGES:
        if needle in lowered:
            return protein
    return DEFAULT_PROTEIN_RANGE
