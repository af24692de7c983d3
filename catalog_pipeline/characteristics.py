"""
Profile characteristics and cost fields.

Characteristics are keyed by their characteristic-type id, which is stable
across data revisions; the display name on the element is only a fallback.
"""

from __future__ import annotations

from catalog_pipeline.loader import Node
from utils.config import GameSystem
from utils.strings import parse_int

# Characteristic-type id -> short name
CHARACTERISTIC_NAMES = {
    # Unit
    "e703-ecb6-5ce7-aec1": "M",
    "d29d-cf75-fc2d-34a4": "T",
    "450-a17e-9d5e-29da": "SV",
    "750a-a2ec-90d3-21fe": "W",
    "58d2-b879-49c7-43bc": "LD",
    "bef7-942a-1a23-59f8": "OC",
    # Ranged Weapons
    "9896-9419-16a1-92fc": "Range",
    "3bb-c35f-f54-fb08": "A",
    "94d-8a98-cf90-183e": "BS",
    "2229-f494-25db-c5d3": "S",
    "9ead-8a10-520-de15": "AP",
    "a354-c1c8-a745-f9e3": "D",
    "7f1b-8591-2fcf-d01c": "Keywords",
    # Melee Weapons
    "914c-b413-91e3-a132": "Range",
    "2337-daa1-6682-b110": "A",
    "95d1-95f-45b4-11d6": "WS",
    "ab33-d393-96ce-ccba": "S",
    "41a0-1301-112a-e2f2": "AP",
    "3254-9fe6-d824-513e": "D",
    "893f-9000-ccf7-648e": "Keywords",
    # Abilities
    "9b8f-694b-e5e-b573": "Description",
}

# Profile typeName values
UNIT_PROFILE = "Unit"
RANGED_PROFILE = "Ranged Weapons"
MELEE_PROFILE = "Melee Weapons"
ABILITY_PROFILE = "Abilities"


def parse_characteristics(profile: Node) -> dict[str, str]:
    """Map a profile's characteristics to ``{short name: text}``.

    Later characteristics with the same name overwrite earlier ones.
    """
    chars: dict[str, str] = {}
    for char in profile.items("characteristics", "characteristic"):
        name = CHARACTERISTIC_NAMES.get(char.get("typeId", ""), char.name)
        chars[name] = char.text
    return chars


def profiles_of_type(node: Node, type_name: str) -> list[Node]:
    """Profiles directly on *node* whose typeName is *type_name*."""
    return [p for p in node.items("profiles", "profile") if p.get("typeName") == type_name]


def cost_points(node: Node) -> int:
    """The node's own points cost; 0 when absent or unparsable."""
    points = 0
    for cost in node.items("costs", "cost"):
        if (cost.name == GameSystem.POINTS_COST_NAME
                or cost.get("typeId") == GameSystem.POINTS_COST_TYPE_ID):
            points = parse_int(cost.get("value")) or 0
    return points
