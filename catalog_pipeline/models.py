"""
Canonical entity records produced by the pipeline.

Records are frozen pydantic models: once the assembler builds them they are
only read (by the merge step, the emitter and staging).  Rebasing a unit onto
another faction label goes through ``model_copy(update=...)``.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from utils.strings import parse_int

Role = Literal[
    "epic_hero", "character", "battleline", "infantry", "mounted", "beast",
    "vehicle", "monster", "fortification", "dedicated_transport", "allied",
]
WeaponKind = Literal["ranged", "melee"]
AbilityType = Literal["core", "faction", "unique", "invulnerable"]


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())


# ── Unit children ─────────────────────────────────────────────────────────────

class PointsTier(_Record):
    """Cost of a unit fielded with at least ``model_count`` models."""
    model_count: int = Field(..., ge=0, description="Model-count threshold", examples=[5])
    points: int = Field(..., description="Points at or above the threshold", examples=[90])


class Weapon(_Record):
    """One weapon profile; attacks/skill/damage may be dice expressions."""
    name: str
    kind: WeaponKind
    range: str | None = Field(None, description="Only set for ranged weapons", examples=['24"'])
    attacks: str = Field("1", examples=["D6+1"])
    skill: str = Field("4+", description="BS for ranged, WS for melee", examples=["3+"])
    strength: int = 4
    ap: int = Field(0, description="Armour penetration, usually zero or negative", examples=[-1])
    damage: str = Field("1", examples=["D3"])
    keywords: list[str] = Field(default_factory=list, examples=[["Rapid Fire 1", "Assault"]])


class Ability(_Record):
    name: str
    classification: AbilityType = "unique"
    description: str = ""


class WargearOption(_Record):
    """One choice in a mutually exclusive wargear group."""
    group_name: str = Field(..., examples=["Weapon 1"])
    name: str = Field(..., examples=["Storm bolter"])
    is_default: bool = False
    points: int = 0


class StatLine(_Record):
    """A unit's characteristics, defaulted where the profile is silent."""
    movement: str = '6"'
    toughness: int = 4
    save: str = "3+"
    wounds: int = 1
    leadership: int = 6
    objective_control: int = 1

    @classmethod
    def from_characteristics(cls, chars: dict[str, str]) -> StatLine:
        """Build from a Unit profile's ``{M, T, SV, W, LD, OC}`` characteristics."""
        return cls(
            movement=chars.get("M") or '6"',
            toughness=parse_int(chars.get("T")) or 4,
            save=chars.get("SV") or "3+",
            wounds=parse_int(chars.get("W")) or 1,
            leadership=parse_int(chars.get("LD")) or 6,
            objective_control=parse_int(chars.get("OC")) or 1,
        )


# ── Top-level entities ────────────────────────────────────────────────────────

class Unit(_Record):
    """A datasheet: stats, costs and everything attached to it."""
    id: str = Field(..., description="Deterministic id seeded from faction and unit name")
    name: str
    role: Role = "infantry"
    movement: str = '6"'
    toughness: int = 4
    save: str = "3+"
    wounds: int = 1
    leadership: int = 6
    objective_control: int = 1
    keywords: list[str] = Field(default_factory=list)
    is_unique: bool = False
    points_tiers: list[PointsTier] = Field(default_factory=list)
    weapons: list[Weapon] = Field(default_factory=list)
    abilities: list[Ability] = Field(default_factory=list)
    wargear_options: list[WargearOption] = Field(default_factory=list)


class Enhancement(_Record):
    name: str
    points: int = 0
    description: str = ""


class Detachment(_Record):
    name: str
    rule_text: str = ""
    enhancements: list[Enhancement] = Field(default_factory=list)


class Faction(_Record):
    id: str
    name: str


class CatalogResult(_Record):
    """Everything one source document contributed to its faction."""
    faction_name: str = Field(..., description="Label derived from the document title")
    source: str = ""
    units: list[Unit] = Field(default_factory=list)
    detachments: list[Detachment] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)


class FactionBundle(_Record):
    """Merged output for one faction, ready for the emitter."""
    faction: Faction
    units: list[Unit] = Field(default_factory=list)
    detachments: list[Detachment] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
