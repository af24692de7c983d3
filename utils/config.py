"""Configuration management utilities for the catalog pipeline.

Provides reusable pieces for:
- Loading and saving configuration as JSON
- Environment-driven pipeline settings
- Game-system constants used by the extractors and the resolver
"""

from pathlib import Path
from typing import Dict, Optional, Any
import json
import os as _os


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        """Initialize configuration with default values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file.

        Args:
            path: Path to save configuration file
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file.

        Args:
            path: Path to configuration file

        Returns:
            Config instance loaded from file

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


class PipelineConfig(Config):
    """Pipeline settings loaded from environment variables.

    All env vars have defaults so the pipeline runs without any configuration.

    Environment variables:
        CATALOG_DATA_DIR: Directory holding the source catalog files (default: data/bsdata)
        CATALOG_OUT_DIR: Directory for the emitted SQL script (default: out)
        CATALOG_DB_PATH: SQLite destination database (default: catalog.sqlite)
        CATALOG_SQL_DIALECT: "postgres" or "sqlite" (default: postgres)
        CATALOG_STAGING_DIR: Parquet staging directory (default: staging)
        CATALOG_LOGS_DIR: Per-run log directory root (default: logs/pipeline)
        CATALOG_SOURCE_URL: Base URL for downloading missing catalogs
        CATALOG_MAX_REFERENCE_DEPTH: Cross-reference traversal budget (default: 6)
        CATALOG_RULE_TEXT_LIMIT: Max detachment rule text length (default: 2000)
    """

    def __init__(self) -> None:
        super().__init__()
        self.data_dir = Path(_os.getenv("CATALOG_DATA_DIR", "data/bsdata"))
        self.out_dir = Path(_os.getenv("CATALOG_OUT_DIR", "out"))
        self.db_path = Path(_os.getenv("CATALOG_DB_PATH", "catalog.sqlite"))
        self.sql_dialect = _os.getenv("CATALOG_SQL_DIALECT", "postgres")
        self.staging_dir = Path(_os.getenv("CATALOG_STAGING_DIR", "staging"))
        self.logs_dir = Path(_os.getenv("CATALOG_LOGS_DIR", "logs/pipeline"))
        self.source_url = _os.getenv(
            "CATALOG_SOURCE_URL",
            "https://raw.githubusercontent.com/BSData/wh40k-10e/main",
        )
        self.max_reference_depth = int(_os.getenv("CATALOG_MAX_REFERENCE_DEPTH", "6"))
        self.rule_text_limit = int(_os.getenv("CATALOG_RULE_TEXT_LIMIT", "2000"))

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create a PipelineConfig instance populated from environment variables."""
        return cls()


class DownloadConfig(Config):
    """Configuration for fetching catalog documents."""

    def __init__(self):
        """Initialize download configuration."""
        super().__init__()
        self.max_retries = 3
        self.backoff_factor = 2.0
        self.timeout_seconds = 30
        self.pool_connections = 4
        self.pool_maxsize = 8
        self.user_agent = "catalog-pipeline/0.1"


class GameSystem:
    """Container for game-system constants used during extraction.

    Category labels, ability names and cost identifiers here are the ones the
    community catalog data uses; they are matched case-sensitively unless a
    helper says otherwise.
    """

    # Category label -> unit role
    ROLE_CATEGORIES = {
        "Epic Hero": "epic_hero",
        "Character": "character",
        "Battleline": "battleline",
        "Infantry": "infantry",
        "Mounted": "mounted",
        "Beast": "beast",
        "Vehicle": "vehicle",
        "Monster": "monster",
        "Fortification": "fortification",
        "Dedicated Transport": "dedicated_transport",
        "Allied Units": "allied",
    }

    # First role present wins
    ROLE_PRIORITY = (
        "epic_hero",
        "character",
        "battleline",
        "dedicated_transport",
        "fortification",
        "monster",
        "vehicle",
        "beast",
        "mounted",
        "infantry",
    )

    DEFAULT_ROLE = "infantry"

    # Every value the units.role column accepts
    ROLES = frozenset(ROLE_CATEGORIES.values())

    CORE_ABILITIES = (
        "deep strike",
        "deadly demise",
        "feel no pain",
        "firing deck",
        "leader",
        "lone operative",
        "scouts",
        "stealth",
        "infiltrators",
        "objective secured",
    )

    FACTION_ABILITIES = (
        "oath of moment",
        "waaagh!",
        "power of the machine spirit",
        "power from pain",
        "strands of fate",
        "voice of the hive mind",
        "harbingers of dread",
        "shadow in the warp",
    )

    # Rule-type infoLinks that become faction abilities
    LINKED_FACTION_RULES = (
        "oath of moment",
        "templar vows",
    )

    ABILITY_TYPES = frozenset({"core", "faction", "unique", "invulnerable"})

    # Category labels never reported as unit keywords
    KEYWORD_PREFIX_DENYLIST = ("Faction:", "Configuration")
    KEYWORD_DENYLIST = frozenset({"Grenades"})

    # Organizational decorations stripped from catalog titles
    FACTION_PREFIXES = (
        "Imperium - ",
        "Chaos - ",
        "Aeldari - ",
        "Adeptus Astartes - ",
        "Xenos - ",
    )
    FACTION_SUFFIXES = (
        " - Library",
        " Library",
    )

    POINTS_COST_NAME = "pts"
    POINTS_COST_TYPE_ID = "51b2-306e-1021-d207"

    DETACHMENT_GROUP_NAMES = frozenset({"Detachment", "Detachments"})
    ENHANCEMENT_GROUP_NAME = "Enhancements"
    ENHANCEMENT_GROUP_SUFFIX = " Enhancements"
    WARGEAR_GROUP_NAME = "Wargear"

    DEFAULT_DETACHMENT_NAME = "Index"
    DEFAULT_DETACHMENT_RULE = "Default detachment using index rules."

    @classmethod
    def role_for_category(cls, category: str) -> Optional[str]:
        """Return the role a category label maps to, or None.

        Args:
            category: Category label, e.g. "Battleline"

        Returns:
            Role value or None when the label is not a role category
        """
        return cls.ROLE_CATEGORIES.get(category)

    @classmethod
    def is_keyword(cls, category: str) -> bool:
        """Check whether a category label should be reported as a keyword.

        Args:
            category: Category label

        Returns:
            False for faction labels, configuration labels and denied labels
        """
        if not category:
            return False
        if category.startswith(cls.KEYWORD_PREFIX_DENYLIST):
            return False
        return category not in cls.KEYWORD_DENYLIST
