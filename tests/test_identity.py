"""
Tests for deterministic ids — catalog_pipeline/identity.py
"""
import hashlib
import re
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from catalog_pipeline import identity

UUID_SHAPE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


class TestUuidFromSeed:
    def test_shape(self):
        assert UUID_SHAPE.match(identity.uuid_from_seed("anything"))

    def test_is_md5_of_seed(self):
        digest = hashlib.md5(b"faction:Orks").hexdigest()
        assert identity.uuid_from_seed("faction:Orks").replace("-", "") == digest

    def test_stable(self):
        assert identity.uuid_from_seed("x") == identity.uuid_from_seed("x")

    def test_distinct_seeds(self):
        assert identity.uuid_from_seed("x") != identity.uuid_from_seed("y")

    def test_unicode_seed(self):
        assert UUID_SHAPE.match(identity.uuid_from_seed("unit:T'au Empire:Ethereal ☆"))


class TestEntityIds:
    def test_seed_formats(self):
        seed = identity.uuid_from_seed
        assert identity.faction_id("Orks") == seed("faction:Orks")
        assert identity.unit_id("Orks", "Boyz") == seed("unit:Orks:Boyz")
        assert identity.detachment_id("Orks", "War Horde") == seed("detachment:Orks:War Horde")
        assert identity.enhancement_id("Orks", "War Horde", "Follow Me Ladz") == \
            seed("enhancement:Orks:War Horde:Follow Me Ladz")
        assert identity.wargear_id("Orks", "Boyz", "Weapon 1", "Slugga") == \
            seed("wargear:Orks:Boyz:Weapon 1:Slugga")

    def test_kind_prefix_separates_namespaces(self):
        assert identity.faction_id("Orks") != identity.unit_id("Orks", "")
