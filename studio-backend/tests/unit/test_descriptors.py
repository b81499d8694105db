"""
Unit Tests: Runtime Descriptor Table

Tier ordering, table queries and table construction.
"""

import pytest

from core.runtime.descriptors import (
    DESCRIPTORS,
    Category,
    RuntimeDescriptor,
    Status,
    Tier,
    build_table,
    by_status,
    by_tier,
    databases,
    languages,
    stats,
)

pytestmark = pytest.mark.unit


class TestTier:
    """Test entitlement ordering."""

    def test_free_covers_only_free(self):
        assert Tier.FREE.covers(Tier.FREE)
        assert not Tier.FREE.covers(Tier.PRO)
        assert not Tier.FREE.covers(Tier.ENTERPRISE)

    def test_enterprise_covers_everything(self):
        for tier in Tier:
            assert Tier.ENTERPRISE.covers(tier)

    def test_covers_accepts_string_values(self):
        assert Tier.PRO.covers("free")
        assert not Tier.PRO.covers("enterprise")


class TestBuiltInTable:
    """Test the shipped descriptor table."""

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            DESCRIPTORS["cobol"] = DESCRIPTORS["python"]

    def test_ids_match_keys(self):
        for key, descriptor in DESCRIPTORS.items():
            assert descriptor.id == key

    def test_implemented_runtimes(self):
        implemented = {d.id for d in by_status(DESCRIPTORS, Status.IMPLEMENTED)}
        assert implemented == {"python", "json", "yaml", "sqlite"}

    def test_categories_partition_table(self):
        assert len(languages(DESCRIPTORS)) + len(databases(DESCRIPTORS)) == len(DESCRIPTORS)
        assert all(d.category is Category.DATABASE for d in databases(DESCRIPTORS))

    def test_stats_are_consistent(self):
        counts = stats(DESCRIPTORS)
        assert counts["total"] == len(DESCRIPTORS)
        assert counts["implemented"] + counts["planned"] == counts["total"]
        assert counts["languages"] + counts["databases"] == counts["total"]
        assert counts["free"] + counts["pro"] + counts["enterprise"] == counts["total"]

    def test_by_tier(self):
        assert all(d.tier is Tier.ENTERPRISE for d in by_tier(DESCRIPTORS, Tier.ENTERPRISE))
        assert {d.id for d in by_tier(DESCRIPTORS, Tier.ENTERPRISE)} >= {"rust", "go", "mongodb"}

    def test_to_dict_uses_plain_values(self):
        data = DESCRIPTORS["sqlite"].to_dict()
        assert data["category"] == "database"
        assert data["tier"] == "free"
        assert data["status"] == "implemented"


class TestBuildTable:
    """Test custom table construction."""

    def test_duplicate_ids_rejected(self):
        descriptor = RuntimeDescriptor("py", "Python", Category.LANGUAGE, Tier.FREE, Status.IMPLEMENTED, "0 KB")
        with pytest.raises(ValueError):
            build_table([descriptor, descriptor])

    def test_table_keyed_by_id(self):
        table = build_table([
            RuntimeDescriptor("py", "Python", Category.LANGUAGE, Tier.FREE, Status.IMPLEMENTED, "0 KB"),
            RuntimeDescriptor("cob", "COBOL", Category.LANGUAGE, Tier.PRO, Status.PLANNED, "9 MB"),
        ])
        assert list(table) == ["py", "cob"]
        assert table["cob"].implemented is False
