"""
Runtime Descriptor Table

Static metadata for every engine the studio knows about. This table is the
only place new engines are registered; the registry resolves ids against it
and never mutates it.

@.architecture
Incoming: core/runtime/registry.py, api/v1/endpoints/runtimes.py --- {descriptor id lookups, table queries}
Processing: RuntimeDescriptor, Tier.covers(), by_status(), by_tier(), languages(), databases(), stats() --- {3 jobs: availability_policy, catalog_queries, tier_ordering}
Outgoing: core/runtime/registry.py, api/v1/endpoints/runtimes.py --- {RuntimeDescriptor instances, Dict[str, int] stats}
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping


class Category(str, Enum):
    """Descriptor categories"""
    LANGUAGE = "language"
    DATABASE = "database"


class Tier(str, Enum):
    """Entitlement tiers, ordered from least to most privileged"""
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def covers(self, required: "Tier") -> bool:
        """True when an entitlement of this tier may use ``required``."""
        return self.rank >= Tier(required).rank


_TIER_RANK = {Tier.FREE: 0, Tier.PRO: 1, Tier.ENTERPRISE: 2}


class Status(str, Enum):
    """Implementation status"""
    IMPLEMENTED = "implemented"
    PLANNED = "planned"


@dataclass(frozen=True)
class RuntimeDescriptor:
    """Immutable description of one supported engine."""
    id: str
    display_name: str
    category: Category
    tier: Tier
    status: Status
    size_estimate: str
    lazy: bool = True
    description: str = ""
    icon: str = ""

    @property
    def implemented(self) -> bool:
        return self.status is Status.IMPLEMENTED

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "category": self.category.value,
            "tier": self.tier.value,
            "status": self.status.value,
            "size_estimate": self.size_estimate,
            "lazy": self.lazy,
            "description": self.description,
            "icon": self.icon,
        }


def _d(
    id: str,
    display_name: str,
    category: Category,
    tier: Tier,
    status: Status,
    size_estimate: str,
    description: str,
    icon: str = "",
    lazy: bool = True,
) -> RuntimeDescriptor:
    return RuntimeDescriptor(
        id=id,
        display_name=display_name,
        category=category,
        tier=tier,
        status=status,
        size_estimate=size_estimate,
        lazy=lazy,
        description=description,
        icon=icon,
    )


L, D = Category.LANGUAGE, Category.DATABASE
FREE, PRO, ENT = Tier.FREE, Tier.PRO, Tier.ENTERPRISE
IMPL, PLAN = Status.IMPLEMENTED, Status.PLANNED

_DESCRIPTORS: List[RuntimeDescriptor] = [
    # Implemented
    _d("python", "Python", L, FREE, IMPL, "0 KB (in-process)", "Python expression and statement evaluator", "🐍", lazy=False),
    _d("json", "JSON", L, FREE, IMPL, "0 KB (native)", "JSON validation and pretty-printing", "📋", lazy=False),
    _d("yaml", "YAML", L, FREE, IMPL, "150 KB", "YAML validation via PyYAML", "📄"),
    _d("sqlite", "SQLite", D, FREE, IMPL, "0 KB (stdlib)", "SQLite 3.x in-memory database", "🗄️"),
    # Planned
    _d("javascript", "JavaScript", L, FREE, PLAN, "0 KB (native)", "JavaScript execution", "🟨"),
    _d("typescript", "TypeScript", L, FREE, PLAN, "4 MB", "TypeScript with type checking", "🔷"),
    _d("lua", "Lua", L, FREE, PLAN, "200 KB", "Lua 5.4", "🌙"),
    _d("r", "R", L, PRO, PLAN, "10 MB", "R 4.3 for statistics and data science", "📊"),
    _d("ruby", "Ruby", L, PRO, PLAN, "15 MB", "Ruby 3.2", "💎"),
    _d("php", "PHP", L, PRO, PLAN, "5 MB", "PHP 8.x for web development", "🐘"),
    _d("scheme", "Scheme", L, PRO, PLAN, "500 KB", "Scheme (Lisp dialect)", "🎓"),
    _d("commonlisp", "Common Lisp", L, PRO, PLAN, "10 MB", "Common Lisp", "🎓"),
    _d("basic", "BASIC", L, FREE, PLAN, "1 MB", "BASIC programming", "📺"),
    _d("haskell", "Haskell", L, PRO, PLAN, "18 MB", "Haskell", "🎭"),
    _d("ocaml", "OCaml", L, PRO, PLAN, "12 MB", "OCaml", "🐫"),
    _d("c", "C", L, ENT, PLAN, "20 MB", "C via clang-wasm", "⚙️"),
    _d("cpp", "C++", L, ENT, PLAN, "20 MB", "C++ via clang-wasm", "⚙️"),
    _d("rust", "Rust", L, ENT, PLAN, "25 MB", "Rust", "🦀"),
    _d("go", "Go", L, ENT, PLAN, "15 MB", "Go via TinyGo", "🐹"),
    _d("java", "Java", L, ENT, PLAN, "30 MB", "Java", "☕"),
    _d("julia", "Julia", L, ENT, PLAN, "50 MB", "Julia scientific computing", "🔬"),
    _d("duckdb", "DuckDB", D, PRO, PLAN, "5 MB", "DuckDB analytics database", "🦆"),
    _d("postgresql", "PostgreSQL", D, PRO, PLAN, "3 MB", "PostgreSQL via PGLite", "🐘"),
    _d("redis", "Redis", D, PRO, PLAN, "3 MB", "Redis in-memory database", "🔴"),
    _d("mongodb", "MongoDB", D, ENT, PLAN, "10 MB", "MongoDB document database", "🍃"),
]

del L, D, FREE, PRO, ENT, IMPL, PLAN

DESCRIPTORS: Mapping[str, RuntimeDescriptor] = MappingProxyType(
    {descriptor.id: descriptor for descriptor in _DESCRIPTORS}
)


def build_table(descriptors: Iterable[RuntimeDescriptor]) -> Mapping[str, RuntimeDescriptor]:
    """Freeze an id -> descriptor table, rejecting duplicate ids."""
    table: Dict[str, RuntimeDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.id in table:
            raise ValueError(f"Duplicate runtime descriptor id: {descriptor.id}")
        table[descriptor.id] = descriptor
    return MappingProxyType(table)


def by_status(table: Mapping[str, RuntimeDescriptor], status: Status) -> List[RuntimeDescriptor]:
    return [d for d in table.values() if d.status is Status(status)]


def by_tier(table: Mapping[str, RuntimeDescriptor], tier: Tier) -> List[RuntimeDescriptor]:
    return [d for d in table.values() if d.tier is Tier(tier)]


def languages(table: Mapping[str, RuntimeDescriptor]) -> List[RuntimeDescriptor]:
    return [d for d in table.values() if d.category is Category.LANGUAGE]


def databases(table: Mapping[str, RuntimeDescriptor]) -> List[RuntimeDescriptor]:
    return [d for d in table.values() if d.category is Category.DATABASE]


def stats(table: Mapping[str, RuntimeDescriptor]) -> Dict[str, int]:
    """Counts by status, category and tier."""
    return {
        "total": len(table),
        "implemented": len(by_status(table, Status.IMPLEMENTED)),
        "planned": len(by_status(table, Status.PLANNED)),
        "languages": len(languages(table)),
        "databases": len(databases(table)),
        "free": len(by_tier(table, Tier.FREE)),
        "pro": len(by_tier(table, Tier.PRO)),
        "enterprise": len(by_tier(table, Tier.ENTERPRISE)),
    }
