"""
Save Editor Data Classes

Read-only projections of a Sims 4 save (households and their members) and
the request/result types of the tray export.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from simtray.formats.proto.persistence import HouseholdData, SimData


# ============================================================================
# Save catalog
# ============================================================================

@dataclass(frozen=True)
class SaveFileEntry:
    """A primary save slot file on disk."""
    file_path: str
    file_name: str
    last_write_time: datetime
    length_bytes: int

    @property
    def size_mb(self) -> float:
        return max(1.0, self.length_bytes / 1024 / 1024)

    @property
    def display_label(self) -> str:
        size = f"{self.size_mb:.2f}".rstrip("0").rstrip(".")
        return f"{self.file_name} ({self.last_write_time:%Y-%m-%d %H:%M}, {size} MB)"


# ============================================================================
# Household projection
# ============================================================================

@dataclass(frozen=True)
class MemberView:
    """One resolved household member."""
    sim_id: int
    first_name: str = ""
    last_name: str = ""
    age: int = 0
    gender: int = 0
    species: int = 0
    occult_flags: int = 0
    is_human_like: bool = False
    can_render_thumbnail: bool = False

    @property
    def full_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name if full_name else f"Sim {self.sim_id:X}"

    @property
    def subtitle(self) -> str:
        return f"Age {self.age}, Gender {self.gender}, Species {self.species}"


@dataclass(frozen=True)
class HouseholdView:
    """
    A household as presented to the user, with its export verdict.

    ``size`` counts the member ids listed by the household record, which may
    exceed ``len(members)`` when some ids have no matching sim.
    """
    household_id: int
    name: str = ""
    description: str = ""
    funds: int = 0
    home_zone_id: int = 0
    home_zone_name: str = ""
    size: int = 0
    members: tuple = ()
    can_export: bool = False
    export_block_reason: str = ""

    @property
    def display_label(self) -> str:
        if not self.name.strip():
            return f"Household {self.household_id:X}"
        return f"{self.name} ({self.size})"

    @property
    def location_label(self) -> str:
        if not self.home_zone_name.strip():
            return f"Zone 0x{self.home_zone_id:X}"
        return self.home_zone_name

    @property
    def has_export_block_reason(self) -> bool:
        return bool(self.export_block_reason.strip())


@dataclass
class SaveSnapshot:
    """Everything one load() of a save produced."""
    save_path: str
    slot_name: str = ""
    last_write_time: Optional[datetime] = None
    households: List[HouseholdView] = field(default_factory=list)

    # Raw records, kept so export re-encodes the game's own data
    _raw_households: Dict[int, HouseholdData] = field(default_factory=dict, repr=False)
    _raw_sims: Dict[int, SimData] = field(default_factory=dict, repr=False)

    def find_household(self, household_id: int) -> Optional[HouseholdView]:
        for household in self.households:
            if household.household_id == household_id:
                return household
        return None

    def raw_household(self, household_id: int) -> Optional[HouseholdData]:
        return self._raw_households.get(household_id)

    def raw_sim(self, sim_id: int) -> Optional[SimData]:
        return self._raw_sims.get(sim_id)


@dataclass
class SaveLoadResult:
    """Result of a non-raising save load."""
    success: bool
    snapshot: Optional[SaveSnapshot] = None
    error: str = ""


# ============================================================================
# Tray export
# ============================================================================

@dataclass
class ExportRequest:
    """What to export, from where and where to."""
    source_save_path: str
    household_id: int
    export_root: str
    creator_name: str = ""
    creator_id: int = 0
    generate_thumbnails: bool = True


@dataclass
class ExportResult:
    """Outcome of a tray export. A failed export leaves no directory behind."""
    succeeded: bool
    export_directory: str = ""
    instance_id_hex: str = ""
    written_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'ExportResult':
        return cls(succeeded=False, error=error)
