"""Base classes and data model for TrailsIndex components"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# ERRORS
# =============================================================================

class PipelineError(Exception):
    """Base class for pipeline errors"""


class FetchError(PipelineError):
    """Network failure or non-2xx response from an external source"""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class ParseError(PipelineError):
    """Unexpected document shape from an external source"""


class StorageError(PipelineError):
    """An artifact could not be read or written"""


# =============================================================================
# ENUMS
# =============================================================================

class Discipline(str, Enum):
    FOREST = "forest"
    SPRINT = "sprint"


class RankingType(str, Enum):
    """Ranking table families published by the event-source"""
    ELITE_FOREST = "elite_forest"
    ELITE_SPRINT = "elite_sprint"
    AGE_FOREST = "age_forest"
    AGE_SPRINT = "age_sprint"

    @property
    def discipline(self) -> Discipline:
        if self in (RankingType.ELITE_FOREST, RankingType.AGE_FOREST):
            return Discipline.FOREST
        return Discipline.SPRINT

    @classmethod
    def split_category_key(cls, key: str) -> Optional[Tuple["RankingType", str]]:
        """
        Split a category key like "age_forest_M21" into (type, class name).

        Returns None if the key does not start with a known type.
        """
        for ranking_type in cls:
            prefix = f"{ranking_type.value}_"
            if key.startswith(prefix) and len(key) > len(prefix):
                return ranking_type, key[len(prefix):]
        return None


class AthleteType(str, Enum):
    SPRINTER = "sprinter"
    FORESTER = "forester"
    ALLROUNDER = "allrounder"
    UNKNOWN = "unknown"


# =============================================================================
# EVENT-SOURCE RANKINGS
# =============================================================================

@dataclass(frozen=True)
class RawEventScore:
    """One cell of a ranking row: header text (date + event name) and points"""
    event_name: str
    points: float


@dataclass(frozen=True)
class RawRankingRow:
    """One athlete's standing in one (ranking type, class) table"""
    rank: int
    athlete_name: str
    club: str
    total_points: float
    is_active: bool
    event_scores: Tuple[RawEventScore, ...] = ()


@dataclass(frozen=True)
class RankingCategory:
    """All rows of one scraped ranking table"""
    ranking_type: RankingType
    class_name: str
    rows: Tuple[RawRankingRow, ...]

    @property
    def key(self) -> str:
        return f"{self.ranking_type.value}_{self.class_name}"


@dataclass(frozen=True)
class EventScore:
    """Parsed event score; date is YYYY-MM-DD or '' when unparseable"""
    date: str
    event_name: str
    points: float


@dataclass
class RankingRef:
    """One category appearance of an athlete"""
    ranking_type: RankingType
    class_name: str
    rank: int
    total_points: float
    is_active: bool


@dataclass
class RankingAppearance(RankingRef):
    """Category appearance with the full event history (detail views only)"""
    events: List[EventScore] = field(default_factory=list)


@dataclass
class AthleteSummary:
    """Lightweight per-athlete record stored in athlete-index.json"""
    name: str
    clubs: List[str]
    appearances: List[RankingRef]
    best_rank: int
    best_points: float
    forest_count: int
    sprint_count: int
    type: AthleteType

    @property
    def is_active(self) -> bool:
        return any(a.is_active for a in self.appearances)


@dataclass
class AthleteProfile:
    """AthleteSummary plus per-category event histories, built on demand"""
    summary: AthleteSummary
    rankings: List[RankingAppearance]

    @property
    def name(self) -> str:
        return self.summary.name


@dataclass
class ClubMember:
    name: str
    best_rank: int
    best_points: float
    ranking_type: RankingType
    class_name: str
    athlete_type: AthleteType
    is_active: bool
    category_count: int
    recent_form: int
    consistency: int
    event_count: int


@dataclass
class ClubProfile:
    name: str
    member_count: int
    active_count: int
    avg_points: float
    members: List[ClubMember]
    forest_count: int
    sprint_count: int


# =============================================================================
# EVENTS (BOTH SOURCES)
# =============================================================================

@dataclass
class PrimaryEvent:
    """
    Event listing from the event-source (events.json).

    Keys this model does not know about are kept in ``extra`` so that a
    read-modify-write cycle never drops fields owned by other jobs.
    """
    joe_event_id: int
    name: str
    date: str
    prefecture: str = ""
    entry_status: str = "none"
    tags: List[str] = field(default_factory=list)
    joe_url: str = ""
    end_date: Optional[str] = None
    lapcenter_event_id: Optional[int] = None
    lapcenter_url: Optional[str] = None
    recently_updated: Optional[bool] = None
    update_label: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_linked(self) -> bool:
        return self.lapcenter_event_id is not None

    @property
    def coordinates_checked(self) -> bool:
        """lat/lng have been looked up; both are None when the page had none"""
        return 'lat' in self.extra

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        lat, lng = self.extra.get('lat'), self.extra.get('lng')
        if lat is None or lng is None:
            return None
        return lat, lng


@dataclass(frozen=True)
class SecondaryEvent:
    """Event listing from the timing-source"""
    event_id: int
    name: str
    date: str


# =============================================================================
# TIMING-SOURCE RUNNERS
# =============================================================================

@dataclass(frozen=True)
class TimingClass:
    class_id: int
    class_name: str


@dataclass(frozen=True)
class TimingRunner:
    """One runner row of a timing-source split list"""
    name: str
    club: str
    rank: Optional[int]
    result: str
    speed: float
    miss_rate: float


@dataclass(frozen=True)
class TimingRecord:
    """One athlete's cruising speed / miss rate at one timing-source event"""
    date: str
    event_name: str
    class_name: str
    speed: float
    miss_rate: float
    discipline: Discipline

    @property
    def event_key(self) -> Tuple[str, str]:
        return (self.date, self.event_name)


# =============================================================================
# STORAGE
# =============================================================================

class BaseStore(ABC):
    """Base class for JSON artifact stores"""

    @abstractmethod
    def read_json(self, name: str, default: Any = None) -> Any:
        """Read and decode an artifact; return default if it does not exist"""
        pass

    @abstractmethod
    def write_json(self, name: str, data: Any) -> None:
        """Encode and write an artifact as a single complete write"""
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def list_names(self, prefix: str) -> List[str]:
        """List artifact names under a prefix"""
        pass
