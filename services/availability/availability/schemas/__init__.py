# Package exports - these allow cleaner imports like:
# from availability.schemas import EffectiveStock, ConflictFilter
from availability.schemas.records import (
    EquipmentRecord,
    BookingRecord,
    SubrentalItemRecord,
    RepairItemRecord,
    ProviderRecord,
)
from availability.schemas.stock import (
    AvailabilityStatus,
    Severity,
    StockContribution,
    EffectiveStock,
    BookingDetail,
    ConflictSolution,
    ConflictAnalysis,
    UnknownAvailability,
    ConflictReport,
    StockBreakdown,
    ProviderSuggestion,
    SubrentalSuggestion,
    SuggestionReport,
    SuggestionListResponse,
    AvailabilityResponse,
    OverbookedResponse,
)
from availability.schemas.filters import DateRange, ConflictFilter, InvalidationKind, InvalidationScope
