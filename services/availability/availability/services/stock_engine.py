"""Single entry point for effective stock, conflicts and subrental suggestions"""
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
from datetime import date
import asyncio
import logging

from sqlalchemy.orm import Session

from availability.config import Settings
from availability.exceptions import CalculationTimeout, UpstreamUnavailable
from availability.schemas.filters import ConflictFilter, DateRange, InvalidationScope
from availability.schemas.records import ProviderRecord
from availability.schemas.stock import (
    AvailabilityStatus,
    ConflictAnalysis,
    ConflictReport,
    EffectiveStock,
    StockBreakdown,
    SubrentalSuggestion,
    SuggestionReport,
    UnknownAvailability,
)
from availability.services.booking_aggregator import BookingAggregator, BookingBucket, BookingKey
from availability.services.conflict_analyzer import ConflictAnalyzer, SeverityPolicy
from availability.services.stock_cache import (
    DerivedResultCache,
    InvalidationBus,
    EQUIPMENT_BUCKET,
    VIRTUAL_STOCK_BUCKET,
    CONFLICTS_BUCKET,
    SUGGESTIONS_BUCKET,
    PROVIDERS_BUCKET,
)
from availability.services.stock_calculator import VirtualStockCalculator, unknown_stock
from availability.services.stock_source import StockDataSource, SqlAlchemyStockSource
from availability.services.suggestion_engine import SubrentalSuggestionEngine, SuggestionPolicy

logger = logging.getLogger(__name__)

_Snapshot = Tuple[List[EffectiveStock], Dict[BookingKey, BookingBucket]]


class StockEngine:
    """Service layer for virtual inventory and conflict operations.

    All upstream reads for one call are bulk queries issued concurrently
    (equipment, bookings, subrentals and repairs per chunk of equipment ids).
    Reads are not taken from a single database snapshot, so results are
    best-effort and may be stale as soon as they are returned; the cache
    guarantees only that nothing computed before an acknowledged
    invalidation is served after it.
    """

    def __init__(
        self,
        source: StockDataSource,
        cache: DerivedResultCache,
        bus: Optional[InvalidationBus] = None,
        calculator: Optional[VirtualStockCalculator] = None,
        aggregator: Optional[BookingAggregator] = None,
        analyzer: Optional[ConflictAnalyzer] = None,
        suggestion_engine: Optional[SubrentalSuggestionEngine] = None,
        batch_size: int = 100,
        max_concurrent_batches: int = 4,
        max_date_range_days: int = 366,
        timeout_seconds: Optional[float] = 30.0,
    ):
        self.source = source
        self.cache = cache
        self.bus = bus
        self.calculator = calculator or VirtualStockCalculator()
        self.aggregator = aggregator or BookingAggregator()
        self.analyzer = analyzer or ConflictAnalyzer()
        self.suggestion_engine = suggestion_engine or SubrentalSuggestionEngine()
        self.batch_size = max(1, batch_size)
        self.max_concurrent_batches = max(1, max_concurrent_batches)
        self.max_date_range_days = max_date_range_days
        self.timeout_seconds = timeout_seconds

        if self.bus is not None:
            self.bus.subscribe(self.cache.invalidate)

    # ------------------------------------------------------------------
    # Downstream operations
    # ------------------------------------------------------------------

    async def get_effective_stock(self, equipment_ids: Sequence[UUID], date_range: DateRange) -> List[EffectiveStock]:
        """EffectiveStock for every (equipment, date) pair; unreadable pairs come back with status unknown"""
        equipment_ids = _unique(equipment_ids)
        if not equipment_ids:
            return []
        self._check_days(date_range.days)

        key = (tuple(str(e) for e in equipment_ids), date_range.start, date_range.end)
        cached = self.cache.get(VIRTUAL_STOCK_BUCKET, key)
        if cached is not None:
            return list(cached)

        generation = self.cache.generation(VIRTUAL_STOCK_BUCKET)
        stock, _ = await self._with_deadline(self._snapshot(equipment_ids, [date_range]), "effective stock")
        if _complete(stock):
            self.cache.set(VIRTUAL_STOCK_BUCKET, key, stock, generation)
        return list(stock)

    async def get_conflicts(self, conflict_filter: ConflictFilter) -> List[ConflictAnalysis]:
        """Overbooked (equipment, date) pairs, most severe first

        Raises UpstreamUnavailable when any pair in scope could not be checked;
        use get_conflict_report to receive the conflicts that were found
        together with the unknown pairs.
        """
        report = await self.get_conflict_report(conflict_filter)
        _raise_if_unknown(report.unknown)
        return report.conflicts

    async def get_conflict_report(self, conflict_filter: ConflictFilter) -> ConflictReport:
        """Conflicts for the filter plus every (equipment, date) whose availability is unknown"""
        self._check_days(conflict_filter.days)
        report = await self._with_deadline(self._conflict_report(conflict_filter), "conflicts")
        return report.model_copy(update={"conflicts": list(report.conflicts), "unknown": list(report.unknown)})

    async def get_subrental_suggestions(
        self,
        visible_window: DateRange,
        equipment_ids: Optional[Sequence[UUID]] = None,
        today: Optional[date] = None,
    ) -> List[SubrentalSuggestion]:
        """Ranked providers for actionable conflicts inside the visible window"""
        report = await self.get_suggestion_report(visible_window, equipment_ids=equipment_ids, today=today)
        _raise_if_unknown(report.unknown)
        return report.suggestions

    async def get_suggestion_report(
        self,
        visible_window: DateRange,
        equipment_ids: Optional[Sequence[UUID]] = None,
        today: Optional[date] = None,
    ) -> SuggestionReport:
        """Suggestions for the window plus the pairs that could not be checked for conflicts"""
        self._check_days(visible_window.days)
        report = await self._with_deadline(
            self._suggestion_report(visible_window, equipment_ids, today or date.today()),
            "subrental suggestions"
        )
        return report.model_copy(update={"suggestions": list(report.suggestions), "unknown": list(report.unknown)})

    async def is_overbooked(self, equipment_id: UUID, day: date, additional_usage: int = 0) -> bool:
        stock = await self._single_stock(equipment_id, day)
        return stock.total_used + additional_usage > stock.effective_stock

    async def get_availability(self, equipment_id: UUID, day: date) -> int:
        stock = await self._single_stock(equipment_id, day)
        return max(0, stock.available)

    async def get_stock_breakdown(self, equipment_id: UUID, day: date) -> StockBreakdown:
        """Effective stock of one equipment on one date with the orders and bookings behind it"""
        stock, usage = await self._with_deadline(
            self._snapshot([equipment_id], [DateRange.single(day)]),
            "stock breakdown"
        )
        record = stock[0]
        if not record.is_known:
            raise UpstreamUnavailable("stock", f"availability of {equipment_id} on {day} could not be determined")

        bucket = usage.get((equipment_id, day))
        return StockBreakdown(
            equipment_id=equipment_id,
            date=day,
            effective_stock=record,
            contributions=record.contributions,
            booking_details=list(bucket.bookings) if bucket else [],
        )

    def invalidate(self, scope: InvalidationScope) -> None:
        """Drop every cached result the mutation could affect; returns once the cache is clean"""
        if self.bus is not None:
            self.bus.publish(scope)
        else:
            self.cache.invalidate(scope)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _conflict_report(self, conflict_filter: ConflictFilter) -> ConflictReport:
        key = conflict_filter.cache_key()
        cached = self.cache.get(CONFLICTS_BUCKET, key)
        if cached is not None:
            return cached

        generation = self.cache.generation(CONFLICTS_BUCKET)
        equipment_ids = _unique(conflict_filter.equipment_ids or await self._all_equipment_ids())
        if not equipment_ids:
            return ConflictReport()

        windows = conflict_filter.windows()
        stock, usage = await self._snapshot(equipment_ids, windows)

        conflicts = self.analyzer.analyze(stock, usage)
        if conflict_filter.severity:
            conflicts = [c for c in conflicts if c.severity in conflict_filter.severity]
        if conflict_filter.project_ids:
            projects = set(conflict_filter.project_ids)
            conflicts = [
                c for c in conflicts
                if any(booking.project_id in projects for booking in c.affected_bookings)
            ]
        conflicts = self.analyzer.prioritize(conflicts)

        unknown = [
            UnknownAvailability(equipment_id=r.equipment_id, equipment_name=r.equipment_name, date=r.date)
            for r in stock if not r.is_known
        ]
        report = ConflictReport(
            status=AvailabilityStatus.UNKNOWN if unknown else AvailabilityStatus.OK,
            conflicts=conflicts,
            unknown=unknown,
        )

        logger.info(
            f"Found {len(conflicts)} conflicts across {len(equipment_ids)} equipment "
            f"in {conflict_filter.days} days ({len(windows)} windows)"
        )
        if unknown:
            logger.warning(
                f"Conflict result left uncached: availability unknown for {len(unknown)} equipment/date pairs"
            )
        else:
            self.cache.set(CONFLICTS_BUCKET, key, report, generation)
        return report

    async def _suggestion_report(
        self,
        visible_window: DateRange,
        equipment_ids: Optional[Sequence[UUID]],
        today: date,
    ) -> SuggestionReport:
        key = (
            visible_window.start,
            visible_window.end,
            tuple(sorted(str(e) for e in equipment_ids)) if equipment_ids else None,
            today,
        )
        cached = self.cache.get(SUGGESTIONS_BUCKET, key)
        if cached is not None:
            return cached

        generation = self.cache.generation(SUGGESTIONS_BUCKET)
        conflicts = await self._conflict_report(ConflictFilter(
            equipment_ids=list(equipment_ids) if equipment_ids else None,
            date_range=visible_window,
        ))
        providers = await self._providers()

        report = SuggestionReport(
            status=conflicts.status,
            suggestions=self.suggestion_engine.suggest(conflicts.conflicts, providers, visible_window, today=today),
            unknown=conflicts.unknown,
        )
        if not report.unknown:
            self.cache.set(SUGGESTIONS_BUCKET, key, report, generation)
        return report

    async def _single_stock(self, equipment_id: UUID, day: date) -> EffectiveStock:
        records = await self.get_effective_stock([equipment_id], DateRange.single(day))
        record = records[0]
        if not record.is_known:
            raise UpstreamUnavailable("stock", f"availability of {equipment_id} on {day} could not be determined")
        return record

    async def _snapshot(self, equipment_ids: List[UUID], windows: Sequence[DateRange]) -> _Snapshot:
        chunks = [
            equipment_ids[i:i + self.batch_size]
            for i in range(0, len(equipment_ids), self.batch_size)
        ]
        semaphore = asyncio.Semaphore(self.max_concurrent_batches)

        async def run(chunk: List[UUID], window: DateRange) -> _Snapshot:
            async with semaphore:
                return await self._snapshot_chunk(chunk, window)

        results = await asyncio.gather(*(run(chunk, window) for chunk in chunks for window in windows))

        stock: List[EffectiveStock] = []
        usage: Dict[BookingKey, BookingBucket] = {}
        for chunk_stock, chunk_usage in results:
            stock.extend(chunk_stock)
            usage.update(chunk_usage)

        if len(windows) > 1:
            position = {equipment_id: i for i, equipment_id in enumerate(equipment_ids)}
            stock.sort(key=lambda record: (position[record.equipment_id], record.date))
        return stock, usage

    async def _snapshot_chunk(self, equipment_ids: List[UUID], window: DateRange) -> _Snapshot:
        try:
            equipment, bookings, subrental_items, repair_items = await asyncio.gather(
                asyncio.to_thread(self.source.fetch_equipment, equipment_ids),
                asyncio.to_thread(self.source.fetch_bookings, equipment_ids, window),
                asyncio.to_thread(self.source.fetch_subrental_items, equipment_ids, window),
                asyncio.to_thread(self.source.fetch_repair_items, equipment_ids, window),
            )
        except UpstreamUnavailable as e:
            logger.error(
                f"Availability unknown for {len(equipment_ids)} equipment between "
                f"{window.start} and {window.end}: {e}"
            )
            return unknown_stock(equipment_ids, window), {}

        usage = self.aggregator.aggregate(bookings, window)
        stock = self.calculator.calculate_batch(
            equipment_ids, window, equipment, subrental_items, repair_items, usage
        )
        return stock, usage

    async def _all_equipment_ids(self) -> List[UUID]:
        cached = self.cache.get(EQUIPMENT_BUCKET, "ids")
        if cached is not None:
            return cached
        generation = self.cache.generation(EQUIPMENT_BUCKET)
        equipment_ids = await asyncio.to_thread(self.source.list_equipment_ids)
        self.cache.set(EQUIPMENT_BUCKET, "ids", equipment_ids, generation)
        return equipment_ids

    async def _providers(self) -> List[ProviderRecord]:
        cached = self.cache.get(PROVIDERS_BUCKET, "all")
        if cached is not None:
            return cached
        generation = self.cache.generation(PROVIDERS_BUCKET)
        providers = await asyncio.to_thread(self.source.fetch_providers)
        self.cache.set(PROVIDERS_BUCKET, "all", providers, generation)
        return providers

    async def _with_deadline(self, coro, operation: str):
        if self.timeout_seconds is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Calculation of {operation} exceeded {self.timeout_seconds}s; discarding partial results")
            raise CalculationTimeout(f"Calculation of {operation} timed out after {self.timeout_seconds}s") from None

    def _check_days(self, days: int) -> None:
        if days > self.max_date_range_days:
            raise ValueError(
                f"Date range of {days} days exceeds the maximum of {self.max_date_range_days}"
            )


def _raise_if_unknown(unknown: Sequence[UnknownAvailability]) -> None:
    if unknown:
        raise UpstreamUnavailable(
            "stock",
            f"availability could not be determined for {len(unknown)} equipment/date pairs"
        )


def _unique(equipment_ids: Sequence[UUID]) -> List[UUID]:
    return list(dict.fromkeys(equipment_ids))


def _complete(stock: Sequence[EffectiveStock]) -> bool:
    return all(record.is_known for record in stock)


def build_stock_engine(
    settings: Settings,
    session_factory: Callable[[], Session],
    bus: Optional[InvalidationBus] = None,
) -> StockEngine:
    """Wire an engine from settings; the cache and bus are created here and owned by the engine"""
    return StockEngine(
        source=SqlAlchemyStockSource(session_factory),
        cache=DerivedResultCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        ),
        bus=bus or InvalidationBus(),
        analyzer=ConflictAnalyzer(
            severity_policy=SeverityPolicy(
                high_ratio=settings.severity_high_ratio,
                medium_ratio=settings.severity_medium_ratio,
            ),
            daily_unit_cost=settings.subrental_daily_unit_cost,
        ),
        suggestion_engine=SubrentalSuggestionEngine(SuggestionPolicy(
            min_deficit=settings.suggestion_min_deficit,
            min_bookings=settings.suggestion_min_bookings,
            max_providers=settings.suggestion_max_providers,
            daily_unit_cost=settings.subrental_daily_unit_cost,
        )),
        batch_size=settings.stock_batch_size,
        max_concurrent_batches=settings.max_concurrent_batches,
        max_date_range_days=settings.max_date_range_days,
        timeout_seconds=settings.calculation_timeout_seconds,
    )
