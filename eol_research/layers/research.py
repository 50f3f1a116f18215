"""
Research Orchestrator for the EOL Research engine.
Drives one product through the manufacturer-site pass, the third-party fallback pass,
estimation and scoring, and runs batches on a bounded worker pool.
"""
import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, List, Optional, Set

import structlog

from eol_research.adapters.page_fetcher import PageFetcher
from eol_research.adapters.search_client import RateLimitedSearchClient
from eol_research.config import config
from eol_research.errors import ConfigurationError, FetchError, NoResultError, SearchError
from eol_research.layers.confidence import ConfidenceScorer, best_tier
from eol_research.layers.domain_trust import DomainTrustLayer, ManufacturerResolution
from eol_research.layers.extraction import ExtractionPipeline
from eol_research.layers.keywords import mentions_eol
from eol_research.layers.query_builder import SearchQueryBuilder
from eol_research.layers.reconciliation import (
    MilestoneAccumulator,
    ReconciliationLayer,
    select_profile,
)
from eol_research.models import (
    CORE_MILESTONES,
    BatchProgress,
    DataSourceRecord,
    MilestoneField,
    MilestoneSet,
    ProductQuery,
    ResearchResult,
    ResearchStatus,
    SearchHit,
    SourceTier,
)
from eol_research.utils.dates import DateNormalizer, DateWindow
from eol_research.utils.logger import LayerLogger
from eol_research.utils.variants import compile_variant_pattern, generate_variants


ProgressSink = Callable[[BatchProgress], Any]


class ResearchState(str, Enum):
    """Steps of one product's research."""
    IDLE = "idle"
    SEARCHING_VENDOR = "searching_vendor"
    DATES_FOUND = "dates_found"
    VENDOR_PAGE_FOUND_NO_EOL = "vendor_page_found_no_eol"
    SEARCHING_THIRD_PARTY = "searching_third_party"
    ESTIMATING = "estimating"
    SCORING = "scoring"
    DONE = "done"


@dataclass
class _ProductRun:
    """Working state for one product; discarded once the result is built."""
    query: ProductQuery
    resolution: ManufacturerResolution
    variants: List[str]
    page_dates: DateNormalizer
    snippet_dates: DateNormalizer
    cancel: Optional[asyncio.Event]
    accumulator: MilestoneAccumulator = field(default_factory=MilestoneAccumulator)
    seen_urls: Set[str] = field(default_factory=set)
    vendor_mentions: List[str] = field(default_factory=list)
    state: ResearchState = ResearchState.IDLE

    @property
    def manufacturer(self) -> Optional[str]:
        return self.resolution.manufacturer

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()


class ResearchOrchestrator:
    """
    Research Orchestrator - one ResearchResult per ProductQuery.

    Flow:
    1. SEARCHING_VENDOR: site: queries against the manufacturer's domains
    2. Dates found -> estimate; vendor page without EOL dates -> current
       product; nothing -> SEARCHING_THIRD_PARTY
    3. SEARCHING_THIRD_PARTY stops early once end of sale and last day of
       support are both known
    4. ESTIMATING, SCORING, DONE

    Collaborators are injected so a process (or a test) builds them once;
    the search client's pacing gate and the fetcher's page cache are the only
    state shared between concurrently researched products.

    Only ConfigurationError escapes research() and research_batch(); any
    other failure becomes a status=error result.
    """

    def __init__(
        self,
        search_client: Optional[RateLimitedSearchClient] = None,
        fetcher: Optional[PageFetcher] = None,
        trust: Optional[DomainTrustLayer] = None,
        query_builder: Optional[SearchQueryBuilder] = None,
        pipeline: Optional[ExtractionPipeline] = None,
        reconciliation: Optional[ReconciliationLayer] = None,
        scorer: Optional[ConfidenceScorer] = None,
        today: Optional[date] = None,
        batch_concurrency: Optional[int] = None,
    ):
        self.search_client = search_client or RateLimitedSearchClient()
        self.fetcher = fetcher or PageFetcher()
        self.trust = trust or DomainTrustLayer()
        self.query_builder = query_builder or SearchQueryBuilder()
        self.pipeline = pipeline or ExtractionPipeline()
        self.reconciliation = reconciliation or ReconciliationLayer()
        self.scorer = scorer or ConfidenceScorer()
        self.today = today
        self.batch_concurrency = batch_concurrency or config.BATCH_CONCURRENCY
        self.logger = LayerLogger("research_orchestrator")

    async def research(
        self,
        query: ProductQuery,
        cancel: Optional[asyncio.Event] = None,
    ) -> ResearchResult:
        """
        Research lifecycle milestones for one product.

        Args:
            query: The product to research
            cancel: Optional event; when set, searching stops at the next
                query or page boundary and the result is built from what was found

        Returns:
            ResearchResult (never raises for per-product failures)

        Raises:
            ConfigurationError: search credentials are missing
        """
        self.search_client.ensure_configured()

        with structlog.contextvars.bound_contextvars(product_id=query.product_id):
            self.logger.log_action("research", "started", manufacturer_hint=query.manufacturer)
            try:
                result = await self._research(query, cancel)
            except ConfigurationError:
                raise
            except Exception as e:
                self.logger.log_error(
                    f"Research failed: {str(e)}",
                    error_type=type(e).__name__,
                )
                return ResearchResult(
                    product_id=query.product_id,
                    manufacturer=query.manufacturer,
                    status=ResearchStatus.ERROR,
                    message=f"Research failed: {str(e)}",
                )

            self.logger.log_action(
                "research",
                "completed",
                result_status=result.status.value,
                confidence=result.overall_confidence,
                fields=result.get_present_fields(),
            )
            return result

    async def research_batch(
        self,
        queries: List[ProductQuery],
        progress_sink: Optional[ProgressSink] = None,
        cancel: Optional[asyncio.Event] = None,
        concurrency: Optional[int] = None,
    ) -> List[ResearchResult]:
        """
        Research many products on a bounded worker pool.

        progress_sink (sync or async callable) receives a BatchProgress after
        every product, and a final event flagged cancelled if the batch was
        cancelled. Products not started before cancellation are skipped; the
        returned list holds the researched products in input order.

        Raises:
            ConfigurationError: search credentials are missing (nothing is researched)
        """
        self.search_client.ensure_configured()

        total = len(queries)
        semaphore = asyncio.Semaphore(concurrency or self.batch_concurrency)
        results: List[Optional[ResearchResult]] = [None] * total
        counters = {"processed": 0, "success": 0, "failed": 0, "dates_found": 0}

        self.logger.log_action("research_batch", "started", total=total)

        async def worker(index: int, query: ProductQuery) -> None:
            async with semaphore:
                if cancel is not None and cancel.is_set():
                    return
                result = await self.research(query, cancel)
                results[index] = result

                counters["processed"] += 1
                if result.status == ResearchStatus.ERROR:
                    counters["failed"] += 1
                else:
                    counters["success"] += 1
                if result.status == ResearchStatus.FOUND:
                    counters["dates_found"] += 1

                await self._emit(progress_sink, BatchProgress(
                    processed=counters["processed"],
                    total=total,
                    current_product_id=query.product_id,
                    success=counters["success"],
                    failed=counters["failed"],
                    dates_found_so_far=counters["dates_found"],
                ))

        await asyncio.gather(*(worker(i, q) for i, q in enumerate(queries)))

        cancelled = cancel is not None and cancel.is_set()
        if cancelled:
            self.logger.log_decision(
                decision="batch_cancelled",
                reason="cancellation requested",
                processed=counters["processed"],
                total=total,
            )
            await self._emit(progress_sink, BatchProgress(
                processed=counters["processed"],
                total=total,
                success=counters["success"],
                failed=counters["failed"],
                dates_found_so_far=counters["dates_found"],
                cancelled=True,
            ))

        self.logger.log_action("research_batch", "completed", cancelled=cancelled, **counters)
        return [r for r in results if r is not None]

    async def _emit(self, sink: Optional[ProgressSink], event: BatchProgress) -> None:
        if sink is None:
            return
        try:
            outcome = sink(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.log_error(f"Progress sink failed: {str(e)}", error_type="progress_sink_error")

    # ------------------------------------------------------------------
    # Single product
    # ------------------------------------------------------------------

    async def _research(self, query: ProductQuery, cancel: Optional[asyncio.Event]) -> ResearchResult:
        resolution = self.trust.resolve_manufacturer(query)
        plan = self.query_builder.build(query, resolution)
        day_first = self.trust.is_day_first(resolution.manufacturer)
        today = self.today or date.today()

        run = _ProductRun(
            query=query,
            resolution=resolution,
            variants=generate_variants(query.product_id, resolution.manufacturer),
            page_dates=DateNormalizer(DateWindow.fixed(), day_first=day_first),
            snippet_dates=DateNormalizer(
                DateWindow.relative(today, config.SNIPPET_YEARS_BACK),
                day_first=day_first,
            ),
            cancel=cancel,
        )

        self._transition(run, ResearchState.SEARCHING_VENDOR)
        await self._search_pass(run, plan.vendor_queries, vendor_pass=True)

        if run.accumulator.has_any(*CORE_MILESTONES):
            self._transition(run, ResearchState.DATES_FOUND)
        elif run.vendor_mentions:
            self._transition(run, ResearchState.VENDOR_PAGE_FOUND_NO_EOL)
            return self._current_product_result(run)
        elif run.cancelled:
            self.logger.log_decision(decision="skip_third_party", reason="cancelled")
        else:
            self._transition(run, ResearchState.SEARCHING_THIRD_PARTY)
            await self._search_pass(run, plan.third_party_queries, vendor_pass=False)

        return self._finalize(run)

    def _transition(self, run: _ProductRun, state: ResearchState) -> None:
        self.logger.log_decision(
            decision="state_transition",
            reason=f"{run.state.value} -> {state.value}",
        )
        run.state = state

    async def _search_pass(self, run: _ProductRun, queries: List[str], vendor_pass: bool) -> None:
        num_results = config.SEARCH_RESULTS_VENDOR if vendor_pass else config.SEARCH_RESULTS_THIRD_PARTY

        for query_text in queries:
            if run.cancelled:
                self.logger.log_decision(decision="stop_searching", reason="cancelled", query=query_text)
                return
            if run.accumulator.has(MilestoneField.END_OF_SALE, MilestoneField.LAST_DAY_OF_SUPPORT):
                self.logger.log_decision(
                    decision="early_exit",
                    reason="end of sale and last day of support both known",
                    skipped_query=query_text,
                )
                return

            try:
                hits = await self.search_client.search(query_text, num_results)
            except SearchError as e:
                self.logger.log_fallback(
                    from_source="search",
                    to_source="next_query",
                    reason=str(e),
                    query=query_text,
                )
                continue

            for hit in hits:
                if run.cancelled:
                    return
                await self._process_hit(run, hit, vendor_pass)

    async def _process_hit(self, run: _ProductRun, hit: SearchHit, vendor_pass: bool) -> None:
        if hit.url in run.seen_urls:
            return
        run.seen_urls.add(hit.url)

        tier = self.trust.classify(hit.url, run.manufacturer)
        if tier == SourceTier.DISALLOWED or (vendor_pass and tier != SourceTier.VENDOR):
            self.logger.log_decision(decision="skip_hit", reason=f"tier={tier.value}", url=hit.url)
            return
        if tier == SourceTier.THIRD_PARTY and not self._is_eol_hit(run, hit):
            self.logger.log_decision(decision="skip_hit", reason="not an EOL page for this product", url=hit.url)
            return

        snippet_text = f"{hit.title}\n{hit.snippet}\n{hit.url}"
        text, normalizer = snippet_text, run.snippet_dates

        if self.trust.should_fetch(hit.url, tier):
            try:
                page = await self.fetcher.fetch(hit.url)
                text, normalizer = page.text, run.page_dates
            except FetchError as e:
                self.logger.log_fallback(
                    from_source="page",
                    to_source="snippet",
                    reason=e.reason,
                    url=hit.url,
                )

        extraction = self.pipeline.extract(text, run.variants, normalizer, source=hit.url)

        if extraction.product_mentioned and tier == SourceTier.VENDOR and hit.url not in run.vendor_mentions:
            run.vendor_mentions.append(hit.url)
        if not extraction.is_empty:
            run.accumulator.add(hit.url, tier, extraction.milestones)

    def _is_eol_hit(self, run: _ProductRun, hit: SearchHit) -> bool:
        """Title, snippet or URL names the product and uses EOL vocabulary."""
        haystack = f"{hit.title} {hit.snippet} {hit.url}"
        forms = run.variants + [run.query.product_id.replace("-", "")]
        pattern = compile_variant_pattern(forms)
        names_product = bool(pattern and pattern.search(haystack)) or (
            run.query.product_id.replace("-", "").lower() in haystack.replace("-", "").lower()
        )
        return names_product and mentions_eol(haystack)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _finalize(self, run: _ProductRun) -> ResearchResult:
        merged = run.accumulator.merged()
        self._transition(run, ResearchState.ESTIMATING)

        vendor_urls = [url for url, tier in merged.origin.values() if tier == SourceTier.VENDOR]
        profile = select_profile(run.manufacturer, vendor_urls)

        try:
            milestones = self.reconciliation.estimate(merged.values, profile, run.query.product_id)
        except NoResultError as e:
            self._transition(run, ResearchState.DONE)
            return ResearchResult(
                product_id=run.query.product_id,
                manufacturer=run.manufacturer or run.query.manufacturer,
                status=ResearchStatus.NOT_FOUND,
                estimation_profile=profile,
                message=str(e),
            )

        spacing = self.reconciliation.check_spacing(milestones)
        if spacing is False:
            self.logger.log_decision(
                decision="spacing_not_validated",
                reason="end of sale to last day of support outside 4.75-5.25 years",
            )

        self._transition(run, ResearchState.SCORING)
        sources = merged.sources()
        score = self.scorer.score(milestones, best_tier(sources))

        self.logger.log_extraction(
            source="merged",
            fields_present=[f.value for f in milestones.get_present_fields()],
            fields_missing=[f.value for f in MilestoneField if milestones.get(f) is None],
            confidence=score.overall,
            profile=profile.value,
        )

        self._transition(run, ResearchState.DONE)
        return ResearchResult(
            product_id=run.query.product_id,
            manufacturer=run.manufacturer or run.query.manufacturer,
            milestones=milestones,
            is_current_product=False,
            lifecycle_confidence=score.lifecycle,
            overall_confidence=score.overall,
            sources=sources,
            status=ResearchStatus.FOUND,
            spacing_validated=spacing,
            estimation_profile=profile,
            message=f"Found {len(merged.values)} milestone(s) from {len(sources)} source(s)",
        )

    def _current_product_result(self, run: _ProductRun) -> ResearchResult:
        score = self.scorer.current_product()
        self._transition(run, ResearchState.DONE)
        return ResearchResult(
            product_id=run.query.product_id,
            manufacturer=run.manufacturer or run.query.manufacturer,
            milestones=MilestoneSet(),
            is_current_product=True,
            lifecycle_confidence=score.lifecycle,
            overall_confidence=score.overall,
            sources=[
                DataSourceRecord(url=url, tier=SourceTier.VENDOR)
                for url in run.vendor_mentions
            ],
            status=ResearchStatus.CURRENT_NO_EOL,
            estimation_profile=select_profile(run.manufacturer, run.vendor_mentions),
            message="Product listed on manufacturer site with no end-of-life notice",
        )
