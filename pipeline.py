"""Extraction pipeline orchestration."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from batcher import Batch, group_sections_into_batches
from config import ExtractionConfig, DEFAULT_CONFIG
from documents import Document
from errors import DeadlineExceeded, ExtractionError, SegmentationFailed
from estimator import SizeEstimate, TokenEstimator, build_estimator, estimate_document
from extractor import ExtractionClient, ExtractionRequest, ExtractionTarget, compute_max_output_tokens
from merger import BatchOutcome, merge_results
from parser import TextAcquirer, acquire_text, build_text_acquirer
from profiles import DocumentProfile, get_profile
from providers import TextCompletionProvider, get_provider
from schemas import ConsolidatedResult, ReviewQueueItem
from scoring import review_priority, review_reason, score_result
from segmenter import segment
from storage import ResultStore, ReviewQueue
from strategy import DocumentStrategy, ProcessingMode

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RunState(str, Enum):
    INIT = "init"
    ESTIMATED = "estimated"
    MODE_CHOSEN = "mode_chosen"
    SINGLE_PASS_CALLED = "single_pass_called"
    SEGMENTED = "segmented"
    GROUPED = "grouped"
    BATCHES_CALLED = "batches_called"
    MERGED = "merged"
    SCORED = "scored"
    DONE = "done"
    SEGMENTATION_FAILED = "segmentation_failed"
    ABORTED = "aborted"


class Deadline:
    """Wall-clock budget of one run, shared by every step as its cancellation token."""

    def __init__(self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = clock() + seconds if seconds is not None else None

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, step: str) -> None:
        if self.expired():
            raise DeadlineExceeded(f"Run deadline of {self.seconds:.0f}s reached {step}")

    def call_timeout(self, request_timeout: float) -> float:
        """Per-call timeout: never longer than what is left of the run."""
        remaining = self.remaining()
        if remaining is None:
            return request_timeout
        return min(request_timeout, remaining)


class SequentialScheduler:
    """Runs batch calls one at a time with a fixed delay between them (provider rate limits)."""

    def __init__(self, delay_seconds: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def run(self, tasks: Sequence[Callable[[], T]], deadline: Deadline) -> List[T]:
        results: List[T] = []
        for i, task in enumerate(tasks):
            deadline.check(f"before batch {i + 1} of {len(tasks)}")
            results.append(task())

            # No delay after the last batch
            if i < len(tasks) - 1 and self.delay_seconds > 0:
                deadline.check(f"after batch {i + 1} of {len(tasks)}")
                self._sleep(self.delay_seconds)
        return results


@dataclass
class PipelineMetrics:
    """Metrics collected during extraction."""
    estimated_input_tokens: int = 0
    estimated_prompt_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    sections_found: int = 0
    batches_processed: int = 0
    batches_failed: int = 0
    records_extracted: int = 0
    duration_seconds: float = 0.0
    strategy_used: str = ""


@dataclass
class PipelineResult:
    """Result of the extraction pipeline."""
    result: ConsolidatedResult
    metrics: PipelineMetrics
    warnings: List[str] = field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        return self.result.requires_review


class ExtractionPipeline:

    def __init__(
        self,
        document: Document,
        config: ExtractionConfig = DEFAULT_CONFIG,
        provider: Optional[TextCompletionProvider] = None,
        estimator: Optional[TokenEstimator] = None,
        text_acquirer: Optional[TextAcquirer] = None,
        scheduler: Optional[SequentialScheduler] = None,
        deadline: Optional[Deadline] = None,
    ):
        self.document = document
        self.config = config
        self.profile: DocumentProfile = get_profile(document.kind)
        self.metrics = PipelineMetrics()
        self.warnings: List[str] = []
        self.state = RunState.INIT

        self._provider = provider
        self._estimator = estimator
        self._text_acquirer = text_acquirer
        self._scheduler = scheduler or SequentialScheduler(config.inter_batch_delay)
        self._deadline = deadline

        # Intermediate state
        self._estimate: Optional[SizeEstimate] = None
        self._strategy: Optional[DocumentStrategy] = None
        self._batches: List[Batch] = []
        self._acquisition_warnings: List[str] = []

    def run(self) -> PipelineResult:
        """Execute the full extraction pipeline."""
        start_time = time.time()
        if self._deadline is None:
            self._deadline = Deadline(self.config.run_deadline_seconds)

        try:
            provider = self._provider or get_provider(self.config)
            client = ExtractionClient(provider, self.config)
            estimator = self._estimator or build_estimator(self.config)

            # Step 1: Estimate and choose the mode; the choice is final
            self._analyze_document(estimator)
            self._determine_strategy()

            # Step 2: Execute the chosen mode
            if self._strategy.mode is ProcessingMode.SINGLE_PASS:
                outcomes = self._execute_single_pass(client)
            else:
                acquirer = self._text_acquirer or build_text_acquirer(self.config, provider)
                outcomes = self._execute_batches(client, estimator, acquirer)

            # Step 3: Merge and score
            merged = merge_results(
                outcomes,
                self.profile.kind.value,
                self._strategy.mode,
                self.profile.summarize,
                self.profile.cross_reference,
            )
            self.state = RunState.MERGED

            if self._acquisition_warnings:
                merged = merged.model_copy(update={"warnings": self._acquisition_warnings + merged.warnings})

            # Incomplete source text always goes to review
            result = score_result(
                merged,
                self.profile.policy,
                self.config.review_threshold,
                force_review=bool(self._acquisition_warnings),
            )
            self.state = RunState.SCORED

            self._finalize_metrics(result)
            self.warnings.extend(result.warnings)
            self.state = RunState.DONE
            self._log(
                f"Done: {len(result.records)} records, quality {result.quality_score:.1f}, "
                f"review={'yes' if result.requires_review else 'no'}"
            )
            return PipelineResult(result=result, metrics=self.metrics, warnings=self.warnings)

        except SegmentationFailed as e:
            self.state = RunState.SEGMENTATION_FAILED
            e.metrics = self.metrics
            self._log(f"Segmentation failed: {e}", logging.ERROR)
            raise
        except ExtractionError as e:
            self.state = RunState.ABORTED
            e.metrics = self.metrics
            self._log(f"Run aborted ({e.code}): {e}", logging.ERROR)
            raise
        except Exception as e:
            self.state = RunState.ABORTED
            raise ExtractionError(f"Pipeline failed: {e}", metrics=self.metrics) from e
        finally:
            self.metrics.duration_seconds = time.time() - start_time

    def _analyze_document(self, estimator: TokenEstimator) -> None:
        """Estimate document and prompt size; never calls the provider."""
        self._estimate = estimate_document(self.document, self.profile.build_prompt(None), estimator)
        self.metrics.estimated_input_tokens = self._estimate.estimated_input_tokens
        self.metrics.estimated_prompt_tokens = self._estimate.estimated_prompt_tokens
        self._log(f"Document: {self.document.filename} ({self.document.size:,} bytes, ~{self._estimate.total:,} tokens)")
        self.state = RunState.ESTIMATED

    def _determine_strategy(self) -> None:
        self._strategy = DocumentStrategy.determine(
            self._estimate,
            self.config.input_ceiling,
            self.config.safety_margin_tokens,
        )
        self.metrics.strategy_used = self._strategy.mode.value
        self._log(f"Strategy: {self._strategy.mode.value} (utilization: {self._strategy.utilization_ratio:.1%})")
        self.state = RunState.MODE_CHOSEN

    def _max_output_tokens(self, estimated_input_tokens: int) -> int:
        return compute_max_output_tokens(
            estimated_input_tokens,
            self.config.total_context_window,
            self.config.safety_margin_tokens,
            self.config.min_output_tokens,
            self.config.output_ceiling,
        )

    def _execute_single_pass(self, client: ExtractionClient) -> List[BatchOutcome]:
        """Whole document in one call."""
        self._log("Mode: Single Pass")
        max_output_tokens = self._max_output_tokens(self._estimate.total)
        request = ExtractionRequest(
            target=ExtractionTarget.WHOLE_DOCUMENT,
            instruction_template=self.profile.build_prompt(None),
            max_output_tokens=max_output_tokens,
            payload_model=self.profile.payload_model,
            estimated_input_tokens=self._estimate.total,
            document=self.document,
        )

        self._deadline.check("before the single-pass call")
        result = client.extract(request, timeout=self._deadline.call_timeout(self.config.request_timeout))
        self.state = RunState.SINGLE_PASS_CALLED
        return [BatchOutcome(result=result, max_output_tokens=max_output_tokens,
                             estimated_tokens=self._estimate.total)]

    def _execute_batches(
        self,
        client: ExtractionClient,
        estimator: TokenEstimator,
        acquirer: TextAcquirer,
    ) -> List[BatchOutcome]:
        """Text → sections → batches → one sequential call per batch."""
        self._log("Mode: Batch")

        self._deadline.check("before text acquisition")
        acquired = acquire_text(self.document, acquirer)
        text = acquired.text
        self._acquisition_warnings.extend(acquired.warnings)
        self._save_debug_text("full_text", text)

        sections = segment(text, self.profile.template, estimator)
        self.metrics.sections_found = len(sections)
        self.state = RunState.SEGMENTED

        # Opening pages carry issue / case metadata; every batch gets them
        preamble = text[:min(self.config.preamble_chars, sections[0].char_start)].strip()
        preamble_tokens = estimator.estimate_text(self._with_preamble(preamble, ""))

        batch_budget = max(1, self.config.batch_budget - preamble_tokens)
        self._batches = group_sections_into_batches(sections, batch_budget)
        self.state = RunState.GROUPED

        tasks = [
            partial(self._extract_batch, client, estimator, batch, preamble)
            for batch in self._batches
        ]
        outcomes = self._scheduler.run(tasks, self._deadline)
        self.state = RunState.BATCHES_CALLED
        return outcomes

    def _extract_batch(
        self,
        client: ExtractionClient,
        estimator: TokenEstimator,
        batch: Batch,
        preamble: str,
    ) -> BatchOutcome:
        total = len(self._batches)
        self._log(f"Processing batch {batch.batch_index + 1}/{total}: {', '.join(n[:30] for n in batch.section_names)}")

        batch_text = self._with_preamble(preamble, batch.text())
        self._save_debug_text(f"batch_{batch.batch_index:03d}", batch_text)

        instruction = self.profile.build_prompt(batch.section_names)
        estimated_tokens = estimator.estimate_text(batch_text) + estimator.estimate_text(instruction)
        max_output_tokens = self._max_output_tokens(estimated_tokens)

        request = ExtractionRequest(
            target=ExtractionTarget.BATCH,
            instruction_template=instruction,
            max_output_tokens=max_output_tokens,
            payload_model=self.profile.payload_model,
            estimated_input_tokens=estimated_tokens,
            text=batch_text,
            batch_index=batch.batch_index,
        )
        result = client.extract(request, timeout=self._deadline.call_timeout(self.config.request_timeout))

        if result.success:
            self._log(f"Batch {batch.batch_index + 1} extracted {len(result.parsed_payload.records)} records")
        else:
            self._log(f"Batch {batch.batch_index + 1} failed: {result.status.value}", logging.WARNING)

        return BatchOutcome(
            result=result,
            batch=batch,
            max_output_tokens=max_output_tokens,
            estimated_tokens=estimated_tokens,
        )

    @staticmethod
    def _with_preamble(preamble: str, batch_text: str) -> str:
        if not preamble:
            return batch_text
        return f"{preamble}\n\n[...document continues...]\n\n{batch_text}"

    def _finalize_metrics(self, result: ConsolidatedResult) -> None:
        self.metrics.input_tokens = result.token_usage.input_tokens
        self.metrics.output_tokens = result.token_usage.output_tokens
        self.metrics.batches_processed = result.token_usage.calls
        self.metrics.batches_failed = len(result.batch_diagnostics)
        self.metrics.records_extracted = len(result.records)

    def _save_debug_text(self, name: str, text: str) -> None:
        """Save intermediate text for debugging if enabled."""
        if not self.config.debug_enabled:
            return

        debug_dir = Path(self.config.debug_dir)
        debug_dir.mkdir(parents=True, exist_ok=True)
        timestamp = time.strftime("%Y%m%d_%H%M%S")
        path = debug_dir / f"{name}_{timestamp}.txt"
        path.write_text(text, encoding="utf-8")
        self._log(f"Saved debug text to: {path}", logging.DEBUG)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        """Log a message."""
        logger.log(level, "[%s] %s", self.document.kind.value, message)


def process_document(
    document: Document,
    config: ExtractionConfig = DEFAULT_CONFIG,
    store: Optional[ResultStore] = None,
    review_queue: Optional[ReviewQueue] = None,
    **pipeline_kwargs,
) -> Tuple[PipelineResult, Optional[str]]:
    """Run the pipeline, persist the result and queue it for review when needed.

    Returns the pipeline result and the storage id (None without a store).
    """
    outcome = ExtractionPipeline(document, config, **pipeline_kwargs).run()
    result = outcome.result

    item_id = store.save(document, result) if store is not None else None

    if result.requires_review and review_queue is not None:
        review_queue.enqueue(ReviewQueueItem(
            item_type=get_profile(document.kind).item_type,
            item_id=item_id or document.meta("case_id") or document.filename,
            reason=review_reason(result, config.review_threshold),
            priority=review_priority(result),
        ))

    return outcome, item_id
