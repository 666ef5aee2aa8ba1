"""
Identification Service

High-level application service for pill identification: image in,
aggregate report out, then search and rerank on confirmed attributes.
"""

from dataclasses import asdict
from typing import Optional, Dict, Any, Mapping, Union
from pathlib import Path
import asyncio
import logging
import random
import string
import time

from .ranking import rank_matches, rerank_matches, calculate_search_confidence
from ..pipeline.context import UnitUpdateCallback
from ..pipeline.orchestrator import PipelineOrchestrator, OrchestratorConfig
from ...config.settings import AppConfig, get_default_config
from ...cross_cutting.error_handling import handle_exception
from ...cross_cutting.validation import (
    probe_image,
    validate_search_attributes,
    describe_attributes,
    MAX_FILE_SIZE,
)
from ...domain.value_objects.image_data import ImageData
from ...domain.entities.attributes import ExtractedAttributes
from ...domain.entities.report import AggregateReport
from ...domain.entities.search import SearchQuery, SearchResult, SecondaryHints
from ...domain.ports.reference_store import ReferenceStorePort
from ...domain.ports.analytics_sink import AnalyticsSinkPort, SearchAnalyticsRecord
from ...domain.exceptions import InvalidImageError, InvalidInputError
from ...infrastructure.detection import DetectorFactory
from ...infrastructure.cropping import CropperFactory
from ...infrastructure.extraction import ExtractorFactory
from ...infrastructure.store import ReferenceStoreFactory, AnalyticsSinkFactory, NullAnalyticsSink


logger = logging.getLogger(__name__)


AttributesInput = Union[SearchQuery, ExtractedAttributes, Mapping[str, Any]]

VALID_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".webp", ".gif"}

_SESSION_ALPHABET = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """Session id of the form session_<epoch ms>_<9 base36 chars>."""
    suffix = "".join(random.choices(_SESSION_ALPHABET, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


def attributes_to_search_input(attributes: ExtractedAttributes) -> Dict[str, Any]:
    """
    Project extracted attributes onto search fields.

    Scoring is left out: extraction folds "unclear" into "no score", which
    would otherwise act as an exact filter.
    """
    return {
        "shape": attributes.shape,
        "color": attributes.color,
        "front_imprint": attributes.front_imprint,
        "back_imprint": attributes.back_imprint,
        "size_mm": attributes.size_mm,
    }


class IdentificationService:
    """
    Application service for identifying pills from photos.

    This is the main entry point for external consumers. It handles:
    - Input validation and image loading from various sources
    - Running the detection → crop → extract pipeline
    - Searching the reference store and reranking with hints
    - Handing confirmed searches to the analytics sink

    Usage:
        service = create_identification_service()

        report = await service.identify_from_file("path/to/pills.jpg")
        result = await service.search(report.best_unit().attributes)
        result = await service.rerank(result, SecondaryHints(manufacturer="Mylan"))
    """

    def __init__(
        self,
        pipeline: PipelineOrchestrator,
        store: ReferenceStorePort,
        analytics: Optional[AnalyticsSinkPort] = None,
        result_limit: int = 20,
        size_tolerance_mm: float = 2.0,
        max_image_bytes: int = MAX_FILE_SIZE
    ):
        self.pipeline = pipeline
        self.store = store
        self.analytics = analytics or NullAnalyticsSink()
        self.result_limit = result_limit
        self.size_tolerance_mm = size_tolerance_mm
        self.max_image_bytes = max_image_bytes

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # =========================================================================
    # Identify
    # =========================================================================

    async def identify(
        self,
        image: ImageData,
        options: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_unit_update: Optional[UnitUpdateCallback] = None
    ) -> AggregateReport:
        """
        Identify every pill in an image.

        Args:
            image: Image data to analyze
            options: Run options (context_hint)
            cancel_event: Cancellation token for the run
            on_unit_update: Progress callback for unit transitions

        Returns:
            AggregateReport with one entry per detected pill

        Raises:
            InvalidImageError: If the image fails validation
            NoDetectionError: If no pill is detected
            CapabilityUnavailableError: If the detector is unreachable
        """
        image = await asyncio.to_thread(probe_image, image, max_bytes=self.max_image_bytes)
        self.logger.info(f"Starting identification of {image}")

        report = await self.pipeline.run(
            image,
            options=options,
            cancel_event=cancel_event,
            on_unit_update=on_unit_update,
        )

        if report.has_partial_failure:
            self.logger.warning(f"Identification finished with failures: {report.summary()}")
        else:
            self.logger.info(f"Identification finished: {report.summary()}")
        return report

    async def identify_from_file(
        self,
        file_path: str,
        options: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AggregateReport:
        """
        Identify pills in an image file.

        Raises:
            InvalidImageError: If the file doesn't exist or has an unsupported extension
        """
        path = Path(file_path)

        if not path.exists():
            raise InvalidImageError(f"Image file not found: {file_path}")

        if path.suffix.lower() not in VALID_EXTENSIONS:
            raise InvalidImageError(
                f"Unsupported image format: {path.suffix}. "
                f"Supported: {', '.join(sorted(VALID_EXTENSIONS))}"
            )

        try:
            image = ImageData.from_file(str(path))
        except OSError as e:
            raise InvalidImageError(f"Failed to load image: {e}")

        return await self.identify(image, options, **kwargs)

    async def identify_from_bytes(
        self,
        image_bytes: bytes,
        mime_type: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AggregateReport:
        """Identify pills in raw image bytes."""
        if not image_bytes:
            raise InvalidImageError("Image bytes cannot be empty")

        image = ImageData.from_bytes(image_bytes, mime_type=mime_type)
        return await self.identify(image, options, **kwargs)

    async def identify_from_base64(
        self,
        base64_string: str,
        format: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AggregateReport:
        """Identify pills in a base64 string or data URL."""
        if not base64_string:
            raise InvalidImageError("Base64 string cannot be empty")

        image = ImageData.from_base64(base64_string, format=format)
        return await self.identify(image, options, **kwargs)

    async def identify_from_url(
        self,
        url: str,
        options: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> AggregateReport:
        """Identify pills in a remote image the detector fetches itself."""
        if not url.startswith(("http://", "https://")):
            raise InvalidImageError(f"Not an http(s) URL: {url}")

        return await self.identify(ImageData.from_url(url), options, **kwargs)

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        attributes: AttributesInput,
        detected: Optional[AttributesInput] = None,
        session_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        limit: Optional[int] = None
    ) -> SearchResult:
        """
        Search the reference store with confirmed attributes.

        Args:
            attributes: Confirmed attributes (query, extraction output or mapping)
            detected: What extraction originally proposed, for analytics
            session_id: Caller session; generated when absent
            user_agent: Caller user agent, for analytics
            limit: Maximum number of records (defaults to result_limit)

        Returns:
            SearchResult ordered by match percentage

        Raises:
            InvalidAttributeError: If an attribute is outside the vocabulary
            InvalidInputError: If no attribute was supplied
            ReferenceStoreError: If the store query fails
        """
        query = self._to_query(attributes)
        if query.is_empty:
            raise InvalidInputError("attributes", "at least one attribute is required")

        records = await self.store.search(query, limit=limit or self.result_limit)
        matches = rank_matches(records, query, self.size_tolerance_mm)
        confidence = calculate_search_confidence(query, len(matches))
        session_id = session_id or generate_session_id()

        self.logger.info(
            f"Search on {query.supplied_fields} returned {len(matches)} matches "
            f"(confidence {confidence:.2f})"
        )

        search_id = await self._record_search(SearchAnalyticsRecord(
            session_id=session_id,
            matched_pill_ids=[match.record.id for match in matches],
            confidence_score=confidence,
            detected=self._describe(detected),
            user_confirmed=query.to_dict(),
            user_agent=user_agent,
        ))

        return SearchResult(
            matches=tuple(matches),
            confidence=confidence,
            query=query,
            search_id=search_id,
            session_id=session_id,
        )

    async def rerank(
        self,
        result: SearchResult,
        hints: Optional[Union[SecondaryHints, Mapping[str, Any]]] = None
    ) -> SearchResult:
        """
        Reorder a search result using secondary hints.

        Never adds or removes candidates.
        """
        if isinstance(hints, Mapping):
            hints = SecondaryHints(
                suspected_name=hints.get("suspected_name") or None,
                manufacturer=hints.get("manufacturer") or None,
                strength=hints.get("strength") or None,
            )

        reranked = rerank_matches(result, hints)
        boosted = sum(1 for match in reranked.matches if match.boost_applied)
        self.logger.info(
            f"Reranked {reranked.total_results} matches, {boosted} boosted "
            f"(confidence {reranked.confidence:.2f})"
        )
        return reranked

    @handle_exception(default_return=None, log_level=logging.WARNING)
    async def _record_search(self, record: SearchAnalyticsRecord) -> Optional[str]:
        """Hand the search to the analytics sink. Failures never reach the caller."""
        return await self.analytics.save_search(record)

    @staticmethod
    def _to_query(attributes: AttributesInput) -> SearchQuery:
        if isinstance(attributes, SearchQuery):
            attributes = attributes.to_dict()
        elif isinstance(attributes, ExtractedAttributes):
            attributes = attributes_to_search_input(attributes)
        return validate_search_attributes(attributes)

    @staticmethod
    def _describe(detected: Optional[AttributesInput]) -> Dict[str, Any]:
        # analytics input must never fail the search
        if detected is None:
            return {}
        if isinstance(detected, SearchQuery):
            detected = detected.to_dict()
        elif isinstance(detected, ExtractedAttributes):
            detected = attributes_to_search_input(detected)
        return describe_attributes(detected).to_dict()

    async def close(self) -> None:
        """Release connections held by the pipeline components."""
        await self.pipeline.close()


def create_identification_service(config: Optional[AppConfig] = None) -> IdentificationService:
    """
    Wire an IdentificationService from configuration.

    Args:
        config: Application configuration (defaults to the environment)
    """
    config = config or get_default_config()

    detector = DetectorFactory.create_from_config(asdict(config.detection))
    cropper = CropperFactory.create_from_config(asdict(config.crop))
    extractor = ExtractorFactory.create_from_config(asdict(config.extraction))
    pipeline = PipelineOrchestrator(
        detector=detector,
        cropper=cropper,
        extractor=extractor,
        config=OrchestratorConfig.from_app_config(config),
    )

    store = ReferenceStoreFactory.create_from_config(asdict(config.store))
    analytics = AnalyticsSinkFactory.create_from_config({
        "type": config.analytics.type,
        "table": config.analytics.table,
        "supabase_url": config.store.supabase_url,
        "supabase_key": config.store.supabase_key,
    })

    logger.info(
        f"Identification service ready: detector={detector.model_name}, "
        f"cropper={cropper.name}, extractor={extractor.model_name}, store={store.name}"
    )
    return IdentificationService(
        pipeline=pipeline,
        store=store,
        analytics=analytics,
        result_limit=config.store.result_limit,
        size_tolerance_mm=config.store.size_tolerance_mm,
        max_image_bytes=config.crop.max_image_bytes,
    )
