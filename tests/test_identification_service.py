"""Tests for the identification service."""

import re
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from pill_pipeline.application.services import (
    IdentificationService,
    create_identification_service,
    generate_session_id,
)
from pill_pipeline.application.services import identification_service
from pill_pipeline.application.services.identification_service import attributes_to_search_input
from pill_pipeline.config.settings import AppConfig
from pill_pipeline.cross_cutting.validation import describe_attributes, probe_image
from pill_pipeline.domain.entities.search import SearchQuery, SecondaryHints
from pill_pipeline.domain.exceptions import (
    AnalyticsError,
    InvalidAttributeError,
    InvalidImageError,
    InvalidInputError,
    ReferenceStoreError,
)
from pill_pipeline.infrastructure.store import DummyReferenceStore, LoggingAnalyticsSink


@pytest.fixture
def analytics():
    sink = MagicMock()
    sink.save_search = AsyncMock(return_value="42")
    return sink


@pytest.fixture
def service(make_orchestrator, memory_store, analytics) -> IdentificationService:
    return IdentificationService(
        pipeline=make_orchestrator(),
        store=memory_store,
        analytics=analytics,
    )


class TestIdentify:
    """Image loading and validation before the pipeline runs."""

    @pytest.mark.asyncio
    async def test_identify_from_bytes(self, service, png_bytes):
        report = await service.identify_from_bytes(png_bytes, mime_type="image/png")

        assert report.total_count == 1
        assert report.success_count == 1
        assert (report.image_width, report.image_height) == (200, 200)

    @pytest.mark.asyncio
    async def test_identify_from_file(self, service, png_bytes, tmp_path):
        path = tmp_path / "pills.PNG"
        path.write_bytes(png_bytes)

        report = await service.identify_from_file(str(path), options={"context_hint": "blister pack"})

        assert report.total_count == 1

    @pytest.mark.asyncio
    async def test_missing_file(self, service, tmp_path):
        with pytest.raises(InvalidImageError):
            await service.identify_from_file(str(tmp_path / "nope.jpg"))

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, service, tmp_path):
        path = tmp_path / "pills.txt"
        path.write_text("not an image")

        with pytest.raises(InvalidImageError) as exc_info:
            await service.identify_from_file(str(path))

        assert ".txt" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_undecodable_bytes(self, service):
        with pytest.raises(InvalidImageError):
            await service.identify_from_bytes(b"definitely not a png")

    @pytest.mark.asyncio
    async def test_empty_bytes(self, service):
        with pytest.raises(InvalidImageError):
            await service.identify_from_bytes(b"")

    @pytest.mark.asyncio
    async def test_image_validated_off_the_event_loop(self, service, png_bytes, monkeypatch):
        threads = []

        def recording_validation(image, max_bytes):
            threads.append(threading.current_thread())
            return probe_image(image, max_bytes=max_bytes)

        monkeypatch.setattr(identification_service, "probe_image", recording_validation)

        await service.identify_from_bytes(png_bytes, mime_type="image/png")

        assert threads and threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_url_must_be_http(self, service):
        with pytest.raises(InvalidImageError):
            await service.identify_from_url("ftp://example.com/pills.jpg")


class TestSearch:
    """Search over the reference store and analytics hand-off."""

    @pytest.mark.asyncio
    async def test_search_from_mapping(self, service):
        result = await service.search({"shape": "round", "color": "WHITE", "imprint": "any"})

        assert result.matched_ids == ["1", "4"]
        assert result.query == SearchQuery(shape="Round", color="White")
        assert result.confidence == pytest.approx(0.77)
        assert result.search_id == "42"
        assert not result.reranked

    @pytest.mark.asyncio
    async def test_search_from_extracted_attributes(self, service, round_white, analytics):
        result = await service.search(round_white, detected=round_white, session_id="session_1_abcdefghi")

        assert result.matched_ids == ["4"]
        assert result.query.scoring is None
        assert result.confidence == pytest.approx(0.99)
        assert result.session_id == "session_1_abcdefghi"

        record = analytics.save_search.call_args.args[0]
        assert record.matched_pill_ids == ["4"]
        assert record.session_id == "session_1_abcdefghi"
        assert record.detected["front_imprint"] == "M 367"
        assert record.user_confirmed["shape"] == "Round"
        row = record.to_row()
        assert row["user_confirmed_size_mm"] == 9.5
        assert "user_confirmed_scoring" not in row

    @pytest.mark.asyncio
    async def test_session_id_generated(self, service):
        result = await service.search({"shape": "Round"})

        assert re.match(r"^session_\d+_[0-9a-z]{9}$", result.session_id)

    @pytest.mark.asyncio
    async def test_analytics_failure_does_not_fail_search(self, service, analytics):
        analytics.save_search.side_effect = AnalyticsError("Failed to save search: offline")

        result = await service.search({"shape": "Round"})

        assert result.total_results == 3
        assert result.search_id is None

    @pytest.mark.asyncio
    async def test_no_results(self, service):
        result = await service.search({"shape": "Six-sided"})

        assert result.total_results == 0
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, service):
        with pytest.raises(InvalidInputError):
            await service.search({"shape": "any", "color": "  ", "size_mm": 0})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attributes,field", [
        ({"shape": "star"}, "shape"),
        ({"color": "blue & green"}, "color"),
        ({"scoring": "3 scores"}, "scoring"),
        ({"size_mm": -2}, "size_mm"),
        ({"size_mm": "big"}, "size_mm"),
    ])
    async def test_invalid_attributes_rejected(self, service, attributes, field):
        with pytest.raises(InvalidAttributeError) as exc_info:
            await service.search(attributes)

        assert exc_info.value.details["field"] == field

    @pytest.mark.asyncio
    async def test_query_objects_are_validated(self, service):
        with pytest.raises(InvalidAttributeError) as exc_info:
            await service.search(SearchQuery(shape="Blob", color="Chartreuse"))

        assert exc_info.value.details["field"] == "shape"

    @pytest.mark.asyncio
    async def test_query_objects_are_canonicalized(self, service):
        result = await service.search(SearchQuery(shape="round", color="white", front_imprint="any"))

        assert result.query == SearchQuery(shape="Round", color="White")
        assert result.matched_ids == ["1", "4"]

    @pytest.mark.asyncio
    async def test_unrecognised_detected_values_do_not_fail_search(self, service, analytics):
        result = await service.search(
            {"shape": "Round", "color": "White", "front_imprint": "TYLENOL"},
            detected={"shape": "circle-ish", "color": "White", "size_mm": "big", "scoring": "maybe"},
        )

        assert result.matched_ids == ["1"]
        record = analytics.save_search.call_args.args[0]
        assert record.detected["shape"] is None
        assert record.detected["color"] == "White"
        assert record.detected["size_mm"] is None
        assert record.detected["scoring"] is None

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, make_orchestrator):
        service = IdentificationService(
            pipeline=make_orchestrator(),
            store=DummyReferenceStore(error=ReferenceStoreError("Database search failed: offline")),
        )

        with pytest.raises(ReferenceStoreError):
            await service.search({"shape": "Round"})

    @pytest.mark.asyncio
    async def test_limit(self, service):
        result = await service.search({"shape": "Round"}, limit=2)

        assert result.total_results == 2


class TestRerank:
    """Rerank through the service."""

    @pytest.mark.asyncio
    async def test_rerank_from_mapping(self, service):
        result = await service.search({"shape": "Round", "color": "White"})

        reranked = await service.rerank(result, {"suspected_name": "metformin", "manufacturer": ""})

        assert reranked.reranked
        assert reranked.matched_ids == ["4", "1"]
        assert reranked.confidence == pytest.approx(0.9)
        assert reranked.search_id == result.search_id

    @pytest.mark.asyncio
    async def test_rerank_without_hints(self, service):
        result = await service.search({"shape": "Round", "color": "White"})

        reranked = await service.rerank(result, SecondaryHints())

        assert reranked.matched_ids == result.matched_ids


class TestHelpers:
    """Module-level helpers and wiring."""

    def test_session_id_format(self):
        ids = {generate_session_id() for _ in range(20)}

        assert all(re.match(r"^session_\d+_[0-9a-z]{9}$", session_id) for session_id in ids)
        assert len(ids) == 20

    def test_attributes_projection_drops_scoring(self, round_white):
        projected = attributes_to_search_input(round_white)

        assert "scoring" not in projected
        assert projected["size_mm"] == 9.5

    def test_describe_attributes_drops_unknown_values(self):
        described = describe_attributes({
            "shape": "oval",
            "color": "blue & green",
            "imprint": " M 367 ",
            "size_mm": -1,
            "scoring": "2 SCORES",
        })

        assert described == SearchQuery(shape="Oval", front_imprint="M 367", scoring="2 scores")

    def test_create_from_config(self, tmp_path):
        config = AppConfig.from_dict({
            "detection": {"type": "dummy"},
            "crop": {"type": "dummy"},
            "extraction": {"type": "dummy"},
            "store": {"type": "memory", "result_limit": 5},
            "analytics": {"type": "log"},
            "pipeline": {"max_concurrency": 4},
        })

        service = create_identification_service(config)

        assert service.result_limit == 5
        assert service.pipeline.config.max_concurrency == 4
        assert service.pipeline.stage_names == ["detection", "crop", "extraction"]
        assert isinstance(service.analytics, LoggingAnalyticsSink)
