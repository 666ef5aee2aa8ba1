"""Tests for the aggregate report."""

import pytest

from pill_pipeline.domain.entities.attributes import ExtractedAttributes
from pill_pipeline.domain.entities.crop import CroppedImage
from pill_pipeline.domain.entities.detection import DetectionRegion
from pill_pipeline.domain.entities.report import AggregateReport
from pill_pipeline.domain.entities.unit_result import PipelineUnitResult
from pill_pipeline.domain.value_objects.bounding_box import BoundingBox
from pill_pipeline.domain.value_objects.confidence_score import ConfidenceLevel, ConfidenceScore


def region(region_id: str, confidence: float = 0.9) -> DetectionRegion:
    return DetectionRegion(id=region_id, confidence=confidence, box=BoundingBox(x=0, y=0, width=10, height=10))


def success(region_id: str, confidence: float = 0.92, detector_confidence: float = 0.9) -> PipelineUnitResult:
    crop = CroppedImage(region_id=region_id, data=b"jpeg", mime_type="image/jpeg", width=10, height=10)
    attributes = ExtractedAttributes(shape="Round", color="White", front_imprint="M 367", confidence=confidence)
    return PipelineUnitResult.success(region(region_id, detector_confidence), attributes=attributes, crop=crop)


def failure(region_id: str) -> PipelineUnitResult:
    return PipelineUnitResult.failed(region(region_id), reason="Vision model service error.")


class TestSummary:
    """Human readable one-liners."""

    def test_no_regions(self):
        assert AggregateReport.build([], processing_time_ms=1.0).summary() == "No pills detected in the image."

    def test_single_identified(self):
        report = AggregateReport.build([success("1")], processing_time_ms=1.0)

        assert report.summary() == 'Identified 1 pill (Round White "M 367") with 92% confidence.'

    @pytest.mark.parametrize("unit", [failure("1"), success("1", confidence=0.5)])
    def test_single_not_identified(self, unit):
        report = AggregateReport.build([unit], processing_time_ms=1.0)

        assert report.summary() == "1 pill detected but could not be identified with confidence."

    def test_multiple_regions(self):
        report = AggregateReport.build(
            [success("1"), success("2", confidence=0.3), failure("3")],
            processing_time_ms=1.0,
        )

        assert report.summary() == "Detected 3 pills: 1 identified, 1 low confidence, 1 failed."


class TestCounts:
    """Counting rules and invariants."""

    def test_counts(self):
        report = AggregateReport.build(
            [success("1"), success("2", confidence=0.69), failure("3"), failure("4")],
            processing_time_ms=12.5,
        )

        assert report.total_count == 4
        assert report.success_count == 1
        assert report.low_confidence_count == 1
        assert report.failed_count == 2
        assert report.has_partial_failure

    def test_all_failed_is_not_partial(self):
        report = AggregateReport.build([failure("1")], processing_time_ms=1.0)

        assert not report.has_partial_failure

    def test_duplicate_region_ids_rejected(self):
        with pytest.raises(ValueError):
            AggregateReport.build([success("1"), failure("1")], processing_time_ms=1.0)

    def test_in_flight_units_need_aborted_run(self):
        pending = PipelineUnitResult.pending(region("1"))

        with pytest.raises(ValueError):
            AggregateReport.build([pending], processing_time_ms=1.0)
        assert AggregateReport.build([pending], processing_time_ms=1.0, aborted=True).total_count == 1


class TestOrdering:
    """Display order and the best unit."""

    def test_sorted_by_region_id(self):
        report = AggregateReport.build(
            [success("10"), success("2"), failure("1"), success("b"), success("a")],
            processing_time_ms=1.0,
        )

        assert [unit.region_id for unit in report.sorted_regions()] == ["1", "2", "10", "a", "b"]

    def test_sorted_by_detector_confidence(self):
        report = AggregateReport.build(
            [success("1", detector_confidence=0.7), success("2", detector_confidence=0.95)],
            processing_time_ms=1.0,
        )

        assert [unit.region_id for unit in report.sorted_regions(by="confidence")] == ["2", "1"]

    def test_best_unit(self):
        report = AggregateReport.build(
            [success("1", confidence=0.75), failure("2"), success("3", confidence=0.95)],
            processing_time_ms=1.0,
        )

        assert report.best_unit().region_id == "3"
        assert AggregateReport.build([failure("1")], processing_time_ms=1.0).best_unit() is None

    def test_to_dict(self):
        report = AggregateReport.build([failure("2"), success("1")], processing_time_ms=3.14159, request_id="r1")

        data = report.to_dict()

        assert data["request_id"] == "r1"
        assert data["processing_time_ms"] == 3.14
        assert [entry["region_id"] for entry in data["regions"]] == ["1", "2"]
        assert data["regions"][0]["crop"].get("image") is None
        assert report.to_dict(include_images=True)["regions"][0]["crop"]["image"] == "anBlZw=="


class TestConfidenceScore:
    """Confidence bands."""

    @pytest.mark.parametrize("value,level", [
        (0.05, ConfidenceLevel.NONE),
        (0.3, ConfidenceLevel.LOW),
        (0.6, ConfidenceLevel.MEDIUM),
        (0.8, ConfidenceLevel.HIGH),
        (0.95, ConfidenceLevel.EXACT),
    ])
    def test_levels(self, value, level):
        assert ConfidenceScore(value).level == level

    def test_clamped(self):
        assert ConfidenceScore.clamped(1.3).value == 1.0
        assert ConfidenceScore.clamped(-0.2).value == 0.0

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            ConfidenceScore(1.01)
