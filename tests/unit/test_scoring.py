"""Tests for the load scoring model and snapshot assembly."""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from cogload.config import MetricsConfig
from cogload.metrics.scoring import LoadScoringModel, saturate
from cogload.metrics.snapshot import assemble_snapshot, now_millis
from cogload.protocols import LoadLabel, RawMeasurements, Snapshot


@pytest.fixture
def model():
    return LoadScoringModel()


@pytest.mark.unit
class TestLoadScoringModel:
    """Tests for LoadScoringModel."""

    def test_high_load_example(self, model):
        result = model.score(RawMeasurements(max_depth=8, interactive_in_view=25, fragmentation=6))
        assert result.depth_term == pytest.approx(0.4)
        assert result.density_term == 1.0
        assert result.fragment_term == 1.0
        assert result.raw_score == pytest.approx(0.85)
        assert result.label is LoadLabel.HIGH

    def test_low_load_example(self, model):
        result = model.score(RawMeasurements(max_depth=4, interactive_in_view=2, fragmentation=1))
        assert result.depth_term == pytest.approx(0.2)
        assert result.density_term == pytest.approx(0.1)
        assert result.fragment_term == pytest.approx(0.2)
        assert result.raw_score == pytest.approx(0.155)
        assert result.label is LoadLabel.LOW

    def test_density_term_uses_count_not_density(self, model):
        a = model.score(RawMeasurements(interactive_in_view=10, density=0.0))
        b = model.score(RawMeasurements(interactive_in_view=10, density=123.0))
        assert a == b
        assert a.density_term == pytest.approx(0.5)

    def test_zero_measurements_score_zero(self, model):
        result = model.score(RawMeasurements())
        assert result.raw_score == 0.0
        assert result.label is LoadLabel.LOW

    def test_all_terms_saturated_scores_one(self, model):
        result = model.score(RawMeasurements(max_depth=100, interactive_in_view=100, fragmentation=100))
        assert result.raw_score == pytest.approx(1.0)

    @pytest.mark.parametrize(
        "raw,label",
        [
            (0.0, LoadLabel.LOW),
            (0.4, LoadLabel.LOW),
            (0.40001, LoadLabel.MEDIUM),
            (0.7, LoadLabel.MEDIUM),
            (0.70001, LoadLabel.HIGH),
            (1.0, LoadLabel.HIGH),
        ],
    )
    def test_classification_thresholds_are_strict(self, model, raw, label):
        assert model.classify(raw) is label

    def test_saturate(self):
        assert saturate(10, 20) == 0.5
        assert saturate(20, 20) == 1.0
        assert saturate(40, 20) == 1.0

    def test_custom_weights(self):
        config = MetricsConfig(weights={"depth": 1.0, "density": 0.0, "fragmentation": 0.0})
        result = LoadScoringModel(config).score(RawMeasurements(max_depth=10, interactive_in_view=20, fragmentation=5))
        assert result.raw_score == pytest.approx(0.5)

    @given(
        depth=st.integers(min_value=0, max_value=10**9),
        interactive=st.integers(min_value=0, max_value=10**9),
        fragmentation=st.integers(min_value=0, max_value=10**9),
    )
    def test_score_is_bounded_and_terms_saturate(self, depth, interactive, fragmentation):
        result = LoadScoringModel().score(
            RawMeasurements(max_depth=depth, interactive_in_view=interactive, fragmentation=fragmentation)
        )
        assert 0.0 <= result.raw_score <= 1.0 + 1e-12
        for term in (result.depth_term, result.density_term, result.fragment_term):
            assert 0.0 <= term <= 1.0
        if depth >= 20:
            assert result.depth_term == 1.0
        if interactive >= 20:
            assert result.density_term == 1.0
        if fragmentation >= 5:
            assert result.fragment_term == 1.0

    def test_huge_measurements_score_full_high(self):
        huge = 10**18
        result = LoadScoringModel().score(RawMeasurements(max_depth=huge, interactive_in_view=huge, fragmentation=huge))
        assert result.raw_score == pytest.approx(1.0)
        assert result.raw_score <= 1.0 + 1e-12
        assert result.label is LoadLabel.HIGH

    @given(
        depth=st.integers(min_value=0, max_value=30),
        interactive=st.integers(min_value=0, max_value=30),
        fragmentation=st.integers(min_value=0, max_value=8),
    )
    def test_scoring_is_deterministic(self, depth, interactive, fragmentation):
        measurements = RawMeasurements(max_depth=depth, interactive_in_view=interactive, fragmentation=fragmentation)
        assert LoadScoringModel().score(measurements) == LoadScoringModel().score(measurements)


@pytest.mark.unit
class TestMetricsConfig:
    """Validation of scoring configuration."""

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            MetricsConfig(weights={"depth": 0.5, "density": 0.5, "fragmentation": 0.5})

    def test_weights_must_be_complete(self):
        with pytest.raises(ValidationError):
            MetricsConfig(weights={"depth": 0.5, "density": 0.5})

    def test_medium_cannot_exceed_high(self):
        with pytest.raises(ValidationError):
            MetricsConfig(high_threshold=0.3, medium_threshold=0.5)


@pytest.mark.unit
class TestSnapshotAssembly:
    """Tests for assemble_snapshot and the stored record form."""

    def test_assemble_uses_given_timestamp(self, model):
        measurements = RawMeasurements(max_depth=4, interactive_in_view=2, density=2 / 1296000, fragmentation=1)
        snapshot = assemble_snapshot(measurements, model.score(measurements), "https://example.com/", 1700000000000)
        assert snapshot.captured_at_millis == 1700000000000
        assert snapshot.source_url == "https://example.com/"
        assert snapshot.measurements is measurements

    def test_assemble_defaults_to_now(self, model):
        before = now_millis()
        snapshot = assemble_snapshot(RawMeasurements(), model.score(RawMeasurements()), "file:///tmp/a.html")
        assert before <= snapshot.captured_at_millis <= now_millis()

    def test_snapshot_is_immutable(self, model):
        snapshot = assemble_snapshot(RawMeasurements(), model.score(RawMeasurements()), "https://a/", 1)
        with pytest.raises(AttributeError):
            snapshot.source_url = "https://b/"  # type: ignore[misc]

    def test_record_keys(self, model):
        measurements = RawMeasurements(max_depth=8, interactive_in_view=25, density=0.1, fragmentation=6)
        record = assemble_snapshot(measurements, model.score(measurements), "https://a/", 42).to_record()
        assert record["maxDepth"] == 8
        assert record["interactiveInView"] == 25
        assert record["fragmentation"] == 6
        assert record["timestamp"] == 42
        assert record["label"] == "High Load"
        assert record["rawScore"] == pytest.approx(0.85)
        assert record["sourceUrl"] == "https://a/"

    def test_record_round_trip(self, model):
        measurements = RawMeasurements(max_depth=3, interactive_in_view=7, density=0.002, fragmentation=2)
        snapshot = assemble_snapshot(measurements, model.score(measurements), "https://a/", 99)
        assert Snapshot.from_record(snapshot.to_record()) == snapshot

    def test_malformed_record_raises(self):
        with pytest.raises(KeyError):
            Snapshot.from_record({"maxDepth": 1})
