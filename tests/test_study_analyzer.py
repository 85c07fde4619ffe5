"""Tests for analysis configuration and the study analyzer."""

import json
import threading

import numpy as np
import pytest

from cardsort_analysis.analysis import (
    AnalysisConfig,
    AnalysisResult,
    StudyAnalyzer,
    analyze_study,
    compute_analysis_key,
    summarize_result,
)
from cardsort_analysis.records import GroupNode, Item, Session, Study


@pytest.fixture
def study():
    """Study where {a, b} and {c, d} are usually grouped together."""
    cards = [Item(id=i, label=i.upper()) for i in ["a", "b", "c", "d", "e"]]
    sessions = [
        Session(id="s1", groups=[GroupNode(item_ids=["a", "b"]), GroupNode(item_ids=["c", "d"])]),
        Session(id="s2", groups=[GroupNode(item_ids=["a", "b"]), GroupNode(item_ids=["c", "d"])]),
        Session(
            id="s3",
            groups=[GroupNode(item_ids=["a"], children=[GroupNode(item_ids=["b", "c"])]), GroupNode(item_ids=["d"])],
        ),
    ]
    return Study(id="st", name="Demo", cards=cards, sessions=sessions)


class TestAnalysisConfig:
    """Test AnalysisConfig validation and persistence."""

    def test_defaults(self):
        """Test default settings."""
        config = AnalysisConfig()

        assert config.linkage == "average"
        assert config.n_components == 2
        assert config.n_iterations == 200
        assert config.item_limit == 24

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"linkage": "ward"}, "linkage must be one of"),
            ({"n_components": 0}, "n_components must be positive"),
            ({"n_iterations": -5}, "n_iterations must be positive"),
            ({"item_limit": 0}, "item_limit must be positive"),
        ],
    )
    def test_invalid_values(self, kwargs, message):
        """Test invalid settings raise ValueError."""
        with pytest.raises(ValueError, match=message):
            AnalysisConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [{"n_components": 2.5}, {"n_iterations": "200"}, {"item_limit": True}],
    )
    def test_non_integer_values(self, kwargs):
        """Test non-integer counts are rejected when the config is built."""
        with pytest.raises(TypeError, match="must be int"):
            AnalysisConfig(**kwargs)

    def test_save_and_load(self, tmp_path):
        """Test JSON round trip."""
        config = AnalysisConfig(linkage="single", random_seed=None, item_limit=None)
        path = tmp_path / "nested" / "config.json"

        config.save(path)
        loaded = AnalysisConfig.load(path)

        assert loaded == config
        assert json.loads(path.read_text(encoding="utf-8"))["linkage"] == "single"

    def test_load_missing(self, tmp_path):
        """Test loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            AnalysisConfig.load(tmp_path / "nope.json")


class TestStudyAnalyzer:
    """Test end-to-end analysis."""

    def test_analyze_outputs(self, study):
        """Test matrix, dendrogram and embedding cover the selection."""
        result = StudyAnalyzer().analyze_study(study, item_ids=["a", "b", "c", "d"])

        assert isinstance(result, AnalysisResult)
        assert result.item_ids == ("a", "b", "c", "d")
        assert result.similarity.value("a", "b") == pytest.approx(2 / 3)
        assert result.similarity.value("b", "c") == pytest.approx(1 / 3)
        assert sorted(result.dendrogram.leaf_ids()) == ["a", "b", "c", "d"]
        assert result.embedding.coordinates.shape == (4, 2)
        assert sorted(result.leaf_order) == ["a", "b", "c", "d"]

    def test_default_selection_uses_item_limit(self, study):
        """Test the first item_limit catalog items are analyzed."""
        result = StudyAnalyzer(AnalysisConfig(item_limit=3)).analyze_study(study)

        assert result.item_ids == ("a", "b", "c")

    def test_unused_item_in_selection(self, study):
        """Test an item never sorted still gets a leaf and a coordinate."""
        result = StudyAnalyzer().analyze_study(study)

        assert "e" in result.dendrogram.leaf_ids()
        assert result.similarity.value("e", "e") == 0.0
        assert len(result.embedding.as_dict()) == 5

    def test_cache_hit_returns_same_result(self, study):
        """Test identical inputs are served from the cache."""
        analyzer = StudyAnalyzer()

        first = analyzer.analyze_study(study)
        second = analyzer.analyze_study(study)

        assert first is second
        assert analyzer.cache_size == 1

    def test_cache_key_depends_on_inputs(self, study):
        """Test selection and settings change the key, metadata does not."""
        ids = ["a", "b", "c"]
        config = AnalysisConfig()
        base = compute_analysis_key(ids, study.sessions, config)

        renamed = [
            Session(id=s.id, groups=s.groups, duration_sec=999.0, demographics={"age": 1})
            for s in study.sessions
        ]

        assert compute_analysis_key(ids, renamed, config) == base
        assert compute_analysis_key(["c", "b", "a"], study.sessions, config) != base
        assert compute_analysis_key(ids, study.sessions, AnalysisConfig(linkage="single")) != base
        assert compute_analysis_key(ids, study.sessions[:2], config) != base

    def test_cache_key_depends_on_catalog(self):
        """Test a smaller catalog is not served a result built from a larger one."""
        sessions = [Session(id="s1", groups=[GroupNode(item_ids=["a", "b"])])]
        full_catalog = [Item(id="a", label="A"), Item(id="b", label="B")]
        partial_catalog = [Item(id="a", label="A")]
        analyzer = StudyAnalyzer()

        full = analyzer.analyze(full_catalog, sessions, item_ids=["a", "b"])
        partial = analyzer.analyze(partial_catalog, sessions, item_ids=["a", "b"])

        assert full.similarity.value("a", "b") == pytest.approx(1.0)
        assert partial.similarity.value("a", "b") == 0.0, "Stale result served from cache"
        assert partial.cache_key != full.cache_key
        assert analyzer.cache_size == 2

    def test_cache_key_ignores_unselected_catalog_items(self, study):
        """Test catalog items outside the selection do not change the key."""
        ids = ["a", "b"]
        config = AnalysisConfig()

        base = compute_analysis_key(ids, study.sessions, config, study.cards)

        assert compute_analysis_key(ids, study.sessions, config, study.cards[:2]) == base
        assert compute_analysis_key(ids, study.sessions, config) == base
        assert compute_analysis_key(ids, study.sessions, config, study.cards[:1]) != base

    def test_cache_disabled(self, study):
        """Test use_cache=False recomputes every time."""
        analyzer = StudyAnalyzer(AnalysisConfig(use_cache=False))

        first = analyzer.analyze_study(study)
        second = analyzer.analyze_study(study)

        assert first is not second
        assert analyzer.cache_size == 0
        np.testing.assert_array_equal(first.embedding.coordinates, second.embedding.coordinates)

    def test_cache_eviction_and_clear(self, study):
        """Test the cache keeps at most max_cache_entries results."""
        analyzer = StudyAnalyzer(max_cache_entries=2)

        analyzer.analyze_study(study, item_ids=["a", "b"])
        analyzer.analyze_study(study, item_ids=["a", "c"])
        analyzer.analyze_study(study, item_ids=["a", "d"])

        assert analyzer.cache_size == 2

        analyzer.clear_cache()
        assert analyzer.cache_size == 0

    def test_cache_size_waits_for_lock(self, study):
        """Test reading cache_size synchronizes with cache writers."""
        analyzer = StudyAnalyzer()
        analyzer.analyze_study(study)
        sizes = []

        with analyzer._lock:
            reader = threading.Thread(target=lambda: sizes.append(analyzer.cache_size))
            reader.start()
            reader.join(timeout=0.2)
            assert reader.is_alive(), "cache_size read the cache without the lock"

        reader.join(timeout=5)
        assert sizes == [1]

    def test_invalid_cache_size(self):
        """Test non-positive cache size raises ValueError."""
        with pytest.raises(ValueError, match="max_cache_entries must be positive"):
            StudyAnalyzer(max_cache_entries=0)

    def test_duplicate_selection(self, study):
        """Test duplicate selected ids are rejected."""
        with pytest.raises(ValueError, match="duplicate ids"):
            StudyAnalyzer().analyze_study(study, item_ids=["a", "a"])

    def test_empty_selection(self, study):
        """Test an empty selection cannot be clustered."""
        with pytest.raises(ValueError, match="without items"):
            StudyAnalyzer().analyze_study(study, item_ids=[])

    def test_analyze_study_function(self, study):
        """Test the one-off helper matches the analyzer."""
        config = AnalysisConfig(linkage="complete")

        result = analyze_study(study, config, item_ids=["a", "b", "c", "d"])
        expected = StudyAnalyzer(config).analyze_study(study, item_ids=["a", "b", "c", "d"])

        assert result.dendrogram == expected.dendrogram
        np.testing.assert_array_equal(result.embedding.coordinates, expected.embedding.coordinates)

    def test_summarize_result_is_json_friendly(self, study):
        """Test the summary serializes to JSON."""
        result = StudyAnalyzer().analyze_study(study, item_ids=["a", "b", "c", "d"])

        summary = summarize_result(result)
        encoded = json.dumps(summary)

        assert summary["n_sessions"] == 3
        assert len(summary["merge_heights"]) == 3
        assert set(summary["coordinates"]) == {"a", "b", "c", "d"}
        assert json.loads(encoded)["item_ids"] == ["a", "b", "c", "d"]
