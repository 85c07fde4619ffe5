"""Tests for the co-occurrence similarity builder."""

import numpy as np
import pytest

from cardsort_analysis.records import GroupNode, Item, Session
from cardsort_analysis.similarity import (
    SimilarityBuilder,
    SimilarityMatrix,
    build_similarity_matrix,
)


def _catalog(*ids):
    return [Item(id=item_id, label=item_id.upper()) for item_id in ids]


def _session(session_id, *groups):
    return Session(id=session_id, groups=list(groups))


def _group(*item_ids, children=()):
    return GroupNode(item_ids=list(item_ids), children=list(children))


def _random_sessions(item_ids, n_sessions, seed):
    """Generate nested sessions that place every item at most once."""
    rng = np.random.default_rng(seed)
    sessions = []
    for s in range(n_sessions):
        shuffled = [str(item_id) for item_id in rng.permutation(item_ids)]
        # Drop a few items so presence varies between sessions
        kept = shuffled[: rng.integers(1, len(shuffled) + 1)]
        groups = []
        while kept:
            size = int(rng.integers(1, 4))
            local, kept = kept[:size], kept[size:]
            child_size = int(rng.integers(0, 3))
            child, kept = kept[:child_size], kept[child_size:]
            children = [_group(*child)] if child else []
            groups.append(_group(*local, children=children))
        sessions.append(_session(f"s{s}", *groups))
    return sessions


class TestScenarios:
    """Test reference scenarios."""

    def test_single_session_pair_and_singleton(self):
        """Test {X, Y} grouped together and Z alone."""
        catalog = _catalog("X", "Y", "Z")
        sessions = [_session("s1", _group("X", "Y"), _group("Z"))]

        matrix = build_similarity_matrix(catalog, sessions, ["X", "Y", "Z"])
        C, P, S = matrix.cooccurrence, matrix.copresence, matrix.similarity

        assert C[0, 1] == C[1, 0] == 1, "X and Y co-occur once"
        assert C[0, 0] == C[1, 1] == 1, "Self pairs count inside a cluster"
        assert C[2, 2] == 0, "A lone item forms no cluster"
        assert np.all(P == 1), "All three items were present in the session"
        assert S[0, 1] == 1.0
        assert S[0, 2] == S[1, 2] == 0.0
        assert S[0, 0] == S[1, 1] == S[2, 2] == 1.0, "Present items are fully self-similar"

    def test_zero_sessions(self):
        """Test no sessions gives the all-zero matrix including the diagonal."""
        matrix = build_similarity_matrix(_catalog("a", "b"), [], ["a", "b"])

        np.testing.assert_array_equal(matrix.similarity, np.zeros((2, 2)))
        assert matrix.n_sessions == 0


class TestCounting:
    """Test co-occurrence and co-presence counting rules."""

    def test_rate_over_sessions(self):
        """Test similarity is co-occurrence over co-presence."""
        catalog = _catalog("a", "b", "c")
        sessions = [
            _session("s1", _group("a", "b"), _group("c")),
            _session("s2", _group("a", "c"), _group("b")),
        ]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.value("a", "b") == 0.5
        assert matrix.value("a", "c") == 0.5
        assert matrix.value("b", "c") == 0.0
        assert matrix.copresence[0, 1] == 2

    def test_denominator_only_counts_sessions_with_both(self):
        """Test a pair is only judged in sessions holding both items."""
        catalog = _catalog("a", "b", "c")
        sessions = [
            _session("s1", _group("a", "b")),
            _session("s2", _group("a", "c")),
        ]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.copresence[0, 1] == 1
        assert matrix.value("a", "b") == 1.0
        assert matrix.value("b", "c") == 0.0, "b and c never met"
        assert matrix.copresence[1, 2] == 0

    def test_nested_groups_are_independent_contexts(self):
        """Test parent and child groups cluster separately."""
        catalog = _catalog("a", "b", "c", "d")
        sessions = [_session("s1", _group("a", "b", children=[_group("c", "d")]))]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.value("a", "b") == 1.0
        assert matrix.value("c", "d") == 1.0
        assert matrix.value("a", "c") == 0.0, "Child items are not local to the parent"
        assert np.all(matrix.copresence == 1), "Nested items still count as present"

    def test_each_nesting_level_counts(self):
        """Test one session contributes once per qualifying group."""
        catalog = _catalog("a", "b", "c", "d")
        sessions = [
            _session(
                "s1",
                _group("a", "b", children=[_group("c", "d", children=[_group("x-missing")])]),
            )
        ]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.cooccurrence[0, 1] == 1
        assert matrix.cooccurrence[2, 3] == 1
        assert matrix.cooccurrence.sum() == 8, "Two 2x2 blocks of ones"

    def test_presence_counted_once_per_session(self):
        """Test an item in several groups raises presence only once."""
        catalog = _catalog("a", "b")
        sessions = [_session("s1", _group("a", "b"), _group("a"))]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.copresence[0, 0] == 1
        assert matrix.copresence[0, 1] == 1

    def test_unknown_ids_are_ignored(self):
        """Test ids outside the catalog neither cluster nor count as present."""
        catalog = _catalog("a", "b")
        sessions = [_session("s1", _group("a", "ghost"), _group("b"))]

        matrix = build_similarity_matrix(catalog, sessions)

        assert matrix.cooccurrence[0, 0] == 0, "Only one known item in the group"
        assert matrix.value("a", "b") == 0.0
        assert matrix.copresence[0, 1] == 1

    def test_selected_id_outside_catalog_stays_empty(self):
        """Test a selected id missing from the catalog collects no evidence."""
        catalog = _catalog("a", "b")
        sessions = [_session("s1", _group("a", "b", "ghost"))]

        matrix = build_similarity_matrix(catalog, sessions, ["a", "b", "ghost"])

        assert matrix.value("a", "b") == 1.0
        assert matrix.copresence[2].sum() == 0
        assert matrix.value("ghost", "ghost") == 0.0

    def test_unselected_items_are_ignored(self):
        """Test only selected items form clusters."""
        catalog = _catalog("a", "b", "c")
        sessions = [_session("s1", _group("a", "c"), _group("b", "c"))]

        matrix = build_similarity_matrix(catalog, sessions, ["a", "b"])

        assert matrix.item_ids == ("a", "b")
        assert matrix.cooccurrence.sum() == 0, "Each group has one selected item"
        assert matrix.value("a", "b") == 0.0
        assert matrix.value("a", "a") == 1.0

    def test_absent_item_has_zero_row(self):
        """Test an item missing from every session has a zero row and diagonal."""
        catalog = _catalog("a", "b", "c")
        sessions = [_session("s1", _group("a", "b"))]

        matrix = build_similarity_matrix(catalog, sessions)

        assert np.all(matrix.similarity[2] == 0.0)
        assert np.all(matrix.similarity[:, 2] == 0.0)

    def test_selection_order_is_respected(self):
        """Test the matrix follows the given selection order."""
        catalog = _catalog("a", "b", "c")
        sessions = [_session("s1", _group("a", "b"), _group("c"))]

        forward = build_similarity_matrix(catalog, sessions, ["a", "b", "c"])
        backward = build_similarity_matrix(catalog, sessions, ["c", "b", "a"])

        np.testing.assert_array_equal(backward.similarity, forward.similarity[::-1, ::-1])


class TestProperties:
    """Test invariants over generated sessions."""

    @pytest.fixture
    def matrix(self):
        ids = [f"card-{i}" for i in range(12)]
        return build_similarity_matrix(_catalog(*ids), _random_sessions(ids, 30, seed=7))

    def test_symmetry(self, matrix):
        """Test S, C and P are symmetric."""
        np.testing.assert_array_equal(matrix.similarity, matrix.similarity.T)
        np.testing.assert_array_equal(matrix.cooccurrence, matrix.cooccurrence.T)
        np.testing.assert_array_equal(matrix.copresence, matrix.copresence.T)

    def test_bounds(self, matrix):
        """Test all similarities lie in [0, 1] and the diagonal is 0 or 1."""
        assert matrix.similarity.min() >= 0.0
        assert matrix.similarity.max() <= 1.0
        assert set(np.diag(matrix.similarity).tolist()) <= {0.0, 1.0}

    def test_counts_consistent(self, matrix):
        """Test co-occurrence never exceeds co-presence."""
        assert np.all(matrix.cooccurrence <= matrix.copresence)

    def test_arrays_are_read_only(self, matrix):
        """Test returned matrices cannot be edited in place."""
        with pytest.raises(ValueError):
            matrix.similarity[0, 0] = 0.5


class TestSimilarityBuilder:
    """Test the incremental builder."""

    def test_duplicate_selection_raises(self):
        """Test duplicate selected ids are rejected."""
        with pytest.raises(ValueError, match="duplicate ids"):
            SimilarityBuilder(_catalog("a", "b"), ["a", "b", "a"])

    def test_build_snapshots_are_independent(self):
        """Test later sessions do not change an already built matrix."""
        builder = SimilarityBuilder(_catalog("a", "b"), ["a", "b"])
        builder.add_session(_session("s1", _group("a", "b")))
        first = builder.build()

        builder.add_session(_session("s2", _group("a"), _group("b")))
        second = builder.build()

        assert isinstance(first, SimilarityMatrix)
        assert first.value("a", "b") == 1.0
        assert second.value("a", "b") == 0.5
        assert second.n_sessions == 2

    def test_add_sessions_with_progress(self):
        """Test progress bar wrapping does not change counts."""
        builder = SimilarityBuilder(_catalog("a", "b"), ["a", "b"])
        builder.add_sessions([_session("s1", _group("a", "b"))], show_progress=True)

        assert builder.build().value("a", "b") == 1.0

    def test_unknown_item_lookup(self):
        """Test looking up an id outside the matrix raises KeyError."""
        matrix = build_similarity_matrix(_catalog("a"), [])

        with pytest.raises(KeyError, match="not part of this matrix"):
            matrix.index_of("b")

    def test_empty_selection(self):
        """Test an empty selection gives a 0x0 matrix."""
        matrix = build_similarity_matrix(_catalog("a"), [], [])

        assert matrix.similarity.shape == (0, 0)
        assert matrix.n_items == 0
