from careconnect.services.matching_service import match_score, rank_candidates, skills_overlap

REQUIRED = ["medical_care", "mobility_assistance"]


def test_partial_and_full_overlap():
    assert match_score(["medical_care"], REQUIRED) == 50
    assert match_score(["medical_care", "mobility_assistance", "companionship"], REQUIRED) == 100
    assert match_score(["companionship"], REQUIRED) == 0


def test_score_rounds_half_up():
    required = ["a", "b", "c"]
    assert match_score(["a"], required) == 33
    assert match_score(["a", "b"], required) == 67
    assert match_score(["a"], ["a", "b", "c", "d", "e", "f", "g", "h"]) == 13


def test_score_is_monotonic_and_bounded():
    required = ["a", "b", "c", "d", "e"]
    scores = [match_score(required[:n], required) for n in range(len(required) + 1)]
    assert scores == sorted(scores)
    assert all(0 <= score <= 100 for score in scores)


def test_duplicate_skills_count_once():
    assert match_score(["a", "a"], ["a", "b"]) == 50
    assert match_score([], []) == 0


def test_overlap():
    assert skills_overlap(["a", "x"], ["a", "b"])
    assert not skills_overlap(["x"], ["a", "b"])


def test_rank_orders_by_score_and_keeps_ties_stable():
    candidates = [
        ("A", ["medical_care"]),
        ("B", ["medical_care", "mobility_assistance", "companionship"]),
        ("C", ["mobility_assistance"]),
    ]
    ranked = rank_candidates(candidates, REQUIRED)
    assert ranked == [("B", 100), ("A", 50), ("C", 50)]


def test_rank_returns_top_five():
    candidates = [(f"C{i}", ["medical_care"]) for i in range(8)]
    ranked = rank_candidates(candidates, REQUIRED)
    assert [name for name, _ in ranked] == ["C0", "C1", "C2", "C3", "C4"]
