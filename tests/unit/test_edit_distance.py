import pytest

from services.edit_distance import levenshtein_distance, max_fuzzy_distance


class TestLevenshteinDistance:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("", "", 0),
            ("", "abc", 3),
            ("abc", "", 3),
            ("kitten", "sitting", 3),
            ("action", "actoin", 2),
            ("flaw", "lawn", 2),
            ("動作", "動作場面", 2),
        ],
    )
    def test_known_distances(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    def test_identity_is_zero(self):
        assert levenshtein_distance("romance", "romance") == 0

    def test_symmetric(self):
        assert levenshtein_distance("isekai", "isekia") == levenshtein_distance("isekia", "isekai")

    def test_triangle_inequality(self):
        a, b, c = "school", "scholar", "schooled"
        assert levenshtein_distance(a, c) <= levenshtein_distance(a, b) + levenshtein_distance(b, c)


class TestMaxFuzzyDistance:
    @pytest.mark.parametrize("length,expected", [(0, 0), (3, 0), (4, 2), (7, 2), (8, 3), (40, 3)])
    def test_length_bands(self, length, expected):
        assert max_fuzzy_distance(length) == expected
