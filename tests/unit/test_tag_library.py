import pytest

from models.domain import GeneratedTag, TagLanguage
from services.tag_library import (
    MULTILINGUAL_HEADER,
    SIMPLE_HEADER,
    TagLookup,
    build_prompt_library,
    build_tag_lookup,
    load_tag_library_csv,
    normalize_tags,
)


class TestSimpleFormatLookup:
    def test_fuzzy_match_resolves_to_tag(self):
        lookup = TagLookup.from_csv("h,tag,definition\nAction,動作場面")

        assert lookup.resolve("actoin") == "Action"

    def test_exact_match_is_case_insensitive(self, simple_csv):
        lookup = TagLookup.from_csv(simple_csv)

        assert lookup.resolve("  ROMANCE ") == "Romance"

    def test_definition_maps_back_to_tag(self, simple_csv):
        lookup = TagLookup.from_csv(simple_csv)

        assert lookup.resolve("戀愛故事") == "Romance"

    def test_language_does_not_change_simple_lookup(self, simple_csv):
        assert TagLookup.from_csv(simple_csv, TagLanguage.EN).resolve("action") == "Action"
        assert TagLookup.from_csv(simple_csv, TagLanguage.TC).resolve("action") == "Action"


class TestMultilingualLookup:
    def test_exact_match_returns_target_language(self, multilingual_csv):
        lookup = TagLookup.from_csv(multilingual_csv, TagLanguage.TC)

        assert lookup.resolve("Action") == "動作"

    def test_fuzzy_match_returns_target_language(self, multilingual_csv):
        lookup = TagLookup.from_csv(multilingual_csv, TagLanguage.TC)

        assert lookup.resolve("aciton") == "動作"

    def test_any_variant_maps_to_target(self, multilingual_csv):
        lookup = TagLookup.from_csv(multilingual_csv, TagLanguage.EN)

        assert lookup.resolve("恋爱") == "romance"
        assert lookup.resolve("戀愛") == "romance"

    def test_separator_rows_are_ignored(self, multilingual_csv):
        lookup = TagLookup.from_csv(multilingual_csv)

        assert "==校園==" not in lookup
        assert lookup.resolve("school") == "校园"

    def test_rows_without_description_are_skipped(self):
        raw = "原始标签,名称,台灣翻譯,備註,描述\nmecha,机甲,機甲,,\naction,动作,動作,,戰鬥場景\n"
        lookup = TagLookup.from_csv(raw)

        assert lookup.resolve("mecha") is None
        assert lookup.resolve("action") == "动作"

    def test_rows_without_target_value_are_skipped(self):
        raw = "原始标签,名称,台灣翻譯,備註,描述\nmecha,,機甲,,巨大機器人\naction,动作,動作,,戰鬥場景\n"
        lookup = TagLookup.from_csv(raw, TagLanguage.SC)

        assert lookup.resolve("mecha") is None

    def test_malformed_rows_are_not_fatal(self):
        raw = '原始标签,名称,台灣翻譯,備註,描述\naction,动作,動作,,戰鬥場景\nshort,row\n"broken\n'
        lookup = TagLookup.from_csv(raw)

        assert lookup.resolve("action") == "动作"


class TestFuzzyTolerance:
    @pytest.mark.parametrize("candidate", ["ac", "acn", "sch", "xyz"])
    def test_short_candidates_need_exact_match(self, candidate):
        lookup = TagLookup({"act": "act", "ach": "ach", "scho": "scho"})

        assert lookup.resolve(candidate) is None

    def test_short_exact_match_still_resolves(self):
        lookup = TagLookup({"bl": "BL"})

        assert lookup.resolve("BL") == "BL"

    def test_beyond_tolerance_is_rejected(self, multilingual_csv):
        lookup = TagLookup.from_csv(multilingual_csv)

        assert lookup.resolve("adventure") is None

    def test_smallest_distance_wins(self):
        lookup = TagLookup({"romance": "romance", "romans": "romans"})

        assert lookup.resolve("romancx") == "romance"

    def test_ties_go_to_first_registered_key(self):
        lookup = TagLookup({"abcdx": "first", "abcdy": "second"})

        assert lookup.resolve("abcdz") == "first"

    def test_blank_candidate(self):
        assert TagLookup({"action": "action"}).resolve("   ") is None


class TestNormalizeTags:
    def test_known_tags_keep_their_score(self, multilingual_csv):
        tags = [GeneratedTag("action", 88), GeneratedTag("isekai", 12)]

        result = normalize_tags(tags, multilingual_csv, TagLanguage.TC)

        assert result == [GeneratedTag("動作", 88), GeneratedTag("異世界", 12)]

    def test_unknown_tags_are_dropped(self, multilingual_csv):
        tags = [GeneratedTag("cyberpunk", 50), GeneratedTag("romance", 30)]

        result = normalize_tags(tags, multilingual_csv, TagLanguage.SC)

        assert result == [GeneratedTag("恋爱", 30)]

    def test_duplicates_collapse_to_first_occurrence(self, multilingual_csv):
        tags = [
            GeneratedTag("動作", 70),
            GeneratedTag("action", 90),
            GeneratedTag("动作", 10),
            GeneratedTag("school", 20),
        ]

        result = normalize_tags(tags, multilingual_csv, TagLanguage.SC)

        assert [t.name for t in result] == ["动作", "校园"]
        assert result[0].score == 70

    def test_every_vocabulary_entry_round_trips(self, multilingual_csv):
        for language, names in {
            TagLanguage.EN: ["action", "romance", "school", "isekai"],
            TagLanguage.SC: ["动作", "恋爱", "校园", "异世界"],
            TagLanguage.TC: ["動作", "戀愛", "校園", "異世界"],
        }.items():
            tags = [GeneratedTag(name, i) for i, name in enumerate(names)]
            assert normalize_tags(tags, multilingual_csv, language) == tags

    def test_lookup_is_cached_per_library_and_language(self, multilingual_csv):
        first = build_tag_lookup(multilingual_csv, TagLanguage.TC)
        second = build_tag_lookup(multilingual_csv, TagLanguage.TC)
        other = build_tag_lookup(multilingual_csv, TagLanguage.EN)

        assert first is second
        assert first is not other


class TestPromptLibrary:
    def test_multilingual_library(self, multilingual_csv):
        library = build_prompt_library(multilingual_csv)

        assert library.is_loaded
        assert not library.is_simple_format
        assert library.text.splitlines()[0] == MULTILINGUAL_HEADER
        assert "==校園==" not in library.text
        assert library.description_for("動作") == "戰鬥場景"
        assert library.description_for("action") == "戰鬥場景"
        assert library.description_for("异世界") == "轉生到另一個世界"

    def test_simple_library(self, simple_csv):
        library = build_prompt_library(simple_csv)

        assert library.is_simple_format
        assert library.text.splitlines() == [SIMPLE_HEADER, "Action,動作場面", "Romance,戀愛故事"]
        assert library.description_for("Romance") == "戀愛故事"

    def test_missing_library(self):
        library = build_prompt_library(None)

        assert not library.is_loaded
        assert library.description_for("action") == ""


class TestLoadTagLibraryCsv:
    def test_reads_file(self, tmp_path, simple_csv):
        path = tmp_path / "tags.csv"
        path.write_text(simple_csv, encoding="utf-8")

        assert load_tag_library_csv(str(path)) == simple_csv

    def test_missing_file_returns_none(self, tmp_path):
        assert load_tag_library_csv(str(tmp_path / "missing.csv")) is None

    def test_non_utf8_file_returns_none(self, tmp_path):
        path = tmp_path / "tags.csv"
        path.write_bytes(b"tag,definition\n\xff\xfeAction,fight\n")

        assert load_tag_library_csv(str(path)) is None

    def test_no_path_returns_none(self):
        assert load_tag_library_csv(None) is None
