"""Tests for cross-document boilerplate detection."""

from vecsync.dedup import BoilerplateAnalyzer, extract_ngrams

NAV = (
    "Homepage Products Solutions Enterprise Pricing Documentation "
    "Community Careers Newsroom Subscribe"
)
SHARED_PAIR = (
    "Lighthouse keepers maintained navigational beacons throughout "
    "treacherous winters along northern coastlines"
)


def page(body: str, header: str = "") -> str:
    return f"{header} {body}".strip()


class TestExtractNgrams:
    """Tests for sliding-window n-grams."""

    def test_half_window_stride(self):
        words = "a b c d e f"
        assert extract_ngrams(words, (4,)) == {"a b c d", "c d e f"}

    def test_short_text_has_no_long_ngrams(self):
        assert extract_ngrams("only three words", (5,)) == set()

    def test_stride_of_one_for_tiny_windows(self):
        assert extract_ngrams("x y z", (1,)) == {"x", "y", "z"}


class TestBoilerplateAnalyzer:
    """Tests for analyze and clean."""

    def sample(self) -> list[str]:
        return [
            page("Volcanic basalt formations erupted across ancient seafloor ridges", NAV),
            page("Migratory swallows traverse continents following magnetic cues", NAV),
            page("Fermentation transforms cabbage into tangy sauerkraut slowly", NAV),
            page(SHARED_PAIR + " Glaciers carved fjords gradually"),
            page(SHARED_PAIR + " Telescopes revealed distant quasars"),
        ]

    def test_phrase_in_enough_documents_is_common(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=3)
        count = analyzer.analyze(self.sample())

        assert analyzer.analyzed
        assert count > 0
        assert NAV in analyzer.common_phrases

    def test_phrase_below_threshold_is_not_common(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=3)
        analyzer.analyze(self.sample())

        assert not any("Lighthouse" in phrase for phrase in analyzer.common_phrases)

    def test_clean_strips_common_phrase_from_new_document(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=3)
        analyzer.analyze(self.sample())

        sixth = page(SHARED_PAIR + " Orchards flourish beside riverbanks", NAV)
        cleaned = analyzer.clean(sixth)

        assert NAV not in cleaned
        assert "Homepage" not in cleaned
        assert SHARED_PAIR in cleaned
        assert "Orchards flourish beside riverbanks" in cleaned

    def test_repeats_within_one_document_are_not_boilerplate(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=2)
        repeated = " ".join([NAV] * 10)
        analyzer.analyze([repeated, "Completely unrelated prose about tidepools and anemones"])

        assert analyzer.common_phrases == []

    def test_phrases_sorted_longest_first(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=3)
        analyzer.analyze(self.sample())

        lengths = [len(phrase) for phrase in analyzer.common_phrases]
        assert lengths == sorted(lengths, reverse=True)

    def test_sample_is_capped(self):
        analyzer = BoilerplateAnalyzer(min_occurrences=2, sample_size=2)
        analyzer.analyze(
            [
                "Unique opening paragraph about mountaineering expeditions",
                "Another unique paragraph concerning desert caravans",
                page("First copy", NAV),
                page("Second copy", NAV),
            ]
        )
        assert analyzer.common_phrases == []

    def test_clean_without_analysis_is_identity(self):
        text = "Nothing   to\nclean here"
        assert BoilerplateAnalyzer().clean(text) == text
