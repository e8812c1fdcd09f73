"""Tests for lyrics / style helpers."""
from musiclovely.utils.lyrics import (
    build_preview,
    build_style,
    clean_lyrics,
    lyrics_text,
    lyrics_title,
    map_style,
    vocal_gender,
)


class TestStyle:
    def test_known_styles(self):
        assert map_style("Romântico") == "pop"
        assert map_style("sertanejo universitário") == "sertanejo"
        assert map_style("Hip Hop") == "rap"

    def test_unknown_and_empty(self):
        assert map_style("bossa nova") == "bossa nova"
        assert map_style(None) == "pop"

    def test_build_style_is_truncated(self):
        assert len(build_style("rock", "x" * 2000)) == 1000


class TestLyrics:
    def test_clean_lyrics_drops_metadata(self):
        text = "BPM: 72\nVerso um\nVocal: feminino\nVerso dois"
        assert clean_lyrics(text) == "Verso um\nVerso dois"

    def test_lyrics_text_shapes(self):
        assert lyrics_text("plain") == "plain"
        assert lyrics_text({"lyrics": "obj"}) == "obj"
        assert lyrics_text(None) == ""

    def test_title_default(self):
        assert lyrics_title({"title": " Para Você "}) == "Para Você"
        assert lyrics_title("no title") == "Música Personalizada"

    def test_preview_skips_sections_and_caps_lines(self):
        text = "[Verse 1]\n" + "\n".join(f"linha {i}" for i in range(15))
        preview = build_preview(text)
        assert preview.splitlines()[0] == "linha 0"
        assert len(preview.splitlines()) == 10

    def test_preview_caps_length(self):
        preview = build_preview("a" * 800)
        assert preview == "a" * 500 + "..."


class TestVocalGender:
    def test_approval_voice_wins(self):
        assert vocal_gender("M", "f") == "m"

    def test_no_preference_ignores_quiz(self):
        assert vocal_gender("S", "f") is None

    def test_falls_back_to_quiz(self):
        assert vocal_gender(None, "F") == "f"
        assert vocal_gender("", "x") is None
