"""Lyrics / style helpers used to build the provider generation payload."""
import re

MAX_STYLE_LENGTH = 1000
MAX_PROMPT_LENGTH = 5000
PREVIEW_MAX_LINES = 10
PREVIEW_MAX_CHARS = 500

_METADATA_LINE = re.compile(r"^(BPM|Tom|Duração|Instrumental|Vocal|Estrutura):", re.IGNORECASE)
_SECTION_LINE = re.compile(r"^\[(Verse|Chorus|Bridge|Refrão|Verso|Ponte|Intro|Outro)", re.IGNORECASE)

# Quiz style (PT / EN / ES) -> provider style tag
STYLE_MAP: dict[str, str] = {
    "romântico": "pop",
    "romantic": "pop",
    "romántico": "pop",
    "pop": "pop",
    "rock": "rock",
    "mpb": "mpb",
    "sertanejo": "sertanejo",
    "sertanejo_uni": "sertanejo",
    "sertanejo universitário": "sertanejo",
    "sertanejo universitario": "sertanejo",
    "forró": "forro",
    "forro": "forro",
    "jazz": "jazz",
    "gospel": "gospel",
    "louvor": "gospel",
    "praise": "gospel",
    "alabanza": "gospel",
    "reggae": "reggae",
    "eletrônico": "electronic",
    "electronic": "electronic",
    "electrónico": "electronic",
    "eletronico": "electronic",
    "rap": "rap",
    "hip-hop": "rap",
    "hip hop": "rap",
    "rap/hip-hop": "rap",
}


def map_style(quiz_style: str | None) -> str:
    """Map a quiz style to the provider tag, falling back to the lowercased input."""
    normalized = (quiz_style or "").strip().lower()
    if not normalized:
        return "pop"
    return STYLE_MAP.get(normalized, normalized)


def build_style(quiz_style: str | None, suffix: str) -> str:
    style = f"{map_style(quiz_style)}, {suffix}" if suffix else map_style(quiz_style)
    return style[:MAX_STYLE_LENGTH]


def clean_lyrics(text: str) -> str:
    """Drop technical metadata lines (``BPM:``, ``Tom:`` ...) from lyrics."""
    if not text:
        return ""
    lines = [line for line in text.split("\n") if not _METADATA_LINE.match(line.strip())]
    return "\n".join(lines).strip()


def lyrics_text(lyrics) -> str:
    """Lyrics blobs are either a plain string or ``{"title", "lyrics", ...}``."""
    if isinstance(lyrics, str):
        return lyrics
    if isinstance(lyrics, dict):
        return str(lyrics.get("lyrics") or "")
    return ""


def lyrics_title(lyrics, default: str = "Música Personalizada") -> str:
    if isinstance(lyrics, dict) and lyrics.get("title"):
        return str(lyrics["title"]).strip()
    return default


def build_preview(text: str) -> str:
    """First lines of the lyrics without section markers, capped for display."""
    lines = [s.strip() for s in (text or "").split("\n")]
    lines = [l for l in lines if l and not _SECTION_LINE.match(l)]
    preview = "\n".join(lines[:PREVIEW_MAX_LINES])
    if len(preview) > PREVIEW_MAX_CHARS:
        preview = preview[:PREVIEW_MAX_CHARS] + "..."
    return preview


def vocal_gender(approval_voice: str | None, quiz_vocal_gender: str | None) -> str | None:
    """Resolve the provider ``vocalGender`` (``m`` / ``f``) or None for no preference.

    An explicit approval voice wins over the quiz answer; ``S`` means the
    admin chose no preference, so the quiz is not consulted.
    """
    if approval_voice is not None and str(approval_voice).strip():
        voice = str(approval_voice).strip().upper()
        return {"M": "m", "F": "f"}.get(voice)
    if quiz_vocal_gender is not None:
        gender = str(quiz_vocal_gender).strip().lower()
        if gender in ("m", "f"):
            return gender
    return None
