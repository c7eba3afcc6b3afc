import re

import config

# ---------------------------------------------------------------------
# Markdown cleanup (route text comes back from an LLM)
# ---------------------------------------------------------------------

def strip_markdown(text: str) -> str:
    """Drop emphasis markers, headings and bullets that TTS would read aloud."""
    text = re.sub(r"[*_`#]+", "", text)
    text = re.sub(r"^\s*[-•]\s+", "", text, flags=re.M)
    return text

# ---------------------------------------------------------------------
# Units and abbreviations
# ---------------------------------------------------------------------

_UNITS = {
    r"(\d+)\s*ft\b":   r"\1 feet",
    r"(\d+)\s*m\b":    r"\1 meters",
    r"(\d+)\s*yds?\b": r"\1 yards",
    r"(\d+)\s*°":      r"\1 degrees",
}

_ABBREVIATIONS = {
    r"\bRm\.?\s*(?=\d)": "room ",
    r"\bFl\.?\s*(?=\d)": "floor ",
    r"\bapprox\.?":      "approximately",
    r"\bN\.?E\.?\b":     "northeast",
    r"\bN\.?W\.?\b":     "northwest",
    r"\bS\.?E\.?\b":     "southeast",
    r"\bS\.?W\.?\b":     "southwest",
    r"&":                " and ",
}

def normalize_units(text: str) -> str:
    """Convert 20ft -> '20 feet', Rm 204 -> 'room 204'."""
    for pat, repl in _UNITS.items():
        text = re.sub(pat, repl, text, flags=re.I)
    for pat, repl in _ABBREVIATIONS.items():
        text = re.sub(pat, repl, text)
    return text

# ---------------------------------------------------------------------
# General pronunciation normalization
# ---------------------------------------------------------------------

def normalize_pronunciation(text: str) -> str:
    """
    Normalize text so it is spoken clearly by TTS engines.
    """

    # "STEP 3:" reads better as "Step 3."
    text = re.sub(r"\bSTEP\s*(\d+)\s*:", r"Step \1.", text, flags=re.I)

    # Acronyms: speak letters individually
    ACR_SPACE = {
        r"\bADA\b": "A D A",
        r"\bATM\b": "A T M",
        r"\bAED\b": "A E D",
        r"\bHVAC\b": "H VAC",
    }
    for pat, repl in ACR_SPACE.items():
        text = re.sub(pat, repl, text)

    # Punctuation spacing fixes
    text = re.sub(r"([.?!])(?=[A-Za-z])", r"\1 ", text)
    text = re.sub(r"(?<=\w)/(?=\w)", " or ", text)

    return re.sub(r"\s{2,}", " ", text).strip()

# ---------------------------------------------------------------------
# Canonical TTS pipeline
# ---------------------------------------------------------------------

def truncate(text: str, max_chars: int = config.TTS_MAX_CHARS) -> str:
    """Cap length on a word boundary."""
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars].rsplit(" ", 1)[0]
    return cut.rstrip(",;: ") + "."

def normalize_for_tts(text: str) -> str:
    text = strip_markdown(text or "")
    text = normalize_units(text)
    text = normalize_pronunciation(text)
    return truncate(text)
