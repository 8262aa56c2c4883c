import re

SENTINEL_VALUES = {
    "not provided", "n/a", "na", "unknown", "none", "tbd", "null",
    "name", "email", "phone", "pujaname", "puja name",
}

WORD_TO_DIGIT = {
    "zero": "0", "oh": "0", "o": "0",
    "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
}

# Spoken email fragments as speech recognition tends to transcribe them.
_SPOKEN_EMAIL = (
    (r"\s+at\s+", "@"),
    (r"\s+dot\s+", "."),
    (r"\s+underscore\s+", "_"),
    (r"\s+dash\s+", "-"),
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[a-z]{2,}$")


def _clean(value: str | None) -> str:
    if not value:
        return ""
    cleaned = value.strip()
    if cleaned.lower() in SENTINEL_VALUES:
        return ""
    # Template variables leaking out of the prompt
    if "{{" in cleaned or "}}" in cleaned:
        return ""
    return cleaned


def words_to_digits(text: str) -> str:
    """Convert spoken single-digit words and digits to a digit string.

    Example: "five one eight 555 oh one two three" -> "5185550123"
    """
    tokens = re.findall(r"[a-zA-Z]+|\d", text.lower())
    digits = []
    for tok in tokens:
        if tok in WORD_TO_DIGIT:
            digits.append(WORD_TO_DIGIT[tok])
        elif tok.isdigit():
            digits.append(tok)
    return "".join(digits)


def validate_name(value: str | None) -> str:
    cleaned = _clean(value)
    # Reject phone numbers used as names
    if re.match(r"^[\d+\-() ]{7,}$", cleaned):
        return ""
    return cleaned


def validate_email(value: str | None) -> str:
    cleaned = _clean(value).lower()
    if not cleaned:
        return ""
    for pattern, replacement in _SPOKEN_EMAIL:
        cleaned = re.sub(pattern, replacement, cleaned)
    cleaned = cleaned.replace(" ", "")
    if not _EMAIL_RE.match(cleaned):
        return ""
    return cleaned


def validate_phone(value: str | None) -> str:
    cleaned = _clean(value)
    if not cleaned:
        return ""
    prefix = "+" if cleaned.startswith("+") else ""
    digits = words_to_digits(cleaned)
    if not 7 <= len(digits) <= 15:
        return ""
    return prefix + digits


def validate_service_name(value: str | None) -> str:
    return re.sub(r"\s+", " ", _clean(value))
