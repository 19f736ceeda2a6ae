import re
import unicodedata


def normalize_slug(value: str) -> str:
    """Lowercase ASCII slug with single hyphens between words."""
    if not value:
        return ""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = value.lower()
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"\s+", "-", value.strip())
    value = re.sub(r"-{2,}", "-", value)

    return value.strip("-")


def slug_from_email(email: str) -> str:
    prefix = (email or "").split("@")[0]
    return re.sub(r"[^a-z0-9]", "", normalize_slug(prefix))
