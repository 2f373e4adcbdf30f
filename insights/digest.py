"""Weekly digest text built from learned productivity patterns."""

from schemas.context import ProductivityPattern

# Patterns below this confidence are too speculative to report.
DIGEST_CONFIDENCE_THRESHOLD = 0.4

NO_DATA_MESSAGE = "Not enough data yet to generate a weekly digest."
NO_CONFIDENT_PATTERNS_MESSAGE = "Not enough confident patterns to generate a digest."
DIGEST_HEADER = "Based on your patterns this week:"


def build_weekly_digest(
    patterns: list[ProductivityPattern],
    min_confidence: float = DIGEST_CONFIDENCE_THRESHOLD,
) -> str:
    """Render the confident patterns as a bulleted digest, in input order."""
    if not patterns:
        return NO_DATA_MESSAGE

    lines = [f"• {p.description}" for p in patterns if p.confidence >= min_confidence]
    if not lines:
        return NO_CONFIDENT_PATTERNS_MESSAGE

    return "\n".join([DIGEST_HEADER, *lines])


buildWeeklyDigest = build_weekly_digest
