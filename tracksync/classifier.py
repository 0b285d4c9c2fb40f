"""
Maps carrier event descriptions to a CanonicalStatus.

Only the newest event is inspected, as given by the carrier (index 0).
The Correios description vocabulary is not documented, so the mapping is a
coarse substring match:

    "entregue"  -> DELIVERED
    "transito"  -> IN_TRANSIT   (after stripping diacritics)
    anything    -> POSTED
    no events   -> NOT_FOUND
"""

import unicodedata
from typing import Sequence

from tracksync.models import CanonicalStatus, TrackingEvent


DELIVERED_MARKER = "entregue"
IN_TRANSIT_MARKER = "transito"


def normalize_description(text: str) -> str:
    """Lower-case and strip diacritics ("Trânsito" -> "transito")."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def classify_description(description: str) -> CanonicalStatus:
    normalized = normalize_description(description)
    if DELIVERED_MARKER in normalized:
        return CanonicalStatus.DELIVERED
    if IN_TRANSIT_MARKER in normalized:
        return CanonicalStatus.IN_TRANSIT
    return CanonicalStatus.POSTED


def classify(events: Sequence[TrackingEvent]) -> CanonicalStatus:
    """Classify a newest-first event list."""
    if not events:
        return CanonicalStatus.NOT_FOUND
    return classify_description(events[0].description)
