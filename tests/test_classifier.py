"""Tests for the status classifier."""

import pytest
from datetime import datetime

from tracksync.classifier import classify, classify_description, normalize_description
from tracksync.models import CanonicalStatus, TrackingEvent


def event(description: str) -> TrackingEvent:
    return TrackingEvent(description=description, occurred_at=datetime(2024, 5, 10, 10, 0))


class TestClassify:
    """Tests for classify()."""

    def test_no_events_is_not_found(self):
        assert classify([]) == CanonicalStatus.NOT_FOUND

    @pytest.mark.parametrize("description,expected", [
        ("Objeto entregue ao destinatário", CanonicalStatus.DELIVERED),
        ("Objeto em trânsito - por favor aguarde", CanonicalStatus.IN_TRANSIT),
        ("Objeto em transito", CanonicalStatus.IN_TRANSIT),
        ("OBJETO EM TRÂNSITO", CanonicalStatus.IN_TRANSIT),
        ("Objeto postado", CanonicalStatus.POSTED),
        ("Objeto saiu para entrega ao destinatário", CanonicalStatus.POSTED),
        ("", CanonicalStatus.POSTED),
    ])
    def test_descriptions(self, description, expected):
        assert classify([event(description)]) == expected

    def test_delivered_checked_before_in_transit(self):
        """Delivered wins when both markers appear."""
        assert classify_description("Entregue após trânsito") == CanonicalStatus.DELIVERED

    def test_uses_first_event_as_given(self):
        """Index 0 is treated as newest; no re-sorting by date."""
        events = [
            TrackingEvent(description="Objeto postado", occurred_at=datetime(2024, 5, 1)),
            TrackingEvent(description="Objeto entregue ao destinatário", occurred_at=datetime(2024, 5, 9)),
        ]

        assert classify(events) == CanonicalStatus.POSTED

    def test_idempotent(self):
        """Same events, same status, every time."""
        events = [event("Objeto em trânsito")]

        results = {classify(events) for _ in range(5)}

        assert results == {CanonicalStatus.IN_TRANSIT}


class TestNormalize:

    def test_strips_diacritics_and_case(self):
        assert normalize_description("Trânsito ÁÉÍÕÇ") == "transito aeioc"

    def test_none_safe(self):
        assert normalize_description(None) == ""
