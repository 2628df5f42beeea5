"""Tests for slug derivation."""

from __future__ import annotations

import pytest

from tests.helpers import make_event
from wa_events.storage.slug import derive_slug, slugify


class TestSlugify:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("HubConnect Innovación", "hubconnect-innovacion"),
            ("  Taller:  ¡IA & Datos!  ", "taller-ia-datos"),
            ("Año Nuevo 2026", "ano-nuevo-2026"),
            ("already-kebab-case", "already-kebab-case"),
            ("🎉🎉", ""),
        ],
    )
    def test_slugify(self, text: str, expected: str) -> None:
        assert slugify(text) == expected


class TestDeriveSlug:
    def test_title_plus_start_date(self) -> None:
        assert derive_slug(make_event()) == "hubconnect-innovacion-2025-12-18"

    def test_date_taken_in_event_offset(self) -> None:
        event = make_event(startAt="2025-12-18T23:30:00-03:00", endAt=None)

        assert derive_slug(event).endswith("-2025-12-18")

    def test_falls_back_to_model_slug(self) -> None:
        event = make_event(title="🎉🎉", slug="Fiesta Fin de Año")

        assert derive_slug(event) == "fiesta-fin-de-ano-2025-12-18"

    def test_last_resort(self) -> None:
        event = make_event(title="🎉", slug="✨")

        assert derive_slug(event) == "event-2025-12-18"
