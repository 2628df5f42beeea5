"""Tests for the classification and extraction prompt builders."""

from __future__ import annotations

from wa_events.prompts import (
    build_classification_messages,
    build_extraction_messages,
    build_extraction_system_prompt,
)


class TestClassificationMessages:
    def test_system_then_user(self) -> None:
        messages = build_classification_messages("Taller jueves 18/12 10:00")

        assert [m.role for m in messages] == ["system", "user"]

    def test_user_message_carries_text_and_answer_format(self) -> None:
        user = build_classification_messages("Taller jueves 18/12 10:00")[1].content

        assert "Taller jueves 18/12 10:00" in user
        assert "`0` or `1`" in user

    def test_system_prompt_requires_date_and_time(self) -> None:
        system = build_classification_messages("x")[0].content

        assert "parsable event (1)" in system
        assert "Explicit date" in system
        assert "Explicit time" in system


class TestExtractionMessages:
    def test_system_prompt_context(self) -> None:
        prompt = build_extraction_system_prompt("2025-12-10", "America/Santiago", "Spanish")

        assert "Current date: 2025-12-10" in prompt
        assert "Default time zone: America/Santiago" in prompt
        assert "must be in\n   Spanish" in prompt

    def test_schema_names_every_field(self) -> None:
        prompt = build_extraction_system_prompt("2025-12-10", "UTC", "English")

        for field in ("slug", "title", "description", "organizer", "startAt", "endAt"):
            assert f'"{field}"' in prompt
        assert '"fullAddress"' in prompt
        assert '"IN-PERSON" | "ONLINE"' in prompt

    def test_messages(self) -> None:
        messages = build_extraction_messages(
            "Charla 20/12 18:00 https://zoom.us/j/1", "2025-12-10"
        )

        assert [m.role for m in messages] == ["system", "user"]
        assert "https://zoom.us/j/1" in messages[1].content
        assert "America/Santiago" in messages[0].content

    def test_language_parameter(self) -> None:
        system = build_extraction_messages("x", "2025-12-10", language="English")[0].content

        assert "in English" in system
        assert "Spanish" not in system
