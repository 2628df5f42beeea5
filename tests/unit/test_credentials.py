"""Tests for credential persistence."""

from __future__ import annotations

import json

import pytest

from wa_events.credentials import CREDENTIALS_FILENAME, CredentialStore


class TestCredentialStore:
    def test_load_missing_returns_none(self, tmp_path) -> None:
        assert CredentialStore(tmp_path / "auth").load() is None

    def test_save_then_load(self, tmp_path) -> None:
        store = CredentialStore(tmp_path / "auth")
        creds = {"me": {"id": "56911112222:1@s.whatsapp.net"}, "registered": True}

        store.save(creds)

        assert store.path == tmp_path / "auth" / CREDENTIALS_FILENAME
        assert store.load() == creds

    def test_save_replaces_previous(self, tmp_path) -> None:
        store = CredentialStore(tmp_path)
        store.save({"version": 1})
        store.save({"version": 2})

        assert store.load() == {"version": 2}
        assert [p.name for p in tmp_path.iterdir()] == [CREDENTIALS_FILENAME]

    def test_corrupt_file_treated_as_missing(self, tmp_path) -> None:
        (tmp_path / CREDENTIALS_FILENAME).write_text("{not json", encoding="utf-8")

        assert CredentialStore(tmp_path).load() is None

    def test_non_object_treated_as_missing(self, tmp_path) -> None:
        (tmp_path / CREDENTIALS_FILENAME).write_text(json.dumps([1, 2]), encoding="utf-8")

        assert CredentialStore(tmp_path).load() is None

    def test_unserialisable_leaves_previous_file(self, tmp_path) -> None:
        store = CredentialStore(tmp_path)
        store.save({"version": 1})

        with pytest.raises(TypeError):
            store.save({"bad": object()})

        assert store.load() == {"version": 1}
