"""Tests for provider plugin discovery."""

from __future__ import annotations

from infraref.plugins import PROVIDER_GROUP, discover_providers


class _EntryPoint:
    def __init__(self, name, target=None, error=None):
        self.name = name
        self._target = target
        self._error = error

    def load(self):
        if self._error is not None:
            raise self._error
        return self._target


class TestPluginDiscovery:
    def test_group_name(self):
        assert PROVIDER_GROUP == "infraref.providers"

    def test_discover_providers(self):
        assert isinstance(discover_providers(), dict)

    def test_scans_requested_group(self, monkeypatch):
        seen = []

        def fake_entry_points(group):
            seen.append(group)
            return [_EntryPoint("acme", target=object)]

        monkeypatch.setattr("infraref.plugins.entry_points", fake_entry_points)
        assert discover_providers() == {"acme": object}
        assert seen == [PROVIDER_GROUP]

    def test_broken_plugin_is_skipped(self, monkeypatch, caplog):
        eps = [_EntryPoint("broken", error=ImportError("missing dependency")), _EntryPoint("ok", target=int)]
        monkeypatch.setattr("infraref.plugins.entry_points", lambda group: eps)
        assert discover_providers() == {"ok": int}
        assert "Failed to load plugin broken" in caplog.text
