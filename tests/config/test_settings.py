"""
Tests for workflow settings: schema validation and YAML loading.
"""

from __future__ import annotations

import dataclasses

import pytest
import yaml

from procurement_config import ProcurementSettings, compute_checksum, load_settings
from procurement_config.loader import DEFAULTS_PATH, load_yaml_file, parse_settings


class TestProcurementSettingsSchema:

    def test_defaults(self):
        settings = ProcurementSettings.with_defaults()

        assert settings.default_currency == "ZAR"
        assert settings.history_page_size == 20
        assert settings.invoice_max_bytes == 10 * 1024 * 1024
        assert settings.invoice_allowed_types == ("application/pdf",)
        assert settings.signed_url_ttl_seconds == 600
        assert settings.invitation_ttl_days == 7

    def test_frozen(self):
        settings = ProcurementSettings.with_defaults()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.history_page_size = 50  # type: ignore[misc]

    def test_currency_normalized(self):
        assert ProcurementSettings(default_currency="usd").default_currency == "USD"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_currency": "RAND"},
            {"history_page_size": 0},
            {"invoice_max_bytes": -1},
            {"invitation_ttl_days": True},
            {"signed_url_ttl_seconds": "600"},
            {"invoice_allowed_types": ()},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            ProcurementSettings(**overrides)

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(KeyError, match="max_quotes"):
            ProcurementSettings.from_dict({"max_quotes": 3})

    def test_from_dict_converts_type_list(self):
        settings = ProcurementSettings.from_dict(
            {"invoice_allowed_types": ["application/pdf", "image/png"]}
        )
        assert settings.invoice_allowed_types == ("application/pdf", "image/png")


class TestLoader:

    def test_packaged_defaults_match_schema(self):
        assert parse_settings(load_yaml_file(DEFAULTS_PATH)) == ProcurementSettings.with_defaults()

    def test_bare_mapping_accepted(self):
        assert parse_settings({"history_page_size": 5}).history_page_size == 5

    def test_non_mapping_file_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="top level must be a mapping"):
            load_yaml_file(path)

    def test_malformed_yaml_propagates(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("procurement: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)


class TestLoadSettings:

    def test_without_path_returns_defaults(self):
        assert load_settings() == ProcurementSettings.with_defaults()

    def test_file_overrides_layer_on_defaults(self, tmp_path):
        path = tmp_path / "procurement.yaml"
        path.write_text(yaml.safe_dump({
            "procurement": {"default_currency": "usd", "invitation_ttl_days": 14},
        }))

        settings = load_settings(path)

        assert settings.default_currency == "USD"
        assert settings.invitation_ttl_days == 14
        assert settings.history_page_size == 20

    def test_unknown_key_in_file(self, tmp_path):
        path = tmp_path / "procurement.yaml"
        path.write_text("procurement:\n  approval_levels: 3\n")

        with pytest.raises(KeyError):
            load_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_load_is_logged_with_checksum(self, captured_logs):
        settings = load_settings()

        [record] = [r for r in captured_logs() if r["message"] == "procurement_settings_loaded"]
        assert record["source"] == "defaults"
        assert record["checksum"] == compute_checksum(settings)


class TestChecksum:

    def test_stable_and_sensitive(self):
        a = ProcurementSettings.with_defaults()
        b = ProcurementSettings.with_defaults()
        c = ProcurementSettings(history_page_size=50)

        assert compute_checksum(a) == compute_checksum(b)
        assert compute_checksum(a) != compute_checksum(c)
