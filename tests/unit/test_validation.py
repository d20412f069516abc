"""Unit tests for configuration validation."""

from role_control.kernel.permissions import ConfigValidator, DEFAULT_ROLE_PERMISSIONS
from role_control.kernel.permissions.validation import (
    capability_from_key,
    normalize_role_config,
    normalize_user_overrides,
)


class TestConfigValidator:
    """Tests for ConfigValidator."""

    def test_defaults_are_valid(self):
        """Built-in defaults pass validation."""
        assert ConfigValidator().validate_role_config(DEFAULT_ROLE_PERMISSIONS) == []

    def test_not_a_mapping(self):
        assert ConfigValidator().validate_role_config(["editor"]) == ["Configuration must be a mapping"]

    def test_role_entry_not_a_mapping(self):
        errors = ConfigValidator().validate_role_config({"editor": True})
        assert errors == ["Role 'editor' configuration must be a mapping"]

    def test_collects_every_error(self):
        """All violations are reported, not only the first."""
        errors = ConfigValidator().validate_role_config({
            "editor": {"edit": "yes"},
            "author": {"edit": True, "elementor": False, "description": 5},
        })

        assert "Role 'editor' key 'edit' must be boolean" in errors
        assert "Role 'editor' is missing required key: elementor" in errors
        assert "Role 'editor' is missing required key: description" in errors
        assert "Role 'author' key 'description' must be string" in errors
        assert len(errors) == 4

    def test_legacy_keys_accepted(self):
        errors = ConfigValidator().validate_role_config({
            "editor": {"show_edit": True, "show_elementor": False, "description": "Legacy"},
        })
        assert errors == []

    def test_legacy_non_boolean_rejected(self):
        """show_edit = "yes" is a string, not a boolean."""
        errors = ConfigValidator().validate_role_config({
            "editor": {"show_edit": "yes", "show_elementor": False, "description": "Legacy"},
        })
        assert errors == ["Role 'editor' key 'show_edit' must be boolean"]

    def test_extra_capabilities_must_be_boolean(self):
        errors = ConfigValidator().validate_role_config({
            "editor": {"edit": True, "elementor": False, "publish": 1, "description": "x"},
        })
        assert errors == ["Role 'editor' key 'publish' must be boolean"]

    def test_empty_role_name(self):
        errors = ConfigValidator().validate_role_config({"": {"edit": True}})
        assert len(errors) == 1
        assert "must be a non-empty string" in errors[0]

    def test_custom_capability_set(self):
        validator = ConfigValidator(["edit"])
        assert validator.validate_role_config({"editor": {"edit": True, "description": "x"}}) == []

    def test_user_overrides(self):
        validator = ConfigValidator()
        assert validator.validate_user_overrides({"7": {"edit": False}}) == []
        assert validator.validate_user_overrides({"7": {"edit": "no"}}) == ["User '7' key 'edit' must be boolean"]
        assert validator.validate_user_overrides({"7": []}) == ["User '7' override must be a mapping"]
        assert validator.validate_user_overrides("7") == ["User overrides must be a mapping"]

    def test_import_payload_requires_a_map(self):
        validator = ConfigValidator()
        assert validator.validate_import_payload({}) == [
            "Import payload must contain role_permissions and/or user_overrides"
        ]
        assert validator.validate_import_payload([]) == ["Import payload must be a mapping"]

    def test_import_payload_checks_both_maps(self):
        errors = ConfigValidator().validate_import_payload({
            "role_permissions": {"editor": {"edit": True, "elementor": False, "description": "x"}},
            "user_overrides": {"7": {"elementor": "true"}},
        })
        assert errors == ["User '7' key 'elementor' must be boolean"]


class TestNormalization:
    """Legacy key normalisation."""

    def test_capability_from_key(self):
        assert capability_from_key("show_edit") == "edit"
        assert capability_from_key("edit") == "edit"
        assert capability_from_key("show_") == "show_"

    def test_plain_key_beats_legacy_alias(self):
        normalized = normalize_role_config({
            "editor": {"show_edit": False, "edit": True, "elementor": False, "description": "x"},
        })
        assert normalized == {"editor": {"edit": True, "elementor": False, "description": "x"}}

    def test_override_legacy_keys_rewritten(self):
        normalized = normalize_user_overrides({
            7: {"show_edit": True},
            "9": {"edit": False, "show_edit": True},
        })
        assert normalized == {"7": {"edit": True}, "9": {"edit": False}}
