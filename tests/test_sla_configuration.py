"""Unit tests for SLA configuration resolution, validation and the YAML defaults"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from ticket_routing.core import ConfigurationException
from ticket_routing.routing.application import SLAConfigUpdateDTO
from ticket_routing.routing.domain import DEFAULT_SLA
from ticket_routing.routing.infrastructure import YAMLDefaultsProvider


def valid_payload(**changes):
    payload = {
        "priority_escalations": {
            "low": {"after": "24 hours", "to": "medium"},
            "medium": {"after": "12 hours", "to": "high"},
            "high": {"after": "", "to": ""},
        },
        "reassign_after": {"low": "48 hours", "medium": "24 hours", "high": "8 hours"},
    }
    payload.update(changes)
    return payload


class TestSLAConfigUpdateDTO:
    def test_valid_payload(self):
        dto = SLAConfigUpdateDTO.model_validate(valid_payload())

        overrides = dto.to_overrides()
        assert overrides["priority_escalations"]["high"] == {"after": None, "to": None}
        assert overrides["reassign_after"]["high"] == "8 hours"

    def test_blank_threshold_becomes_none(self):
        dto = SLAConfigUpdateDTO.model_validate(
            valid_payload(reassign_after={"low": "  ", "medium": None, "high": "8 hours"})
        )

        assert dto.reassign_after["low"] is None

    @pytest.mark.parametrize("escalations,fragment", [
        ({"low": {"after": "24 hours"}}, "low.to is required"),
        ({"low": {"to": "medium"}}, "low.after is required"),
        ({"low": {"after": "eventually", "to": "medium"}}, "not a valid duration"),
        ({"low": {"after": "9999999999 days", "to": "medium"}}, "low.after is not a valid duration"),
        ({"medium": {"after": "5000000 days", "to": "high"}}, "medium.after is not a valid duration"),
        ({"medium": {"after": "1 hour", "to": "low"}}, "must be one of high"),
        ({"high": {"after": "1 hour", "to": "high"}}, "cannot escalate any further"),
    ])
    def test_invalid_escalations(self, escalations, fragment):
        with pytest.raises(ValidationError, match=fragment):
            SLAConfigUpdateDTO.model_validate(valid_payload(priority_escalations=escalations))

    def test_invalid_reassign_threshold(self):
        with pytest.raises(ValidationError, match="reassign_after.medium"):
            SLAConfigUpdateDTO.model_validate(
                valid_payload(reassign_after={"medium": "forever"})
            )

    @pytest.mark.parametrize("threshold", ["9999999999 days", "5000000 days"])
    def test_out_of_range_reassign_threshold(self, threshold):
        with pytest.raises(ValidationError, match="reassign_after.low is not a valid duration"):
            SLAConfigUpdateDTO.model_validate(valid_payload(reassign_after={"low": threshold}))

    def test_unknown_priority_key(self):
        with pytest.raises(ValidationError):
            SLAConfigUpdateDTO.model_validate(valid_payload(reassign_after={"urgent": "1 hour"}))


class TestSLAConfigurationService:
    async def test_resolve_uses_defaults_when_nothing_stored(self, config_service):
        config = await config_service.resolve()

        assert config.reassign_threshold_for("low") == "72 hours"
        assert config.escalation_for("low").to == "medium"

    async def test_update_stores_every_priority(self, config_service, settings_store):
        dto = SLAConfigUpdateDTO.model_validate({
            "priority_escalations": {"low": {"after": "6 hours", "to": "high"}},
            "reassign_after": {"medium": "2 days"},
        })

        config = await config_service.update(dto)

        stored = settings_store.values["support.sla"]
        assert set(stored["priority_escalations"]) == {"low", "medium", "high"}
        assert stored["reassign_after"] == {"low": None, "medium": "2 days", "high": None}

        assert config.escalation_for("low").target_for("low") == "high"
        assert config.escalation_for("medium").target_for("medium") is None
        assert config.reassign_threshold_for("low") is None
        assert config.reassign_threshold_for("medium") == "2 days"

    async def test_non_mapping_overrides_are_ignored(self, config_service, settings_store):
        settings_store.values["support.sla"] = ["not", "a", "mapping"]

        config = await config_service.resolve()
        assert config.reassign_threshold_for("high") == "12 hours"


class TestYAMLDefaultsProvider:
    def test_shipped_file_matches_builtin_defaults(self):
        path = Path(__file__).resolve().parent.parent / "sla_defaults.yaml"

        assert YAMLDefaultsProvider(path).get_defaults() == DEFAULT_SLA

    def test_missing_file_uses_builtin_defaults(self, tmp_path):
        provider = YAMLDefaultsProvider(tmp_path / "missing.yaml")

        assert provider.get_defaults() == DEFAULT_SLA

    def test_reads_sla_section(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text(
            "sla:\n"
            "  priority_escalations:\n"
            "    low: {after: 2 hours, to: high}\n"
            "  reassign_after:\n"
            "    low: 3 hours\n"
        )

        defaults = YAMLDefaultsProvider(path).get_defaults()

        assert defaults["priority_escalations"]["low"] == {"after": "2 hours", "to": "high"}
        assert defaults["reassign_after"] == {"low": "3 hours"}

    def test_file_is_reread_on_every_call(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("reassign_after:\n  low: 3 hours\n")
        provider = YAMLDefaultsProvider(path)
        assert provider.get_defaults()["reassign_after"]["low"] == "3 hours"

        path.write_text("reassign_after:\n  low: 5 hours\n")

        assert provider.get_defaults()["reassign_after"]["low"] == "5 hours"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("sla: [unclosed\n")

        with pytest.raises(ConfigurationException):
            YAMLDefaultsProvider(path).get_defaults()

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "sla.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigurationException):
            YAMLDefaultsProvider(path).get_defaults()
