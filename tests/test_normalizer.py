"""Tests for mapping classifier output onto the fixed enums."""

import json

import pytest

from booking_core.classification.normalizer import (
    normalize_service_type,
    normalize_urgency,
    parse_llm_classification,
)
from booking_core.exceptions import ClassificationError
from booking_core.schemas.classification_schema import ServiceType, UrgencyLevel


class TestNormalizeServiceType:
    def test_exact_value(self):
        assert normalize_service_type("plumbing") == (ServiceType.PLUMBING, 0)

    def test_case_and_spacing(self):
        service, distance = normalize_service_type("  Pest Control ")
        assert service == ServiceType.PEST_CONTROL
        assert distance == 0

    def test_misspelling_maps_to_nearest(self):
        service, distance = normalize_service_type("electrican")
        assert service == ServiceType.ELECTRICAL
        assert 0 < distance <= 25

    def test_extra_words_tolerated(self):
        service, _ = normalize_service_type("Plumbing Services")
        assert service == ServiceType.PLUMBING

    def test_alias(self):
        assert normalize_service_type("exterminator")[0] == ServiceType.PEST_CONTROL

    def test_unrecognized_is_general_maintenance(self):
        service, distance = normalize_service_type("qqqq")
        assert service == ServiceType.GENERAL_MAINTENANCE
        assert distance > 25

    def test_strict_limit(self):
        service, _ = normalize_service_type("electrican", max_distance=0)
        assert service == ServiceType.GENERAL_MAINTENANCE

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty(self, raw):
        assert normalize_service_type(raw) == (ServiceType.GENERAL_MAINTENANCE, 100)


class TestNormalizeUrgency:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Emergency ", UrgencyLevel.EMERGENCY),
            ("critical", UrgencyLevel.EMERGENCY),
            ("URGENT", UrgencyLevel.HIGH),
            ("routine", UrgencyLevel.LOW),
            ("whenever", UrgencyLevel.MEDIUM),
            (None, UrgencyLevel.MEDIUM),
        ],
    )
    def test_mapping(self, raw, expected):
        assert normalize_urgency(raw) == expected


class TestParseLlmClassification:
    def test_dict_payload(self):
        result = parse_llm_classification({
            "service_type": "hvac",
            "urgency": "high",
            "confidence": 0.9,
            "reasoning": "Furnace stopped",
            "estimated_duration_minutes": 120,
        })
        assert result.service_type == ServiceType.HVAC
        assert result.urgency == UrgencyLevel.HIGH
        assert result.reasoning == "Furnace stopped"

    def test_json_text_payload(self):
        payload = json.dumps({"service_type": "roofing", "urgency": "low", "confidence": 0.8})
        result = parse_llm_classification(payload)
        assert result.service_type == ServiceType.ROOFING
        assert result.estimated_duration_minutes == 240

    def test_normalization_noted_in_reasoning(self):
        result = parse_llm_classification(
            {"service_type": "Plumbing Services", "urgency": "medium", "confidence": 0.7}
        )
        assert "normalized from 'Plumbing Services'" in result.reasoning

    def test_invalid_json(self):
        with pytest.raises(ClassificationError) as exc_info:
            parse_llm_classification("{not json")
        assert exc_info.value.code == "JSON_PARSE_ERROR"

    def test_non_object(self):
        with pytest.raises(ClassificationError) as exc_info:
            parse_llm_classification("[1, 2]")
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_confidence_out_of_range(self):
        with pytest.raises(ClassificationError) as exc_info:
            parse_llm_classification({"service_type": "hvac", "confidence": 1.7})
        assert exc_info.value.code == "VALIDATION_ERROR"
