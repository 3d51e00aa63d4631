"""Tests for the Source Merger."""

import pytest

from autodata.engine.merger import SourceMerger
from autodata.providers.base import ProviderResult
from autodata.record import RECONSTRUCTED, FieldValue, VehicleRecord

TRUST = {"dvla": 3, "mot_history": 3, "vehicle_specs": 2, "valuation": 2, "history_check": 2}


@pytest.fixture
def merger() -> SourceMerger:
    return SourceMerger(TRUST)


class TestPrecedence:
    """Trust tiers and ordering."""

    def test_fields_carry_supplying_provider(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.make": "FORD"}),
            ProviderResult("vehicle_specs", {"identification.model": "FOCUS"}),
        ])

        assert merged.get("identification.make") == FieldValue("FORD", "dvla")
        assert merged.get("identification.model") == FieldValue("FOCUS", "vehicle_specs")

    def test_higher_trust_wins_regardless_of_order(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.year": 2019}),
            ProviderResult("vehicle_specs", {"identification.year": 2018}),
        ])
        assert merged.get("identification.year") == FieldValue(2019, "dvla")

    def test_equal_trust_later_result_wins(self, merger):
        merged = merger.merge(None, [
            ProviderResult("vehicle_specs", {"identification.body_type": "Hatch"}),
            ProviderResult("valuation", {"identification.body_type": "Hatchback"}),
        ])
        assert merged.value("identification.body_type") == "Hatchback"

    def test_fresh_existing_kept_against_lower_trust(self, merger):
        existing = VehicleRecord({"identification.make": FieldValue("FORD", "dvla")})

        merged = merger.merge(existing, [
            ProviderResult("vehicle_specs", {"identification.make": "FORD MOTOR CO"}),
        ])

        assert merged.get("identification.make") == FieldValue("FORD", "dvla")

    def test_cold_existing_yields_to_any_populated_value(self, merger):
        existing = VehicleRecord({"identification.make": FieldValue("FORD", "dvla")})

        merged = merger.merge(
            existing,
            [ProviderResult("vehicle_specs", {"identification.make": "FORD MOTOR CO"})],
            existing_fresh=False,
        )

        assert merged.get("identification.make").source == "vehicle_specs"

    def test_unknown_provider_ranks_lowest(self, merger):
        existing = VehicleRecord({"identification.make": FieldValue("FORD", "vehicle_specs")})
        merged = merger.merge(existing, [ProviderResult("scraper", {"identification.make": "X"})])
        assert merged.value("identification.make") == "FORD"


class TestNonDestructive:
    """Absent and sentinel values never erase data."""

    def test_existing_fields_absent_from_results_survive(self, merger):
        existing = VehicleRecord({
            "identification.make": FieldValue("FORD", "dvla"),
            "history.previous_owners": FieldValue(2, "history_check"),
        })

        merged = merger.merge(existing, [
            ProviderResult("vehicle_specs", {"running_costs.combined_mpg": 55.4}),
        ])

        assert merged.value("identification.make") == "FORD"
        assert merged.value("history.previous_owners") == 2
        assert merged.value("running_costs.combined_mpg") == 55.4

    @pytest.mark.parametrize("sentinel", [None, "", "null", "undefined", "N/A", {}, []])
    def test_sentinel_never_overwrites(self, merger, sentinel):
        existing = VehicleRecord({"identification.colour": FieldValue("Silver", "vehicle_specs")})

        merged = merger.merge(existing, [
            ProviderResult("dvla", {"identification.colour": sentinel}),
        ])

        assert merged.get("identification.colour") == FieldValue("Silver", "vehicle_specs")

    def test_sentinel_never_stored(self, merger):
        merged = merger.merge(None, [ProviderResult("dvla", {"identification.colour": "null"})])
        assert "identification.colour" not in merged

    def test_zero_and_false_are_real_values(self, merger):
        merged = merger.merge(None, [
            ProviderResult("history_check", {
                "history.previous_owners": 0,
                "history.is_stolen": False,
            }),
        ])
        assert merged.value("history.previous_owners") == 0
        assert merged.value("history.is_stolen") is False

    def test_inputs_not_mutated(self, merger):
        existing = VehicleRecord({"identification.colour": FieldValue("SILVER", "dvla")})
        result = ProviderResult("vehicle_specs", {"identification.model": "FOCUS"})

        merger.merge(existing, [result])

        assert existing.fields == {"identification.colour": FieldValue("SILVER", "dvla")}
        assert result.fields == {"identification.model": "FOCUS"}


class TestCanonicalisation:
    def test_text_fields_canonicalised(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {
                "identification.colour": "SILVER",
                "identification.fuel_type": "diesel",
            }),
            ProviderResult("vehicle_specs", {"identification.transmission": "AUTO"}),
        ])

        assert merged.value("identification.colour") == "Silver"
        assert merged.value("identification.fuel_type") == "Diesel"
        assert merged.value("identification.transmission") == "Automatic"

    def test_existing_values_canonicalised(self, merger):
        existing = VehicleRecord({"identification.colour": FieldValue("SILVER", "dvla")})
        assert merger.merge(existing, []).value("identification.colour") == "Silver"


class TestFuelTypeReconciliation:
    """Bare Petrol/Diesel plus a trusted hybrid indication."""

    def test_bare_plus_equal_trust_hybrid(self, merger):
        merged = merger.merge(None, [
            ProviderResult("vehicle_specs", {"identification.fuel_type": "Diesel"}),
            ProviderResult("valuation", {"identification.fuel_type": "HYBRID ELECTRIC"}),
        ])
        assert merged.get("identification.fuel_type") == FieldValue("Diesel Hybrid", RECONSTRUCTED)

    def test_bare_from_lower_trust_plus_dvla_hybrid(self, merger):
        existing = VehicleRecord({"identification.fuel_type": FieldValue("Petrol", "vehicle_specs")})

        merged = merger.merge(existing, [
            ProviderResult("dvla", {"identification.fuel_type": "HYBRID ELECTRIC"}),
        ])

        assert merged.get("identification.fuel_type") == FieldValue("Petrol Hybrid", RECONSTRUCTED)

    def test_plug_in_indication(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.fuel_type": "PETROL"}),
            ProviderResult("mot_history", {"identification.fuel_type": "Plug-in Hybrid"}),
        ])
        assert merged.value("identification.fuel_type") == "Petrol Plug-in Hybrid"

    def test_lower_trust_hybrid_does_not_override(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.fuel_type": "DIESEL"}),
            ProviderResult("vehicle_specs", {"identification.fuel_type": "Hybrid"}),
        ])
        assert merged.get("identification.fuel_type") == FieldValue("Diesel", "dvla")

    def test_other_base_hybrid_ignored(self, merger):
        merged = merger.merge(None, [
            ProviderResult("vehicle_specs", {"identification.fuel_type": "Diesel"}),
            ProviderResult("valuation", {"identification.fuel_type": "Petrol/Electric"}),
        ])
        # Petrol Hybrid wins on equal tier as a plain value, not a compound
        assert merged.get("identification.fuel_type") == FieldValue("Petrol Hybrid", "valuation")

    def test_reconstructed_compound_is_stable(self, merger):
        existing = VehicleRecord({
            "identification.fuel_type": FieldValue("Diesel Hybrid", RECONSTRUCTED),
        })

        merged = merger.merge(existing, [
            ProviderResult("vehicle_specs", {"identification.fuel_type": "Diesel"}),
        ])

        assert merged.get("identification.fuel_type") == FieldValue("Diesel Hybrid", RECONSTRUCTED)

    def test_structured_fuel_type_left_alone(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.fuel_type": ["PETROL", "ELECTRICITY"]}),
            ProviderResult("vehicle_specs", {"identification.fuel_type": "Hybrid"}),
        ])
        assert merged.get("identification.fuel_type") == FieldValue(
            ["PETROL", "ELECTRICITY"], "dvla"
        )

    def test_structured_candidate_skipped_for_baseless_hybrid(self, merger):
        merged = merger.merge(None, [
            ProviderResult("dvla", {"identification.fuel_type": "HYBRID ELECTRIC"}),
            ProviderResult("valuation", {"identification.fuel_type": {"primary": "Diesel"}}),
        ])
        assert merged.get("identification.fuel_type") == FieldValue("Hybrid", "dvla")
