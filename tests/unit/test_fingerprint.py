"""Unit tests for cache key fingerprints."""

import json

from doughcalc.cache.fingerprint import FINGERPRINT_VERSION, fingerprint, normalize_plan


class TestFingerprint:
    def test_format(self, plan):
        key = fingerprint(plan)

        assert key.startswith(f"analysis:{FINGERPRINT_VERSION}:")
        assert len(key.rsplit(":", 1)[1]) == 64

    def test_stable_for_equal_plans(self, plan, plan_factory):
        assert fingerprint(plan) == fingerprint(plan_factory())

    def test_near_duplicates_share_a_key(self, plan, plan_factory):
        assert fingerprint(plan_factory(doughBallCount=3)) == fingerprint(plan)
        assert fingerprint(plan_factory(weightPerBall=283)) == fingerprint(plan)
        assert fingerprint(plan_factory(recipe={"hydration": 65.04})) == fingerprint(plan)

    def test_flour_names_ignore_case(self, blend_plan, plan_factory):
        lowered = plan_factory(
            recipe={"flourMix": {"primaryType": "tipo 00", "secondaryType": "BREAD FLOUR", "primaryPercentage": 70}}
        )

        assert fingerprint(lowered) == fingerprint(blend_plan)

    def test_inputs_that_change_the_analysis_change_the_key(self, plan, plan_factory):
        variants = [
            plan_factory(doughBallCount=8),
            plan_factory(recipe={"hydration": 70}),
            plan_factory(recipe={"oil": 2}),
            plan_factory(recipe={"fermentationClass": "overnight"}),
            plan_factory(environment={"roomTemperature": {"value": 72, "unit": "F"}}),
            plan_factory(environment={"roomTemperature": {"value": 24, "unit": "C"}}),
            plan_factory(environment={"ovenType": "outdoor"}),
            plan_factory(analysisPreferences={"includeAutolyse": True}),
        ]

        keys = {fingerprint(variant) for variant in variants}

        assert len(keys) == len(variants)
        assert fingerprint(plan) not in keys


class TestNormalizePlan:
    def test_is_json_serializable(self, blend_plan):
        normalized = normalize_plan(blend_plan)

        assert json.loads(json.dumps(normalized)) == normalized
        assert normalized["flourMix"] == ["tipo 00", "bread flour", 70]

    def test_cold_literal_only_with_cold_phase(self, plan, overnight_plan):
        assert normalize_plan(plan)["cold"] is None
        assert normalize_plan(overnight_plan)["cold"] == "38°F"
        assert normalize_plan(overnight_plan)["room"] == "72°F"
