from src.resolution.domain.resolution_models import Resolution, StrategyName
from src.resolution.services.weight_normalizer import ORIGINAL_WEIGHTS_KEY, normalize_weights


# --- Tests ---

def test_normalizes_to_unit_sum():
    result = normalize_weights({"a": 2.0, "b": 1.0, "c": 1.0})

    assert result.weights == {"a": 0.5, "b": 0.25, "c": 0.25}
    assert result.original == {"a": 2.0, "b": 1.0, "c": 1.0}


def test_floor_lifts_small_weights_proportionally():
    result = normalize_weights({"a": 0.95, "b": 0.05})

    assert result.weights == {"a": 0.85, "b": 0.15}


def test_floor_applies_repeatedly_until_stable():
    result = normalize_weights({"a": 10.0, "b": 0.1, "c": 0.1, "d": 1.0})

    assert abs(sum(result.weights.values()) - 1.0) < 1e-9
    assert min(result.weights.values()) >= 0.15
    assert result.weights["a"] == max(result.weights.values())


def test_rounding_residual_goes_to_largest_weight():
    result = normalize_weights({"a": 1.0, "b": 1.0, "c": 1.0})

    assert abs(sum(result.weights.values()) - 1.0) < 1e-9
    assert sorted(result.weights.values()) == [0.33, 0.33, 0.34]


def test_degenerate_inputs():
    assert normalize_weights({}).weights == {}
    assert normalize_weights({"only": 0.2}).weights == {"only": 1.0}
    assert normalize_weights({"a": 0.0, "b": -1.0}).weights == {"a": 0.5, "b": 0.5}


def test_floor_never_exceeds_equal_share():
    raw = {name: 1.0 for name in "abcdefgh"}
    raw["a"] = 100.0

    result = normalize_weights(raw)

    # 8 weights cannot each hold 0.15; the floor drops to 1/8
    assert abs(sum(result.weights.values()) - 1.0) < 1e-9
    assert all(w >= 0.12 for w in result.weights.values())


def test_payload_keeps_original_weights_under_reserved_key():
    resolution = Resolution(
        conflict_id="c1",
        strategy=StrategyName.COMPROMISE,
        weights={"a": 0.5, "b": 0.5},
        recommended_action="negotiate_compromises",
        reasoning="",
        original_weights={"a": 1.0, "b": 1.0},
    )
    payload = resolution.to_payload()

    assert payload[ORIGINAL_WEIGHTS_KEY] == {"a": 1.0, "b": 1.0}
    assert payload["strategy"] == "compromise"
