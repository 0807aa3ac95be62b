"""Tests for the profile registry and token estimator."""

import pytest
from pydantic import ValidationError

from citechunk.chunking.profiles import (
    PROFILES,
    ProfileError,
    estimate_tokens,
    resolve_profile,
)
from citechunk.core.models import Profile


class TestProfileRegistry:
    def test_builtin_profiles(self):
        expected = {
            "default": (1000, 200, 1500),
            "code-heavy": (1200, 300, 2000),
            "faq": (500, 50, 800),
            "large-context": (3000, 500, 5000),
            "granular": (400, 100, 600),
        }
        assert set(PROFILES) == set(expected)
        for name, (target, minimum, maximum) in expected.items():
            profile = PROFILES[name]
            assert profile.name == name
            assert (profile.target_tokens, profile.min_tokens, profile.max_tokens) == (
                target,
                minimum,
                maximum,
            )
            assert profile.split_on_headings
            assert profile.preserve_code_blocks

    def test_only_code_heavy_weights_code(self):
        assert PROFILES["code-heavy"].code_block_weight == 0.5
        assert all(
            p.code_block_weight is None for n, p in PROFILES.items() if n != "code-heavy"
        )

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            PROFILES["mine"] = PROFILES["default"]  # type: ignore[index]

        with pytest.raises(ValidationError):
            PROFILES["default"].max_tokens = 10  # type: ignore[misc]

    def test_profile_validates_thresholds(self):
        with pytest.raises(ValidationError):
            Profile(name="bad", target_tokens=100, min_tokens=200, max_tokens=300)
        with pytest.raises(ValidationError):
            Profile(name="bad", target_tokens=100, min_tokens=50, max_tokens=300, code_block_weight=2)

    def test_settings_use_camel_case(self):
        settings = PROFILES["code-heavy"].settings()

        assert settings["targetTokens"] == 1200
        assert settings["codeBlockWeight"] == 0.5
        assert settings["splitOnHeadings"] is True
        assert settings["holdLists"] is False
        assert "codeBlockWeight" not in PROFILES["default"].settings()


class TestEstimateTokens:
    def test_four_chars_per_token(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("x" * 400) == 100

    def test_code_weight_applies_to_code_blocks_only(self):
        code = "```\n" + "a" * 92 + "\n```"  # 100 chars
        prose = "a" * 100

        assert estimate_tokens(code, PROFILES["default"]) == 25
        assert estimate_tokens(code, PROFILES["code-heavy"]) == 13
        assert estimate_tokens(prose, PROFILES["code-heavy"]) == 25


class TestResolveProfile:
    def test_by_name(self):
        profile, warnings = resolve_profile("granular")

        assert profile is PROFILES["granular"]
        assert warnings == []

    def test_none_is_default(self):
        profile, warnings = resolve_profile(None)

        assert profile.name == "default"
        assert warnings == []

    def test_unknown_name_falls_back_with_warning(self):
        profile, warnings = resolve_profile("not-a-real-profile")

        assert profile is PROFILES["default"]
        assert len(warnings) == 1
        assert "not-a-real-profile" in warnings[0]

    def test_custom_mapping_over_default(self):
        profile, warnings = resolve_profile(
            {"targetTokens": 300, "minTokens": 100, "maxTokens": 500}
        )

        assert warnings == []
        assert profile.name == "custom"
        assert (profile.target_tokens, profile.min_tokens, profile.max_tokens) == (300, 100, 500)
        assert profile.code_block_weight is None
        assert profile.split_on_headings is True

    def test_custom_mapping_over_named_builtin(self):
        profile, _ = resolve_profile({"name": "code-heavy", "maxTokens": 2500})

        assert profile.name == "code-heavy"
        assert profile.max_tokens == 2500
        assert profile.code_block_weight == 0.5

    def test_overrides_layered_on_name(self):
        profile, warnings = resolve_profile("granular", {"split_oversized_blocks": True})

        assert warnings == []
        assert profile.name == "granular"
        assert profile.split_oversized_blocks is True
        assert PROFILES["granular"].split_oversized_blocks is False

    def test_profile_instance_passes_through(self):
        custom = Profile(name="tiny", target_tokens=10, min_tokens=5, max_tokens=20)
        profile, warnings = resolve_profile(custom)

        assert profile is custom
        assert warnings == []

    def test_invalid_override_raises_profile_error(self):
        with pytest.raises(ProfileError):
            resolve_profile({"minTokens": 2000})

    def test_misspelled_override_key_is_rejected(self):
        with pytest.raises(ProfileError, match="maxtokens"):
            resolve_profile({"maxtokens": 900})

        with pytest.raises(ProfileError):
            resolve_profile("granular", {"targetTokenz": 300})
