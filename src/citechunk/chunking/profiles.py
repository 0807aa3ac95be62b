"""
Chunking profiles and the token estimator used to budget chunks.
"""

import math
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..core.models import Profile
from .boundaries import is_code_block

DEFAULT_PROFILE = "default"

PROFILES: Mapping[str, Profile] = MappingProxyType(
    {
        # Heading-based chunks around 800-1200 tokens
        "default": Profile(
            name="default",
            target_tokens=1000,
            min_tokens=200,
            max_tokens=1500,
        ),
        # Code counted at half weight so fences stay together
        "code-heavy": Profile(
            name="code-heavy",
            target_tokens=1200,
            min_tokens=300,
            max_tokens=2000,
            code_block_weight=0.5,
        ),
        # One Q/A per chunk
        "faq": Profile(
            name="faq",
            target_tokens=500,
            min_tokens=50,
            max_tokens=800,
            preserve_lists=False,
        ),
        "large-context": Profile(
            name="large-context",
            target_tokens=3000,
            min_tokens=500,
            max_tokens=5000,
        ),
        # Smaller chunks for precise retrieval
        "granular": Profile(
            name="granular",
            target_tokens=400,
            min_tokens=100,
            max_tokens=600,
            preserve_lists=False,
        ),
    }
)

ProfileSelector = Union[str, Profile, Mapping[str, Any], None]


class ProfileError(ValueError):
    """Raised when a custom profile override is not a valid profile."""


def estimate_tokens(text: str, profile: Optional[Profile] = None) -> int:
    """Approximate token cost at four characters per token.

    Code blocks are scaled by the profile's ``code_block_weight`` when set.
    """
    if not text:
        return 0

    if profile is not None and profile.code_block_weight and is_code_block(text):
        return math.ceil(len(text) / 4 * profile.code_block_weight)

    return math.ceil(len(text) / 4)


def resolve_profile(
    selector: ProfileSelector = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Tuple[Profile, List[str]]:
    """
    Resolve a profile selector to a concrete profile.

    Args:
        selector: A built-in profile name, a Profile, or a mapping overriding
            any subset of profile fields (camelCase or snake_case keys). A
            mapping is layered over the built-in named by its ``name`` key,
            or over ``default`` and named ``custom``.
        overrides: Extra field overrides applied on top of the selection

    Returns:
        (profile, warnings) - unknown names fall back to ``default`` with a
        warning instead of failing the run.
    """
    warnings: List[str] = []
    changes: Dict[str, Any] = {}

    if selector is None:
        base = PROFILES[DEFAULT_PROFILE]
    elif isinstance(selector, Profile):
        base = selector
    elif isinstance(selector, str):
        base = PROFILES.get(selector, PROFILES[DEFAULT_PROFILE])
        if selector not in PROFILES:
            warnings.append(
                f'Unknown chunk profile "{selector}", using "{DEFAULT_PROFILE}"'
            )
    else:
        changes.update(selector)
        base = PROFILES.get(str(changes.get("name", "")), PROFILES[DEFAULT_PROFILE])
        changes.setdefault("name", "custom")

    changes.update(overrides or {})
    if not changes:
        return base, warnings

    merged = base.model_dump()
    for key, value in changes.items():
        merged[_field_for_key(key)] = value

    try:
        return Profile(**merged), warnings
    except ValidationError as e:
        raise ProfileError(f"Invalid custom profile: {e}") from e


def _field_for_key(key: str) -> str:
    """Map a camelCase alias to its profile field name."""
    for field_name, field in Profile.model_fields.items():
        if key == field.alias:
            return field_name
    return key
