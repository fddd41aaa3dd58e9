"""
Version constants for the incremental classification pipeline.

CACHE_SCHEMA_VERSION is the expected cache version: incrementing it forces every
installed copy to drop its cached classifications on the next bootstrap, even if
the TTL has not elapsed. Bump it whenever RULESET_VERSION changes incompatibly.
"""

from .models.api_models import VersionInfo

# API Version
API_VERSION = "1.0.0"

# Component versions (update these when implementations change)
RULESET_VERSION = "keywords-1.3.0"
PROMPT_VERSION = "category-prompt-1.0.0"
SCHEDULER_VERSION = "snippet-poller-1.0.0"

CACHE_SCHEMA_VERSION = 2


def get_version_info(cache_version: int = CACHE_SCHEMA_VERSION) -> VersionInfo:
    """
    Get current component version information.

    Args:
        cache_version: Expected cache version in effect

    Returns:
        VersionInfo instance with current versions
    """
    return VersionInfo(
        api_version=API_VERSION,
        ruleset_version=RULESET_VERSION,
        prompt_version=PROMPT_VERSION,
        scheduler_version=SCHEDULER_VERSION,
        cache_version=cache_version,
    )
