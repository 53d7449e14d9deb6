"""
TTL configuration and the solved.ac endpoint behind each category.
"""
from typing import Dict, Optional

from config.settings import Settings, settings as default_settings

from .core import DataCategory


# solved.ac endpoint path for each category
CATEGORY_ENDPOINTS: Dict[DataCategory, str] = {
    DataCategory.USER_INFO: "user/show",
    DataCategory.USER_TOP100: "user/top_100",
    DataCategory.USER_ADDITIONAL: "user/additional_info",
    DataCategory.USER_ORGANIZATIONS: "user/organizations",
}


def build_ttl_config(config: Optional[Settings] = None) -> Dict[DataCategory, float]:
    """
    TTL (seconds) per category from settings.

    Volatile profile data expires first, organization memberships last.
    """
    config = config or default_settings
    return {
        DataCategory.USER_INFO: config.user_info_cache_ttl_seconds,
        DataCategory.USER_TOP100: config.user_top100_cache_ttl_seconds,
        DataCategory.USER_ADDITIONAL: config.user_additional_cache_ttl_seconds,
        DataCategory.USER_ORGANIZATIONS: config.user_organizations_cache_ttl_seconds,
    }
