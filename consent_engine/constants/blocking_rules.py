"""
Built-in Blocking Rule Catalogue

Pattern library for common analytics, marketing and tag-manager resources.
Region policies reference these entries by id.
"""

BLOCKING_RULE_CATALOGUE: dict[str, dict] = {
    "google-analytics-4": {
        "id": "google-analytics-4",
        "resource_kind": "external_script",
        "pattern": r"gtag|googletagmanager\.com|google-analytics\.com",
        "is_regex": True,
        "required_category": "analytics",
        "action": "block_until_consent",
    },
    "google-analytics-universal": {
        "id": "google-analytics-universal",
        "resource_kind": "external_script",
        "pattern": r"google-analytics\.com|/ga\.js",
        "is_regex": True,
        "required_category": "analytics",
        "action": "block_until_consent",
    },
    "facebook-pixel": {
        "id": "facebook-pixel",
        "resource_kind": "external_script",
        "pattern": r"facebook\.(com|net)/[a-z_A-Z]+/fbevents|fbevents\.js",
        "is_regex": True,
        "required_category": "marketing",
        "action": "block_until_consent",
    },
    "linkedin-insight": {
        "id": "linkedin-insight",
        "resource_kind": "external_script",
        "pattern": r"linkedin\.com/px|snap\.licdn\.com",
        "is_regex": True,
        "required_category": "marketing",
        "action": "block_until_consent",
    },
    "twitter-pixel": {
        "id": "twitter-pixel",
        "resource_kind": "external_script",
        "pattern": r"analytics\.twitter\.com|//t\.co/|platform\.twitter\.com",
        "is_regex": True,
        "required_category": "marketing",
        "action": "block_until_consent",
    },
    "hotjar": {
        "id": "hotjar",
        "resource_kind": "external_script",
        "pattern": r"hotjar\.com|hjcdn\.com",
        "is_regex": True,
        "required_category": "analytics",
        "action": "block_until_consent",
    },
    "segment": {
        "id": "segment",
        "resource_kind": "external_script",
        "pattern": "cdn.segment.com",
        "is_regex": False,
        "required_category": "marketing",
        "action": "block_until_consent",
    },
    "youtube-embed": {
        "id": "youtube-embed",
        "resource_kind": "iframe",
        "pattern": "youtube.com/embed",
        "is_regex": False,
        "required_category": "marketing",
        "action": "replace_with_placeholder",
    },
}
