"""
User-agent classification for the viewer page.

Matching is a case-insensitive substring test against a fixed signature list.
The raw User-Agent header is classified; no parsing into browser/OS parts.
"""
from typing import Optional

# Known crawler signatures, lower-case
BOT_SIGNATURES = (
    "googlebot",
    "bingbot",
    "slurp",
    "duckduckbot",
    "baiduspider",
    "yandexbot",
    "sogou",
    "exabot",
    "facebookexternalhit",
)

FACEBOOK_CRAWLER_SIGNATURE = "facebookexternalhit"


def is_bot(user_agent: Optional[str]) -> bool:
    """True if the user agent contains any known bot signature. Missing UA is not a bot."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(signature in ua for signature in BOT_SIGNATURES)


def is_facebook_crawler(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    return FACEBOOK_CRAWLER_SIGNATURE in user_agent.lower()
