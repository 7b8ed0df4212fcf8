"""Wise priced-quote connector."""

from railcost.connectors.wise.rest_client import WiseRestClient
from railcost.connectors.wise.types import (
    ProfileResolutionError,
    WiseConfig,
    parse_quote_response,
    pick_profile_id,
    select_option,
)

__all__ = [
    "ProfileResolutionError",
    "WiseConfig",
    "WiseRestClient",
    "parse_quote_response",
    "pick_profile_id",
    "select_option",
]
