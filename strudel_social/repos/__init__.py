"""
Repository layer for strudel-social.

All store access lives here and ONLY here, through a Gateway.
"""

from strudel_social.repos.gateway import Gateway, GatewayError, Order
from strudel_social.repos.pattern_repo import PatternRepo
from strudel_social.repos.post_repo import PostRepo
from strudel_social.repos.rest_gateway import RestGateway

__all__ = [
    "Gateway",
    "GatewayError",
    "Order",
    "RestGateway",
    "PatternRepo",
    "PostRepo",
]
