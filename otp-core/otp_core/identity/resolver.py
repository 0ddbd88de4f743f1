"""
Client Identity Resolver
========================
Derives the per-caller key shared by the rate limiter and the OTP manager.
"""

from enum import Enum
from typing import Optional

from starlette.requests import Request

UNKNOWN_ADDRESS = "unknown-ip"


class IdentityPolicy(str, Enum):
    """How a caller is identified."""
    IP = "ip"
    IP_AND_TOKEN = "ip_and_token"


class ClientIdentityResolver:
    """
    Resolves a stable client key from network-origin information.

    One resolver (one policy) must serve generation, verification and
    rate-limit checks alike.
    """

    def __init__(
        self,
        policy: IdentityPolicy = IdentityPolicy.IP,
        cookie_name: str = "otp_attempts",
        trust_forwarded_for: bool = False,
    ):
        self.policy = IdentityPolicy(policy)
        self.cookie_name = cookie_name
        self.trust_forwarded_for = trust_forwarded_for

    def resolve(self, remote_addr: Optional[str], session_token: Optional[str] = None) -> str:
        address = (remote_addr or "").strip() or UNKNOWN_ADDRESS

        if self.policy is IdentityPolicy.IP_AND_TOKEN and session_token:
            return f"{address}:{session_token}"
        return address

    def client_address(self, request: Request) -> str:
        """Extract the client IP from a request."""
        if self.trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for", "")
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop

        client = request.client
        if client and client.host:
            return client.host
        return UNKNOWN_ADDRESS

    def from_request(self, request: Request) -> str:
        token = None
        if self.policy is IdentityPolicy.IP_AND_TOKEN:
            token = request.cookies.get(self.cookie_name)
        return self.resolve(self.client_address(request), token)
