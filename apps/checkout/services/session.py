"""
Per-request session context handed to checkout services.

Services never look at the request or at module-level state to find out
who is paying or whether the deployment runs in demo mode; they get a
SessionContext instead.
"""

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class SessionContext:
    user: object
    is_demo: bool = False

    @classmethod
    def from_request(cls, request) -> 'SessionContext':
        return cls(
            user=request.user,
            is_demo=getattr(settings, 'BPAY_DEMO_MODE', False),
        )

    @property
    def cardholder_name(self) -> str:
        return self.user.get_display_name()
