from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import PermissionDenied


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and for which company.

    Built once at the HTTP boundary and handed to every service call, so no
    service ever reaches into request state.
    """

    company: object
    user: Optional[object] = None

    @property
    def actor(self):
        # audit fields want a user or nothing (never AnonymousUser)
        if self.user is not None and getattr(self.user, "is_authenticated", False):
            return self.user
        return None

    @classmethod
    def from_request(cls, request):
        company = getattr(request, "company", None)
        if company is None:
            raise PermissionDenied("No active company for this request")
        return cls(company=company, user=getattr(request, "user", None))
