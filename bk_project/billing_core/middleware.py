from django.utils.deprecation import MiddlewareMixin

from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Attach request.company on every request, based on the logged-in user
    def process_request(self, request):
        request.company = None
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return

        # Default company fallback
        request.company = getattr(user, "default_company", None)

        # An explicit switch wins: API clients send a header,
        # the browser stores the choice in the session
        company_id = (
            request.headers.get("X-Company-Id")
            or request.session.get("active_company_id")
        )
        if company_id:
            try:
                # user must hold an active membership for that company
                request.company = Company.objects.get(
                    pk=company_id,
                    memberships__user=user,
                    memberships__is_active=True,
                )
            except (Company.DoesNotExist, ValueError):
                # tampered or stale id: no company rather than the default
                request.company = None
