"""
Dashboard authentication decorator.

The dashboard is a JSON API for the instructor calendar, so instead of
redirecting to a login page it answers 401 / 403 with an error body.
"""
from functools import wraps
from django.http import JsonResponse


def dashboard_admin_required(view_func):
    """Require is_authenticated + is_staff."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Authentication required.'}, status=401)
        if not request.user.is_staff:
            return JsonResponse({'error': 'Your account does not have admin access.'}, status=403)
        return view_func(request, *args, **kwargs)
    return wrapper
