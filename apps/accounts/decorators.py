# accounts/decorators.py

from functools import wraps
import logging

from django.http import JsonResponse

from .models import get_user_role

logger = logging.getLogger(__name__)


def role_required(*roles):
    """
    Restrict a view to authenticated users holding one of ``roles``.
    Responds with JSON 401/403 rather than redirecting.

    Example:
        @role_required('accountant', 'super_admin')
        def approve_payment(request, pk):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({'error': 'Authentication required.'}, status=401)

            role = get_user_role(request.user)
            if role not in roles:
                logger.warning(
                    f"User {request.user.pk} with role {role} denied access to {view_func.__name__}"
                )
                return JsonResponse(
                    {'error': 'You do not have permission to perform this action.'},
                    status=403
                )
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
