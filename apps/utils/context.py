# utils/context.py

"""
Per-thread actor context.

AuditContextMiddleware records who is acting (and from where) for the
duration of a request; BaseModel audit fields, audit log entries and
billing services read it back instead of taking the request as an argument.
Outside a request (management commands, tests) there is no actor.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

_state = local()


def set_request_context(user=None, ip_address=None):
    if user is not None and not user.is_authenticated:
        user = None
    _state.actor = {'user': user, 'ip_address': ip_address}
    logger.debug(f"Actor set: user={getattr(user, 'pk', None)} ip={ip_address}")


def get_request_context():
    """{'user': ..., 'ip_address': ...} for this thread, or None"""
    return getattr(_state, 'actor', None)


def clear_request_context():
    _state.__dict__.pop('actor', None)


def get_current_user():
    context = get_request_context()
    return context['user'] if context else None


def get_current_ip():
    context = get_request_context()
    return context['ip_address'] if context else None


def get_client_ip(request):
    # Behind a proxy the left-most X-Forwarded-For entry is the client
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
