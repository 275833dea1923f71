"""Middleware for authentication and shop context."""
from functools import wraps

from flask import session, g, current_app

from app.database import get_session
from app.exceptions import UnauthorizedError
from app.models import Shop


def load_shop_context():
    """
    Load the current user and shop into g (Flask's per-request global).

    Called before each request. Sets g.user_id, g.shop_id, g.user_role and
    g.plan_type from the signed session cookie; g.shop_id stays None when the
    shop is unknown or inactive.
    """
    g.user_id = session.get('user_id')
    g.shop_id = None
    g.user_role = None
    g.plan_type = None

    shop_id = session.get('shop_id')
    if g.user_id is None or shop_id is None:
        return

    shop = get_session().get(Shop, shop_id)
    if shop is None or not shop.active:
        current_app.logger.warning(f"Session references unavailable shop {shop_id}; ignoring it")
        session.pop('shop_id', None)
        return

    g.shop_id = shop.id
    g.user_role = session.get('role')
    g.plan_type = session.get('plan_type')


def require_shop(f):
    """
    Decorator: require an authenticated user bound to a shop.

    Every catalog, discount and order query is scoped by g.shop_id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('shop_id') is None:
            raise UnauthorizedError('Authentication required', status_code=401)
        return f(*args, **kwargs)
    return decorated_function
