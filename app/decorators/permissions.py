"""
Role and plan based access control.

Feature access is the intersection of what the user's role may do and what
the shop's plan includes. The lookups are pure functions over the enums below;
the decorators read the role and plan that app.middleware put on `g`.
"""
import enum
from functools import wraps
from typing import FrozenSet, List, Optional

from flask import g

from app.exceptions import UnauthorizedError


class Role(str, enum.Enum):
    SHOP_ADMIN = 'SHOP_ADMIN'
    SHOP_STAFF = 'SHOP_STAFF'
    CUSTOMER = 'CUSTOMER'
    SUPER_ADMIN = 'SUPER_ADMIN'


class PlanType(str, enum.Enum):
    STANDARD = 'STANDARD'
    ADVANCED = 'ADVANCED'
    PREMIUM = 'PREMIUM'


class Feature(str, enum.Enum):
    # Standard
    PRODUCTS_MANAGEMENT = 'products_management'
    CATEGORIES_MANAGEMENT = 'categories_management'
    ORDERS_VIEW = 'orders_view'
    CUSTOMERS_VIEW = 'customers_view'
    SHOP_SETTINGS = 'shop_settings'
    # Advanced
    INVOICE_GENERATION = 'invoice_generation'
    ADVANCED_ANALYTICS = 'advanced_analytics'
    INVENTORY_ALERTS = 'inventory_alerts'
    NOTIFICATIONS = 'notifications'
    CUSTOM_DOMAIN = 'custom_domain'
    # Premium
    AI_PREDICTIONS = 'ai_predictions'
    API_ACCESS = 'api_access'
    CUSTOM_BRANDING = 'custom_branding'
    PRIORITY_SUPPORT = 'priority_support'
    BULK_OPERATIONS = 'bulk_operations'


_STANDARD = frozenset({
    Feature.PRODUCTS_MANAGEMENT,
    Feature.CATEGORIES_MANAGEMENT,
    Feature.ORDERS_VIEW,
    Feature.CUSTOMERS_VIEW,
    Feature.SHOP_SETTINGS,
})

_ADVANCED = _STANDARD | {
    Feature.INVOICE_GENERATION,
    Feature.ADVANCED_ANALYTICS,
    Feature.INVENTORY_ALERTS,
    Feature.NOTIFICATIONS,
    Feature.CUSTOM_DOMAIN,
}

PLAN_FEATURES = {
    PlanType.STANDARD: _STANDARD,
    PlanType.ADVANCED: _ADVANCED,
    PlanType.PREMIUM: frozenset(Feature),
}

# Staff can run the shop but not reconfigure it
_STAFF_DENIED = frozenset({
    Feature.SHOP_SETTINGS,
    Feature.CUSTOM_DOMAIN,
    Feature.API_ACCESS,
    Feature.CUSTOM_BRANDING,
})

ROLE_FEATURES = {
    Role.SUPER_ADMIN: frozenset(Feature),
    Role.SHOP_ADMIN: frozenset(Feature),
    Role.SHOP_STAFF: frozenset(Feature) - _STAFF_DENIED,
    Role.CUSTOMER: frozenset(),
}


def _role(value) -> Optional[Role]:
    try:
        return Role(value) if value is not None else None
    except ValueError:
        return None


def _plan(value) -> PlanType:
    """Unknown or missing plans are treated as STANDARD."""
    try:
        return PlanType(value) if value is not None else PlanType.STANDARD
    except ValueError:
        return PlanType.STANDARD


def plan_features(plan) -> FrozenSet[Feature]:
    return PLAN_FEATURES[_plan(plan)]


def role_allows(role, feature: Feature) -> bool:
    role = _role(role)
    return role is not None and Feature(feature) in ROLE_FEATURES[role]


def has_feature_access(role, plan, feature: Feature, has_shop: bool = True) -> bool:
    """
    Check if a user with `role` on a shop with `plan` may use `feature`.

    SUPER_ADMIN always may; everyone else needs a shop, a role that allows
    the feature and a plan that includes it.
    """
    role = _role(role)
    if role is Role.SUPER_ADMIN:
        return True
    if role is None or not has_shop:
        return False
    return role_allows(role, feature) and Feature(feature) in plan_features(plan)


def available_features(role, plan) -> List[Feature]:
    """Features usable by the role on the plan, in declaration order."""
    role = _role(role)
    if role is Role.SUPER_ADMIN:
        return list(Feature)
    if role is None:
        return []
    allowed = plan_features(plan) & ROLE_FEATURES[role]
    return [feature for feature in Feature if feature in allowed]


def require_role(*allowed_roles):
    """
    Decorator to restrict an endpoint to specific roles.

    Usage:
        @require_role(Role.SHOP_ADMIN)
        @require_role(Role.SHOP_ADMIN, Role.SHOP_STAFF)
    """
    allowed = {Role(role) for role in allowed_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('shop_id') is None:
                raise UnauthorizedError('Authentication required', status_code=401)

            role = _role(g.get('user_role'))
            if role is not Role.SUPER_ADMIN and role not in allowed:
                raise UnauthorizedError('You do not have permission to perform this action')

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_feature(feature: Feature):
    """
    Decorator to restrict an endpoint to users whose role and plan include `feature`.

    Usage:
        @require_feature(Feature.ORDERS_VIEW)
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('shop_id') is None:
                raise UnauthorizedError('Authentication required', status_code=401)

            if not has_feature_access(g.get('user_role'), g.get('plan_type'), feature):
                raise UnauthorizedError(f'Your plan does not include: {Feature(feature).value}')

            return f(*args, **kwargs)

        return decorated_function
    return decorator
