"""FastAPI dependency injection functions."""

from typing import Annotated, Callable

from fastapi import Depends, Header, HTTPException, Query, Request, status

from storefront.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from storefront.api.middleware.error_handler import RateLimitError
from storefront.core.cache import TTLCache
from storefront.core.database import Database
from storefront.core.rate_limiter import get_rate_limiter
from storefront.schemas.auth import UserContext, UserRole
from storefront.services.driver_service import DriverService
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.notification_hub import NotificationHub
from storefront.services.order_service import OrderService
from storefront.services.order_state_machine import OrderStateMachine
from storefront.services.payment_service import PaymentService


def _user_from_token(token: str) -> UserContext:
    try:
        payload = decode_jwt(token)
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    except ValueError as e:
        # sub claim is not a UUID
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _user_from_token(parts[1])


async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
    token: Annotated[str | None, Query(description="Access token for clients that cannot set headers")] = None,
) -> UserContext | None:
    """Extract the current user if a token is present.

    Accepts a bearer header or a ``token`` query parameter (EventSource
    cannot send headers). A present but invalid token is still rejected.

    Returns:
        UserContext | None: The user context if authenticated, None otherwise.
    """
    if authorization:
        return await get_current_user(authorization)
    if token:
        return _user_from_token(token)
    return None


def require_roles(*roles: UserRole) -> Callable:
    """Build a dependency that admits only users holding one of ``roles``."""
    allowed = tuple(role.value for role in roles)

    async def dependency(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
        if not user.has_role(*allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]
AdminUser = Annotated[UserContext, Depends(require_roles(UserRole.ADMIN))]
DriverUser = Annotated[UserContext, Depends(require_roles(UserRole.DRIVER))]
StaffUser = Annotated[UserContext, Depends(require_roles(UserRole.ADMIN, UserRole.DRIVER))]


# Application-scoped resources, created in the lifespan


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.hub


def get_cache(request: Request) -> TTLCache:
    return request.app.state.cache


DatabaseDep = Annotated[Database, Depends(get_database)]
HubDep = Annotated[NotificationHub, Depends(get_notification_hub)]
CacheDep = Annotated[TTLCache, Depends(get_cache)]


def get_state_machine(database: DatabaseDep, hub: HubDep, cache: CacheDep) -> OrderStateMachine:
    return OrderStateMachine(database, hub, cache)


StateMachineDep = Annotated[OrderStateMachine, Depends(get_state_machine)]


def get_order_service(database: DatabaseDep, state_machine: StateMachineDep, cache: CacheDep) -> OrderService:
    return OrderService(database, state_machine, cache)


def get_fulfillment_service(database: DatabaseDep, state_machine: StateMachineDep) -> FulfillmentService:
    return FulfillmentService(database, state_machine)


def get_payment_service(database: DatabaseDep, state_machine: StateMachineDep) -> PaymentService:
    return PaymentService(database, state_machine)


def get_driver_service(database: DatabaseDep, hub: HubDep) -> DriverService:
    return DriverService(database, hub)


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
FulfillmentServiceDep = Annotated[FulfillmentService, Depends(get_fulfillment_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
DriverServiceDep = Annotated[DriverService, Depends(get_driver_service)]


# Rate limiting dependency


async def check_order_rate_limit(user: CurrentUser) -> None:
    """Limit how many orders one user can place per window.

    Raises:
        RateLimitError: If the user has exceeded the rate limit.
    """
    allowed, _remaining, retry_after = get_rate_limiter().check_and_increment(f"order:{user.user_id}")

    if not allowed:
        raise RateLimitError(
            message="Too many orders. Please wait before placing another.",
            retry_after=retry_after,
        )


OrderRateLimit = Annotated[None, Depends(check_order_rate_limit)]
