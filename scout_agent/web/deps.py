from typing import Optional

from fastapi import Depends, Request
from sqlmodel import select

from scout_agent.errors import Forbidden, Unauthenticated
from scout_agent.models import User
from scout_agent.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_user(request: Request, services: Services = Depends(get_services)) -> Optional[User]:
    """Resolve the bearer token to a user; None when absent or unknown."""
    token = _bearer_token(request)
    if not token:
        return None
    with services.session_factory() as session:
        return session.exec(select(User).where(User.api_token == token)).first()


def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def require_admin(
    user: User = Depends(require_user),
    services: Services = Depends(get_services),
) -> User:
    if not (user.email or "").endswith(services.config.admin_email_domain):
        raise Forbidden("Unauthorized - Admin access required")
    return user
