"""
Tenant gates as FastAPI dependencies.

Routers attach these to every route: reads always pass (flagged read-only
without an active subscription), writes need an active subscription, and
everything past onboarding needs at least one business.
"""

from fastapi import Depends, Request, Response

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
READ_ONLY_HEADER = "X-Read-Only"


def workspace_id(request: Request) -> int:
    """Workspace resolved by AuthMiddleware."""
    return request.state.workspace_id


class TenantGates:
    """Subscription and business gates bound to a WorkspaceService."""

    def __init__(self, workspace_service):
        self.workspace_service = workspace_service

    def subscription(self, request: Request, response: Response) -> None:
        """
        Reads pass in read-only mode; writes need ACTIVE or TRIALING.

        Raises:
            SubscriptionRequiredError: Write without an active subscription
        """
        if request.method in SAFE_METHODS:
            workspace = getattr(request.state, "workspace", None)
            if workspace is None or not workspace.has_active_subscription:
                response.headers[READ_ONLY_HEADER] = "true"
            return

        self.workspace_service.require_active_subscription(request.state.workspace_id)

    def business(self, request: Request) -> None:
        """
        Raises:
            BusinessRequiredError: Workspace has no business yet
        """
        self.workspace_service.require_business(request.state.workspace_id)

    def dependencies(self, require_business: bool = True) -> list:
        """Dependencies for a router; onboarding routers skip the business gate."""
        deps = [Depends(self.subscription)]
        if require_business:
            deps.append(Depends(self.business))
        return deps
