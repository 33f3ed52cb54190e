"""API routers for dockmetrics."""

from fastapi import APIRouter

from dockmetrics.api import containers, hosts, metrics, proxy, system

api_router = APIRouter(prefix="/api")

api_router.include_router(containers.router, prefix="/containers", tags=["containers"])
api_router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
api_router.include_router(hosts.router, prefix="/hosts", tags=["hosts"])
api_router.include_router(system.router, tags=["system"])

# Mounted at the application root, not under /api
proxy_router = proxy.router

__all__ = ["api_router", "proxy_router"]
