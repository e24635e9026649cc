from fastapi import Request

from storefront.store import Store


def store_handle(request: Request) -> Store:
    """The process-wide Store built in main.lifespan (or injected by create_app)."""
    return request.app.state.store


async def get_store(request: Request) -> Store:
    """Store for mutating routes: waits (bounded) for readiness, else 503."""
    store = store_handle(request)
    await store.wait_ready()
    return store
