"""FastAPI integration for inbound events.

Example:
    ```python
    import uvicorn
    from switchboard.api import create_app

    uvicorn.run(create_app(), host="0.0.0.0", port=3000)
    ```

Or run directly (settings from SWITCHBOARD_* environment variables):
    ```bash
    uvicorn switchboard.api:create_app --factory
    ```
"""

from .app import create_app
from .router import create_events_router, inbound_request_from_starlette

__all__ = [
    "create_app",
    "create_events_router",
    "inbound_request_from_starlette",
]
