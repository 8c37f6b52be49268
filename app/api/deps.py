from fastapi import HTTPException, Request, status

from app.core.container import Messaging


def get_messaging(request: Request) -> Messaging:
    """Returns the messaging components built in the app lifespan."""
    messaging = getattr(request.app.state, "messaging", None)
    if messaging is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Messaging is not initialised.")
    return messaging
