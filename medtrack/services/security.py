from typing import Optional

from fastapi import Header, HTTPException

def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Caller identity is asserted by the upstream gateway through X-User-Id;
    session handling lives there, not here.
    """
    user_id = (x_user_id or "").strip()

    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized"
        )

    return user_id
