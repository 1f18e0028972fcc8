from typing import Literal, Optional

from pydantic import BaseModel

ActorRole = Literal["buyer", "seller", "both", "admin"]


class Actor(BaseModel):
    """The verified caller, built once from the access token's claims."""

    id: str
    role: ActorRole = "both"
    org_id: Optional[str] = None
