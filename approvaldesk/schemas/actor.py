"""Authenticated actor handed over by the identity layer."""
from pydantic import BaseModel, ConfigDict


class Actor(BaseModel):
    id: str
    email: str
    role: str

    model_config = ConfigDict(frozen=True)
