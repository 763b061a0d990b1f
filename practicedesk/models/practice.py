"""Practice (tenant) as exposed to the frontend."""
from pydantic import BaseModel


class Practice(BaseModel):
    id: str
    name: str
