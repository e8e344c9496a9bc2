from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # principal id
    role: str
    exp: int
