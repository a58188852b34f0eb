from pydantic import BaseModel


class Channel(BaseModel):
    """
    Represents a chat channel. type is the visibility class ("public", "private", "direct").
    """
    id: str
    type: str
    name: str
