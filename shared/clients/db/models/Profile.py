from pydantic import BaseModel


class Profile(BaseModel):
    """
    Represents a user profile. Only the fields used for style matching are kept.
    """
    id: str
    username: str
    full_name: str | None = None
    title: str | None = None
    bio: str | None = None
