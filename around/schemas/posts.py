from pydantic import BaseModel, Field
from typing import Optional

class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)

class Post(BaseModel):
    # id is the S3 key, DynamoDB key and index document id; never part of the body
    id: Optional[str] = Field(default=None, exclude=True)
    user: str
    message: str
    location: Location
    url: str = ''
