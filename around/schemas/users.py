from pydantic import BaseModel

class UserIn(BaseModel):
    username: str
    password: str

class UserOut(BaseModel):
    username: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = 'bearer'
