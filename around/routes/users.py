from fastapi import APIRouter, Depends, HTTPException, Form
from ..schemas.users import UserIn, UserOut, TokenOut
from ..crud import create_user, authenticate_user
from ..core import get_search_client

router = APIRouter()


@router.post('/signup', response_model=UserOut)
async def signup(payload: UserIn, client=Depends(get_search_client)):
    return await create_user(client, payload)


@router.post('/login', response_model=TokenOut)
async def login(
    username: str = Form(...),
    password: str = Form(...),
    client=Depends(get_search_client),
):
    token = await authenticate_user(client, username, password)
    if not token:
        raise HTTPException(status_code=401, detail='Invalid credentials')
    return token
