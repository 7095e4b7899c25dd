from fastapi import APIRouter, Depends

from practice_backend.auth.dependencies import get_current_user
from practice_backend.store.records import UserRecord

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: UserRecord = Depends(get_current_user)):
    return {"email": current_user.email, "fullName": current_user.full_name, "role": current_user.role}
