from sqlalchemy import select
from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel

class UserRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        return self.db.get(UserModel, user_id)

    def get_user_by_token(self, token: str) -> UserModel | None:
        return self.db.execute(
            select(UserModel).where(UserModel.token == token)
        ).scalar_one_or_none()
