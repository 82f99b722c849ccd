from pydantic import BaseModel

class PermissionGrantIn(BaseModel):
    user_id: str
    can_read: bool = False
    can_write: bool = False
    can_delete: bool = False

class PermissionOut(BaseModel):
    file_id: str
    user_id: str
    can_read: bool
    can_write: bool
    can_delete: bool

    class Config:
        from_attributes = True
