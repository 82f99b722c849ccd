from pydantic import BaseModel, Field

class MetadataIn(BaseModel):
    key: str = Field(..., min_length=1)
    value: str

class MetadataValue(BaseModel):
    value: str

class MetadataOut(BaseModel):
    key: str
    value: str

    class Config:
        from_attributes = True
