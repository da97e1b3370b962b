from typing import Any

from pydantic import BaseModel, ConfigDict
from sqlalchemy.engine.row import Row


class CustomBaseModel(BaseModel):
    """Custom base model for all response schemas.
    - reads attributes straight from ORM objects
    - accepts both snake_case field names and their aliases on input
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @classmethod
    def from_record(cls, record: Any):
        if isinstance(record, Row):
            return cls(**record._asdict())
        elif isinstance(record, dict):
            return cls(**record)
        elif hasattr(record, "__table__"):
            return cls.model_validate(record)
        else:
            raise ValueError(f"Invalid record type: {type(record)}")


class Message(CustomBaseModel):
    message: str = ""
