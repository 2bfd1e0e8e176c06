from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class MongoModel(BaseModel):
    id: UUID = Field(alias="_id", serialization_alias="id", default_factory=uuid4)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        json_schema_serialization_defaults_required=True,
    )

    def to_mongo(self) -> dict[str, Any]:
        """Convert the model to a dictionary for MongoDB storage with _id field."""
        data = self.model_dump()
        if "id" in data:
            data["_id"] = data.pop("id")
        return data

    def to_mongo_update(self, *fields: str) -> dict[str, Any]:
        """Build a single update document for the given fields.

        Fields holding None are unset, the rest are set, so one update_one call
        persists every in-memory change of the record at once.
        """
        data = self.model_dump(include=set(fields))
        to_set = {k: v for k, v in data.items() if v is not None}
        to_unset = {k: "" for k, v in data.items() if v is None}
        update: dict[str, Any] = {}
        if to_set:
            update["$set"] = to_set
        if to_unset:
            update["$unset"] = to_unset
        return update

