import datetime as dt
from pydantic import BaseModel, Field, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class CamelModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire and in the store."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore'
    )


class RecordBaseModel(CamelModel):
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @field_serializer("created_at", "updated_at")
    def serialize_dt(self, value: dt.datetime):
        return value.isoformat()

    def touch(self) -> None:
        self.updated_at = utc_now()
