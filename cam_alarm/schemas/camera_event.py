from pydantic import BaseModel, Field, field_validator


class EventRecord(BaseModel):
    """One inbound camera notification, normalised to millisecond timestamps."""

    serial: str
    event_type: str = ""
    timestamp: int = Field(alias="ts")   # ms since epoch

    class Config:
        populate_by_name = True

    @field_validator("serial")
    @classmethod
    def serial_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("serial must not be empty")
        return v

    def to_archive_line(self) -> str:
        """Single-line JSON form written to the archival log."""
        return self.model_dump_json(by_alias=True)
