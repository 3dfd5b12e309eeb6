"""
Per-camera debounce state as persisted in the store.
Stored under "cam_<serial>" as {"serial": str, "ts": int, "count": int}.
"""

from pydantic import BaseModel, Field, ValidationError

from cam_alarm.errors import StateDecodeError


class CameraState(BaseModel):
    serial: str
    last_ts: int = Field(alias="ts")   # ms of the last accepted event
    count: int = 0                     # acceptances since the last rollup

    class Config:
        populate_by_name = True

    @classmethod
    def from_json(cls, raw) -> "CameraState":
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise StateDecodeError(f"invalid camera state {raw!r}: {e}") from e

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def accept(self, ts: int) -> "CameraState":
        """State after accepting an event at ts."""
        return CameraState(serial=self.serial, last_ts=ts, count=self.count + 1)


class RollupBatch(BaseModel):
    """One rollup snapshot: {"data": [state, state, ...]}."""

    data: list[dict] = []

    def add(self, state: CameraState) -> None:
        self.data.append(state.model_dump(by_alias=True))

    def to_json(self) -> str:
        return self.model_dump_json()
