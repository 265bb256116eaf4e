"""
Text Feed Record
JSON payload accepted from WebSocket heart rate apps
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Largest interval accepted, well inside what timedelta can hold
MAX_RR_MS = 0xFFFFFFFF


class JSONHeartRate(BaseModel):
    """
    One heart rate message from a text feed.

    Apps disagree on the bpm key, so `heartRate` and `heartrate` are
    accepted as aliases. Unknown keys are ignored.
    """

    model_config = ConfigDict(strict=True, extra='ignore')

    bpm: int = Field(
        ...,
        ge=0,
        le=0xFFFF,
        validation_alias=AliasChoices('bpm', 'heartRate', 'heartrate'),
    )
    latest_rr_ms: Optional[int] = Field(default=None, ge=0, le=MAX_RR_MS)
    battery: Optional[int] = Field(default=None, ge=0, le=0xFF)
