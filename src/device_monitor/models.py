"""
Request models for the device monitor HTTP API.

Pydantic handles shape and type checks; domain rules (IPv4 syntax,
allowed schedule values) are enforced by the registry and controller.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt


class AddDeviceRequest(BaseModel):
    """Body of POST /api/devices."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        ...,
        description="User-facing device label"
    )
    ip_address: str = Field(
        ...,
        description="Dotted-quad IPv4 address"
    )


class ScheduleUpdateRequest(BaseModel):
    """Body of PUT /api/schedule. Omitted fields are left unchanged."""

    model_config = ConfigDict(extra="forbid")

    enabled: Optional[StrictBool] = Field(
        default=None,
        description="Turn auto-ping on or off"
    )
    interval_seconds: Optional[Union[StrictInt, StrictFloat]] = Field(
        default=None,
        description="Seconds between the start of consecutive cycles"
    )
    stagger_seconds: Optional[Union[StrictInt, StrictFloat]] = Field(
        default=None,
        description="Pause between probes within a cycle"
    )
