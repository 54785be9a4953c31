import unicodedata
from collections import Counter
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List

Protection = int

# tab and newline survive the TOML settings file, other control characters do not
_ALLOWED_CONTROL = "\t\n"


def _check_text(v):
    if isinstance(v, str):
        for c in v:
            if c not in _ALLOWED_CONTROL and unicodedata.category(c) == "Cc":
                raise ValueError(f"control character U+{ord(c):04X} not allowed")
    return v


class Service(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    unique_id: str
    sid: int = Field(ge=0, le=0xFFFFFFFF)
    ecc: int = Field(ge=0, le=0xFF)
    label: str
    shortlabel: str
    input_port: int = Field(ge=0, le=0xFFFF)
    bitrate: int = Field(ge=0)
    protection: Protection = Field(ge=0, le=0xFF)

    @field_validator("unique_id", "label", "shortlabel")
    @classmethod
    def no_control_chars(cls, v: str) -> str:
        return _check_text(v)

    def sid_hex(self) -> str:
        return f"{self.sid:04X}"

    def ecc_hex(self) -> str:
        return f"{self.ecc:02X}"


class Config(BaseModel):
    """One ensemble as edited in the UI.

    The order of `services` decides the numeric sub-channel ids in the
    generated mux config.
    """
    model_config = ConfigDict(validate_assignment=True)

    instance_name: str
    dabmux_config_location: str
    tist: bool
    tist_offset: int
    ensemble_id: int = Field(ge=0, le=0xFFFF)
    ensemble_ecc: int = Field(ge=0, le=0xFF)
    ensemble_label: str
    ensemble_shortlabel: str
    output_edi_port: int = Field(ge=0, le=0xFFFF)
    output_zmq_port: int = Field(ge=0, le=0xFFFF)
    services: List[Service]

    @field_validator("instance_name", "dabmux_config_location", "ensemble_label", "ensemble_shortlabel")
    @classmethod
    def no_control_chars(cls, v: str) -> str:
        return _check_text(v)

    def ensemble_id_hex(self) -> str:
        return f"{self.ensemble_id:04X}"

    def ensemble_ecc_hex(self) -> str:
        return f"{self.ensemble_ecc:02X}"

    def duplicate_unique_ids(self) -> List[str]:
        """unique_ids used by more than one service, in first-seen order."""
        counts = Counter(s.unique_id for s in self.services)
        return [uid for uid, n in counts.items() if n > 1]

    @classmethod
    def default(cls) -> "Config":
        return cls(
            instance_name="CHANGEME",
            dabmux_config_location="/etc/odr-dabmux.json",
            tist=True,
            tist_offset=0,
            ensemble_id=0x4FFF,
            ensemble_ecc=0xE1,
            ensemble_label="OpenDigitalRadio",
            ensemble_shortlabel="ODR",
            output_edi_port=8951,
            output_zmq_port=8851,
            services=[
                Service(
                    unique_id="nothing",
                    sid=0x4DAA,
                    ecc=0xE1,
                    label="nothing",
                    shortlabel="no",
                    input_port=9001,
                    bitrate=128,
                    protection=2,
                ),
            ],
        )


class Param(BaseModel):
    """One remote-control parameter; value is always its string form."""
    module: str
    param: str
    value: str


class Status(BaseModel):
    instance_name: str
    services: int
