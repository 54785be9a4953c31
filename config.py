import os
from dataclasses import dataclass

# ------------------------------
# Own settings file (the UI's persisted Config)
# ------------------------------
# Relative to the working directory unless overridden.
# Example:
#   export ODR_DABMUX_GUI_CONFIG=/var/lib/odr-dabmux-gui/config.toml
CONFIGFILE_ENV = "ODR_DABMUX_GUI_CONFIG"
CONFIGFILE = "odr-dabmux-gui-config.toml"

# ------------------------------
# Web UI
# ------------------------------
UI_PORT_ENV = "ODR_DABMUX_GUI_PORT"
UI_PORT = 3000
LOG_LEVEL_ENV = "LOG_LEVEL"

# ------------------------------
# ODR-DabMux remote control (ZMQ REQ/REP)
# ------------------------------
# Must match the "zmqendpoint" we write into the mux config, seen from the client side.
RC_ENDPOINT = "tcp://127.0.0.1:12722"

# Read timeout after sending a request. No retry on expiry.
RC_TIMEOUT_MS = 2000

GENERATOR_NAME = "odr-dabmux-gui"


@dataclass(frozen=True)
class DabMuxDefaults:
    """Fixed values baked into the generated odr-dabmux configuration.

    Kept in one place so a deployment can override them without touching
    the document layout in dabmux_json.py.
    """
    dabmode: int = 1
    nbframes: int = 0  # 0 = run forever
    syslog: bool = False
    managementport: int = 12720

    telnetport: int = 12721
    zmqendpoint: str = "tcp://lo:12722"

    local_time_offset: str = "auto"
    reconfig_counter: str = "hash"

    subchannel_type: str = "dabplus"
    inputproto: str = "edi"
    input_host: str = "127.0.0.1"
    buffer_management: str = "prebuffering"
    buffer: int = 40
    prebuffering: int = 20

    userapp: str = "slideshow"

    throttle: str = "simul://"
    zmq_allowmetadata: bool = False
    edi_destination_name: str = "example_tcp"
    edi_protocol: str = "tcp"


DEFAULT_DABMUX = DabMuxDefaults()


def configfile_path() -> str:
    """Location of the UI's own settings file. Uses env ODR_DABMUX_GUI_CONFIG if set."""
    return os.getenv(CONFIGFILE_ENV, "").strip() or CONFIGFILE
