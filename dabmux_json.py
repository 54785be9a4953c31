import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from config import DEFAULT_DABMUX, GENERATOR_NAME, DabMuxDefaults
from models import Config, Service

logger = logging.getLogger(__name__)


class DabMuxConfigError(RuntimeError):
    pass


class DabMuxConfigSerializeError(DabMuxConfigError):
    pass


class DabMuxConfigWriteError(DabMuxConfigError):
    def __init__(self, path: str, message: str):
        super().__init__(f"writing dabmux config file {path}: {message}")
        self.path = path


# services, subchannels and components share one key space in the mux config
def service_key(s: Service) -> str:
    return f"srv-{s.unique_id}"


def subchannel_key(s: Service) -> str:
    return f"sub-{s.unique_id}"


def component_key(s: Service) -> str:
    return f"comp-{s.unique_id}"


def service_json(s: Service) -> dict:
    return {
        "id": s.sid,
        "ecc": s.ecc,
        "label": s.label,
        "shortlabel": s.shortlabel,
    }


def subchannel_json(s: Service, subchannel_id: int, defaults: DabMuxDefaults = DEFAULT_DABMUX) -> dict:
    return {
        "type": defaults.subchannel_type,
        "bitrate": s.bitrate,
        "id": subchannel_id,
        "protection": s.protection,

        "inputproto": defaults.inputproto,
        "inputuri": f"tcp://{defaults.input_host}:{s.input_port}",
        "buffer-management": defaults.buffer_management,
        "buffer": defaults.buffer,
        "prebuffering": defaults.prebuffering,
    }


def component_json(s: Service, defaults: DabMuxDefaults = DEFAULT_DABMUX) -> dict:
    return {
        "service": service_key(s),
        "subchannel": subchannel_key(s),
        "user-applications": {
            "userapp": defaults.userapp,
        },
    }


def build_dabmux_document(
    conf: Config,
    now: Optional[datetime] = None,
    defaults: DabMuxDefaults = DEFAULT_DABMUX,
) -> dict:
    """Build the odr-dabmux JSON configuration for `conf`.

    Sub-channel ids are 1..N in the order of conf.services.
    """
    now = now or datetime.now(timezone.utc)

    services: Dict[str, dict] = {}
    subchannels: Dict[str, dict] = {}
    components: Dict[str, dict] = {}
    for subchannel_id, s in enumerate(conf.services, start=1):
        services[service_key(s)] = service_json(s)
        subchannels[subchannel_key(s)] = subchannel_json(s, subchannel_id, defaults)
        components[component_key(s)] = component_json(s, defaults)

    return {
        "_comment": f"Generated at {now.isoformat()} by {GENERATOR_NAME}",
        "general": {
            "dabmode": defaults.dabmode,
            "nbframes": defaults.nbframes,
            "syslog": defaults.syslog,
            "tist": conf.tist,
            "tist_offset": conf.tist_offset,
            "managementport": defaults.managementport,
        },
        "remotecontrol": {
            "telnetport": defaults.telnetport,
            "zmqendpoint": defaults.zmqendpoint,
        },
        "ensemble": {
            "id": conf.ensemble_id,
            "ecc": conf.ensemble_ecc,
            "local-time-offset": defaults.local_time_offset,
            "reconfig-counter": defaults.reconfig_counter,
            "label": conf.ensemble_label,
            "shortlabel": conf.ensemble_shortlabel,
        },
        "services": services,
        "subchannels": subchannels,
        "components": components,
        "outputs": {
            "throttle": defaults.throttle,
            "zeromq": {
                "endpoint": f"tcp://*:{conf.output_zmq_port}",
                "allowmetadata": defaults.zmq_allowmetadata,
            },
            "edi": {
                "destinations": {
                    defaults.edi_destination_name: {
                        "protocol": defaults.edi_protocol,
                        "listenport": conf.output_edi_port,
                    },
                },
            },
        },
    }


def write_dabmux_json(
    conf: Config,
    now: Optional[datetime] = None,
    defaults: DabMuxDefaults = DEFAULT_DABMUX,
) -> str:
    """Write the mux config to conf.dabmux_config_location, replacing it. Returns the path."""
    path = conf.dabmux_config_location
    doc = build_dabmux_document(conf, now=now, defaults=defaults)
    try:
        text = json.dumps(doc, indent=2)
    except (TypeError, ValueError) as e:
        raise DabMuxConfigSerializeError(f"serializing dabmux config: {e}") from e

    # No temp file + rename: a failed write may leave a truncated file.
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise DabMuxConfigWriteError(path, str(e)) from e

    logger.info("Wrote dabmux config with %d services to %s", len(conf.services), path)
    return path
