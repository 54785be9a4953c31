import json
import logging
from typing import Dict, List, Optional, Sequence

import zmq

from config import RC_ENDPOINT, RC_TIMEOUT_MS
from models import Param

logger = logging.getLogger(__name__)


class RCError(RuntimeError):
    pass


class RCTimeoutError(RCError):
    pass


class RCProtocolError(RCError):
    pass


class RCTransportError(RCError):
    pass


class _NumberText(str):
    """A JSON number kept as the text the daemon sent."""


def _reject_constant(name: str):
    raise RCProtocolError(f"RC response contains {name}, which is not valid JSON")


def _value_to_str(module_name: str, param_name: str, v) -> str:
    if v is None:
        return "null"
    # bool first: it is also an int
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        return v
    if isinstance(v, list):
        raise RCProtocolError(f"Unexpected array in {module_name}.{param_name}")
    raise RCProtocolError(f"Unexpected object in {module_name}.{param_name}")


def value_to_params(v) -> List[Param]:
    """Flatten {"module": {"param": scalar, ...}, ...} into Params, in document order."""
    if not isinstance(v, dict):
        raise RCProtocolError("RC data is not a JSON object")

    all_params: List[Param] = []
    for module_name, params in v.items():
        if not isinstance(params, dict):
            raise RCProtocolError(f"RC module {module_name} is not a JSON object")
        for param_name, value_json in params.items():
            all_params.append(Param(
                module=module_name,
                param=param_name,
                value=_value_to_str(module_name, param_name, value_json),
            ))
    return all_params


def parse_showjson(msg: bytes) -> List[Param]:
    try:
        text = msg.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RCProtocolError("RC response is not a str") from e
    try:
        v = json.loads(text, parse_int=_NumberText, parse_float=_NumberText,
                       parse_constant=_reject_constant)
    except ValueError as e:
        raise RCProtocolError(f"RC response is not valid JSON: {e}") from e
    return value_to_params(v)


def join_reply(parts: Sequence[bytes]) -> str:
    out = []
    for p in parts:
        try:
            out.append(p.decode("utf-8"))
        except UnicodeDecodeError:
            out.append("???")
    return ",".join(out)


def params_by_module(params: Sequence[Param]) -> Dict[str, List[Param]]:
    grouped: Dict[str, List[Param]] = {}
    for p in params:
        grouped.setdefault(p.module, []).append(p)
    return grouped


class DabMux:
    """Client for the ODR-DabMux ZMQ remote control.

    Every call uses a fresh REQ socket on the same endpoint, so a timed-out
    request never leaves the next one stuck in the REQ state machine.
    """

    def __init__(self, endpoint: str = RC_ENDPOINT, timeout_ms: int = RC_TIMEOUT_MS,
                 ctx: Optional[zmq.Context] = None):
        self.ctx = ctx or zmq.Context.instance()
        self.rc_endpoint = endpoint
        self.timeout_ms = int(timeout_ms)

    def _request(self, frames: List[str]) -> List[bytes]:
        try:
            sock = self.ctx.socket(zmq.REQ)
        except zmq.ZMQError as e:
            raise RCTransportError(f"Cannot create RC socket: {e}") from e

        try:
            sock.setsockopt(zmq.LINGER, 0)
            sock.connect(self.rc_endpoint)
            sock.send_multipart([f.encode("utf-8") for f in frames])

            if not sock.poll(self.timeout_ms, zmq.POLLIN):
                raise RCTimeoutError("Timeout reading RC")
            return sock.recv_multipart()
        except zmq.ZMQError as e:
            raise RCTransportError(f"RC communication with {self.rc_endpoint} failed: {e}") from e
        finally:
            sock.close(linger=0)

    def get_rc_parameters(self) -> List[Param]:
        parts = self._request(["showjson"])
        # showjson replies with a single frame
        return parse_showjson(parts[0])

    def set_rc_parameter(self, module: str, param: str, value: str) -> str:
        """Send `set module param value`; returns the reply frames joined by commas."""
        parts = self._request(["set", module, param, value])
        j = join_reply(parts)
        logger.info("SET_RC: %s", j)
        return j
