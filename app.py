import asyncio
import logging
import os
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool

import config_store
from config import LOG_LEVEL_ENV, UI_PORT, UI_PORT_ENV
from dabmux import DabMux, RCError, RCTimeoutError, params_by_module
from dabmux_json import DabMuxConfigError, write_dabmux_json
from models import Config, Param, Status

logger = logging.getLogger(__name__)


class AppState:
    """Config and RC client, serialized behind a single lock.

    At most one config edit or RC round-trip runs at a time; other requests
    queue on the lock.
    """

    def __init__(self, conf: Config, dabmux: DabMux):
        self.conf = conf
        self.dabmux = dabmux
        self.lock = asyncio.Lock()


app = FastAPI(title="odr-dabmux-gui")

_state: Optional[AppState] = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState(config_store.load(), DabMux())
    return _state


def _config_view(conf: Config) -> dict:
    """Config as stored plus the hex renderings shown in the UI."""
    out = conf.model_dump()
    out["ensemble_id_hex"] = conf.ensemble_id_hex()
    out["ensemble_ecc_hex"] = conf.ensemble_ecc_hex()
    for s_out, s in zip(out["services"], conf.services):
        s_out["sid_hex"] = s.sid_hex()
        s_out["ecc_hex"] = s.ecc_hex()
    return out


def _rc_http_error(e: RCError) -> HTTPException:
    if isinstance(e, RCTimeoutError):
        return HTTPException(status_code=504, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@app.get("/api/status", response_model=Status)
async def api_status(state: AppState = Depends(get_state)):
    async with state.lock:
        return Status(instance_name=state.conf.instance_name, services=len(state.conf.services))


@app.get("/api/config")
async def api_get_config(state: AppState = Depends(get_state)):
    async with state.lock:
        return _config_view(state.conf)


@app.post("/api/config")
async def api_set_config(conf: Config, write_dabmux: bool = False, state: AppState = Depends(get_state)):
    """Replace the ensemble config and persist it.

    With ?write_dabmux=true the odr-dabmux config file is regenerated as well.
    """
    dups = conf.duplicate_unique_ids()
    if dups:
        raise HTTPException(status_code=422, detail=f"Duplicate service unique_id: {', '.join(dups)}")

    async with state.lock:
        try:
            await run_in_threadpool(config_store.store, conf)
        except config_store.ConfigStoreError as e:
            logger.error("%s", e)
            raise HTTPException(status_code=500, detail=str(e))
        state.conf = conf

        if write_dabmux:
            try:
                await run_in_threadpool(write_dabmux_json, conf)
            except DabMuxConfigError as e:
                logger.error("%s", e)
                raise HTTPException(status_code=500, detail=str(e))

        return _config_view(state.conf)


@app.post("/api/dabmux/write")
async def api_write_dabmux(state: AppState = Depends(get_state)):
    async with state.lock:
        try:
            path = await run_in_threadpool(write_dabmux_json, state.conf)
        except DabMuxConfigError as e:
            logger.error("%s", e)
            raise HTTPException(status_code=500, detail=str(e))
        return {"path": path}


@app.get("/api/rc", response_model=List[Param])
async def api_rc_params(state: AppState = Depends(get_state)):
    async with state.lock:
        try:
            return await run_in_threadpool(state.dabmux.get_rc_parameters)
        except RCError as e:
            logger.warning("RC showjson failed: %s", e)
            raise _rc_http_error(e)


@app.get("/api/rc/modules", response_model=Dict[str, List[Param]])
async def api_rc_modules(state: AppState = Depends(get_state)):
    """Same parameters as /api/rc, grouped by module for display."""
    async with state.lock:
        try:
            params = await run_in_threadpool(state.dabmux.get_rc_parameters)
        except RCError as e:
            logger.warning("RC showjson failed: %s", e)
            raise _rc_http_error(e)
    return params_by_module(params)


@app.post("/api/rc")
async def api_rc_set(body: Param, state: AppState = Depends(get_state)):
    async with state.lock:
        try:
            result = await run_in_threadpool(
                state.dabmux.set_rc_parameter, body.module, body.param, body.value)
        except RCError as e:
            logger.warning("RC set %s.%s failed: %s", body.module, body.param, e)
            raise _rc_http_error(e)
        return {"result": result}


def main():
    import uvicorn

    logging.basicConfig(
        level=os.getenv(LOG_LEVEL_ENV, "DEBUG").upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    port = int(os.getenv(UI_PORT_ENV, "") or UI_PORT)
    get_state()
    logger.info("Setting up listener on port %d", port)
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
