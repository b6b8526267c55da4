import logging
import os
from functools import lru_cache
from typing import Any, List, Optional, Union

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from errors import TimetableError
from models import BatchChange
from service import TimetableService
from settings import TimetableConfig
from sheets_store import SheetsStore, exchange_code, get_auth_url

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class SaveRequest(BaseModel):
    uid: str
    column_index: int = Field(alias="columnIndex")
    value: Any = None

    model_config = {"populate_by_name": True}


class SaveWithDateRequest(SaveRequest):
    period: Optional[str] = None
    week: Optional[Union[int, str]] = None


@lru_cache(maxsize=1)
def get_config() -> TimetableConfig:
    return TimetableConfig.from_env()


@lru_cache(maxsize=1)
def get_service() -> TimetableService:
    config = get_config()
    logger.info("Using spreadsheet %s, sheet %s", config.spreadsheet_id, config.sheet_name)
    return TimetableService(config, SheetsStore(config))


app = FastAPI(title="Timetable Sheet API")

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TimetableError)
async def timetable_error_handler(request: Request, exc: TimetableError):
    # Raised while building the service, e.g. missing SPREADSHEET_ID
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=200, content={"success": False, "error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logger.warning("%s %s rejected: %s", request.method, request.url.path, problems)
    return JSONResponse(status_code=200, content={"success": False, "error": f"Invalid request: {problems}"})


# Handle /api and also /api/
@app.get("/api")
@app.get("/api/")
def health_check():
    return {
        "status": "online",
        "spreadsheet_configured": bool(os.environ.get("SPREADSHEET_ID")),
    }


@app.get("/api/debug-config")
def debug_config(service: TimetableService = Depends(get_service)):
    return service.debug_config()


@app.get("/api/timetable")
def get_timetable_data(service: TimetableService = Depends(get_service)):
    return service.get_timetable_data()


@app.get("/api/modules")
def get_unique_modules(service: TimetableService = Depends(get_service)):
    return service.get_unique_modules()


@app.get("/api/periods")
def get_unique_periods(service: TimetableService = Depends(get_service)):
    return service.get_unique_periods()


@app.get("/api/module-data")
def get_module_data(module: str, period: str = "", service: TimetableService = Depends(get_service)):
    return service.get_module_data(module, period)


@app.get("/api/staff")
def get_staff_list(service: TimetableService = Depends(get_service)):
    return service.get_staff_list()


@app.get("/api/rooms")
def get_room_list(service: TimetableService = Depends(get_service)):
    return service.get_room_list()


@app.get("/api/academic-calendar")
def get_academic_calendar(service: TimetableService = Depends(get_service)):
    return service.get_academic_calendar()


@app.get("/api/calculate-date")
def calculate_date(period: str, week: str, day: str, service: TimetableService = Depends(get_service)):
    return service.calculate_date(period, week, day)


@app.post("/api/save")
def save_edited_data(req: SaveRequest, service: TimetableService = Depends(get_service)):
    return service.save_edited_data(req.uid, req.column_index, req.value)


@app.post("/api/save-with-date")
def save_edited_data_with_date(req: SaveWithDateRequest, service: TimetableService = Depends(get_service)):
    return service.save_edited_data_with_date(req.uid, req.column_index, req.value, req.period, req.week)


@app.post("/api/batch-update")
def batch_update_fields(changes: List[BatchChange], service: TimetableService = Depends(get_service)):
    return service.batch_update_fields(changes)


@app.get("/auth/url")
def auth_url(config: TimetableConfig = Depends(get_config)):
    if os.path.exists(config.token_file):
        return {"authenticated": True}
    try:
        return {"authenticated": False, "url": get_auth_url(config)}
    except TimetableError as e:
        logger.error("Auth URL Error: %s", e)
        return {"authenticated": False, "error": str(e), "url": None}


@app.get("/auth/callback")
def auth_callback(code: str, config: TimetableConfig = Depends(get_config)):
    try:
        exchange_code(config, code)
    except Exception as e:
        logger.exception("Auth Callback Error")
        raise HTTPException(status_code=500, detail=str(e))
    get_service.cache_clear()
    return {"message": "Authenticated successfully. You can close this window now."}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
