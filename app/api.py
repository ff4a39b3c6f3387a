"""FastAPI surface over the compliance database.

Each route is a thin call into the employee, shift, seven-day and export
operations; failures from those layers are mapped to HTTP status codes by
a single exception handler.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

# Ensure absolute module imports (e.g., "import database") resolve.
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from backup import DEFAULT_BACKUP_FILENAME, backup_database  # noqa: E402
from compliance import get_seven_day_detail, get_seven_day_summary  # noqa: E402
from config import APP_NAME, APP_VERSION, DATABASE_PATH, app_info  # noqa: E402
from database import ComplianceDatabase, accept_terms, get_settings  # noqa: E402
from employees import (  # noqa: E402
    create_employee,
    delete_employee,
    employee_shift_count,
    list_employees,
    update_employee,
)
from errors import ComplianceError, ConflictError, NotFoundError, StorageError, ValidationError  # noqa: E402
from exporter import (  # noqa: E402
    export_seven_day_csv,
    export_shifts_csv,
    seven_day_export_filename,
    shifts_export_filename,
)
from shifts import create_shift, delete_shift, list_shifts_by_month, update_shift  # noqa: E402


logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StorageError: 500,
}

_database: Optional[ComplianceDatabase] = None


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _database
    _database = ComplianceDatabase.initialize(DATABASE_PATH)
    yield
    _database.dispose()
    _database = None


app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)


def get_database() -> ComplianceDatabase:
    if _database is None:
        raise StorageError("データベースが初期化されていません。")
    return _database


@app.exception_handler(ComplianceError)
async def compliance_error_handler(_: Request, exc: ComplianceError) -> JSONResponse:
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("Request failed: %s", exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


def _employee_form(payload: Dict[str, Any]) -> tuple:
    return payload.get("name"), payload.get("notes")


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/info")
def info() -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(app_info()))


@app.get("/api/v1/employees")
def employees_list(db=Depends(get_database)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(list_employees(db)))


@app.post("/api/v1/employees", status_code=201)
def employees_create(payload: Dict[str, Any], db=Depends(get_database)) -> JSONResponse:
    name, notes = _employee_form(payload)
    employee = create_employee(db, name, notes)
    return JSONResponse(status_code=201, content=jsonable_encoder(employee))


@app.put("/api/v1/employees/{employee_id}")
def employees_update(employee_id: int, payload: Dict[str, Any], db=Depends(get_database)) -> JSONResponse:
    name, notes = _employee_form(payload)
    employee = update_employee(db, employee_id, name, notes)
    return JSONResponse(content=jsonable_encoder(employee))


@app.delete("/api/v1/employees/{employee_id}")
def employees_delete(employee_id: int, db=Depends(get_database)) -> JSONResponse:
    deleted_shifts = delete_employee(db, employee_id)
    return JSONResponse(content={"deleted_shifts": deleted_shifts})


@app.get("/api/v1/employees/{employee_id}/shift-count")
def employees_shift_count(employee_id: int, db=Depends(get_database)) -> JSONResponse:
    return JSONResponse(content={"count": employee_shift_count(db, employee_id)})


@app.get("/api/v1/shifts")
def shifts_list(
    year: int = Query(...),
    month: int = Query(...),
    db=Depends(get_database),
) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(list_shifts_by_month(db, year, month)))


@app.post("/api/v1/shifts", status_code=201)
def shifts_create(payload: Dict[str, Any], db=Depends(get_database)) -> JSONResponse:
    shift = create_shift(db, payload)
    return JSONResponse(status_code=201, content=jsonable_encoder(shift))


@app.put("/api/v1/shifts/{shift_id}")
def shifts_update(shift_id: int, payload: Dict[str, Any], db=Depends(get_database)) -> JSONResponse:
    shift = update_shift(db, shift_id, payload)
    return JSONResponse(content=jsonable_encoder(shift))


@app.delete("/api/v1/shifts/{shift_id}", status_code=204)
def shifts_delete(shift_id: int, db=Depends(get_database)) -> Response:
    delete_shift(db, shift_id)
    return Response(status_code=204)


@app.get("/api/v1/seven-day/{reference_date}/summary")
def seven_day_summary(reference_date: str, db=Depends(get_database)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(get_seven_day_summary(db, reference_date)))


@app.get("/api/v1/seven-day/{reference_date}/employees/{employee_id}")
def seven_day_detail(reference_date: str, employee_id: int, db=Depends(get_database)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(get_seven_day_detail(db, employee_id, reference_date)))


@app.get("/api/v1/exports/shifts")
def exports_shifts(
    year: int = Query(...),
    month: int = Query(...),
    db=Depends(get_database),
) -> Response:
    body = export_shifts_csv(db, year, month)
    return _csv_response(body, shifts_export_filename(year, month))


@app.get("/api/v1/exports/seven-day/{reference_date}")
def exports_seven_day(reference_date: str, db=Depends(get_database)) -> Response:
    body = export_seven_day_csv(db, reference_date)
    return _csv_response(body, seven_day_export_filename(reference_date))


@app.get("/api/v1/backup")
def backup_download(db=Depends(get_database)) -> Response:
    with tempfile.TemporaryDirectory() as tmp_dir:
        written = backup_database(db, Path(tmp_dir) / DEFAULT_BACKUP_FILENAME)
        content = written.read_bytes()
    return Response(
        content=content,
        media_type="application/vnd.sqlite3",
        headers={"Content-Disposition": f"attachment; filename={DEFAULT_BACKUP_FILENAME}"},
    )


@app.get("/api/v1/settings")
def settings_get(db=Depends(get_database)) -> JSONResponse:
    return JSONResponse(content=jsonable_encoder(get_settings(db)))


@app.post("/api/v1/settings/accept-terms", status_code=204)
def settings_accept_terms(db=Depends(get_database)) -> Response:
    accept_terms(db)
    return Response(status_code=204)
