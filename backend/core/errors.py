"""Domain errors raised by the schedule services and their HTTP rendering."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

VALIDATION_FAILED = 'Validation failed.'


class ScheduleError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    message = 'Schedule request failed.'

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ScheduleValidationError(ScheduleError):
    """Field-keyed validation failure; nothing has been written."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = VALIDATION_FAILED

    def __init__(self, errors: dict[str, list[str]], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors


class TeacherNotFoundError(ScheduleError):
    status_code = status.HTTP_404_NOT_FOUND
    message = 'Teacher not found.'


class ScheduleUpdateError(ScheduleError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = 'Schedule could not be saved.'


def field_key(location: tuple | list) -> str:
    """('body', 'available_slots', 0, 'weekday') -> 'available_slots[0].weekday'."""
    key = ''
    for part in location:
        if part in ('body', 'query', 'path'):
            continue
        if isinstance(part, int):
            key += f'[{part}]'
        elif key:
            key += f'.{part}'
        else:
            key = str(part)
    return key or 'request'


async def schedule_error_handler(request: Request, exc: ScheduleError) -> JSONResponse:
    content = {'status': 'error', 'message': exc.message}
    if isinstance(exc, ScheduleValidationError):
        content['errors'] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        errors.setdefault(field_key(error.get('loc', ())), []).append(error.get('msg', 'Invalid value.'))
    logger.debug('Rejected %s %s: %s', request.method, request.url.path, errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'status': 'error', 'message': VALIDATION_FAILED, 'errors': errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ScheduleError, schedule_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
