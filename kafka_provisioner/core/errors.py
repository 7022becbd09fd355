from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kafka_provisioner.core.exceptions import ProblemDetail, ProblemDetailException
from kafka_provisioner.core.security import TokenValidationError

PROBLEM_JSON = "application/problem+json"


def _problem(status: int, title: str, detail: str) -> JSONResponse:
    body = ProblemDetail(status=status, title=title, detail=detail)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"), media_type=PROBLEM_JSON)


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProblemDetailException)
    async def problem_handler(_: Request, exc: ProblemDetailException):
        return JSONResponse(
            status_code=exc.problem.status,
            content=exc.problem.model_dump(mode="json"),
            media_type=PROBLEM_JSON,
        )

    @app.exception_handler(TokenValidationError)
    async def token_error_handler(_: Request, exc: TokenValidationError):
        return _problem(401, "Unauthorized", str(exc))

    # Catch-all
    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        return _problem(500, "Internal Server Error", str(exc))
