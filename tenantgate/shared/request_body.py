from typing import Any, Callable, Coroutine, Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_body(
    model: Type[ModelT],
) -> Callable[[Request], Coroutine[Any, Any, ModelT]]:
    """
    Dependency factory that validates the JSON body against ``model``.

    Declared after the authorization dependencies of a route so that the
    body is only decoded once the caller has been authorized.

    Raises:
        RequestValidationError: If the body is not JSON or fails validation
    """

    async def read_body(request: Request) -> ModelT:
        try:
            payload = await request.json()
        except ValueError as e:
            raise RequestValidationError(
                [
                    {
                        "type": "json_invalid",
                        "loc": ("body",),
                        "msg": "JSON decode error",
                        "input": {},
                        "ctx": {"error": str(e)},
                    }
                ]
            )

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise RequestValidationError(
                [
                    {**error, "loc": ("body", *error["loc"])}
                    for error in e.errors(include_url=False)
                ],
                body=payload,
            )

    return read_body
