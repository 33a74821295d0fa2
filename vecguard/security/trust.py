"""Input trust classification and promotion across trust boundaries.

Every value entering the agent is tagged with where it came from.
Only direct user commands are trusted by provenance; file content,
network responses and environment variables are not. The sole way to
turn external data into a ``TrustedInput`` is ``sanitize_and_trust``,
which validates it against a Pydantic schema first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Generic, TypeVar, Union

import structlog
from pydantic import AfterValidator, BaseModel, Field, StringConstraints, TypeAdapter, ValidationError

from vecguard.errors import TrustViolation, ValidationFailure

logger = structlog.get_logger()

T = TypeVar("T")


class InputSource(str, Enum):
    """Where a piece of input came from."""

    USER_COMMAND = "user_command"
    FILE_CONTENT = "file_content"
    NETWORK = "network"
    ENVIRONMENT = "environment"


# USER_COMMAND is direct CLI input from the operator; everything else may
# carry injected content.
TRUST_MAP: dict[InputSource, bool] = {
    InputSource.USER_COMMAND: True,
    InputSource.FILE_CONTENT: False,
    InputSource.NETWORK: False,
    InputSource.ENVIRONMENT: False,
}


def _no_null_bytes(path: str) -> str:
    if "\0" in path:
        raise ValueError("Null bytes not allowed in paths")
    return path


USER_COMMAND_SCHEMA: TypeAdapter[str] = TypeAdapter(
    Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=10_000)]
)
FILE_PATH_SCHEMA: TypeAdapter[str] = TypeAdapter(
    Annotated[str, StringConstraints(min_length=1, max_length=4096), AfterValidator(_no_null_bytes)]
)
FILE_CONTENT_SCHEMA: TypeAdapter[str] = TypeAdapter(
    Annotated[str, StringConstraints(max_length=10_000_000)]
)
ENVIRONMENT_VAR_SCHEMA: TypeAdapter[str] = TypeAdapter(
    Annotated[str, StringConstraints(max_length=32_768)]
)


class NetworkResponse(BaseModel):
    """A network API response at the trust boundary."""

    status: int
    body: str = Field(max_length=10_000_000)


NETWORK_RESPONSE_SCHEMA: TypeAdapter[NetworkResponse] = TypeAdapter(NetworkResponse)

Schema = Union[TypeAdapter[Any], type[BaseModel]]


@dataclass(frozen=True)
class ClassifiedInput:
    """A value tagged with its provenance.

    ``trusted`` is derived from ``source`` and cannot be set per instance.
    """

    value: Any
    source: InputSource

    @property
    def trusted(self) -> bool:
        return TRUST_MAP[self.source]


_MINT = object()


class TrustedInput(Generic[T]):
    """A value that has crossed a trust boundary.

    Instances are minted only by ``promote_to_trusted`` and
    ``sanitize_and_trust``; direct construction raises TypeError.
    """

    __slots__ = ("_value", "_source")

    def __init__(self, value: T, source: InputSource, *, _token: object = None) -> None:
        if _token is not _MINT:
            raise TypeError("TrustedInput can only be created by the trust classifier")
        self._value = value
        self._source = source

    @property
    def value(self) -> T:
        return self._value

    @property
    def source(self) -> InputSource:
        """Original provenance of the value before it was validated."""
        return self._source

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrustedInput):
            return NotImplemented
        return self._value == other._value and self._source == other._source

    def __hash__(self) -> int:
        return hash((TrustedInput, self._source, repr(self._value)))

    def __repr__(self) -> str:
        return f"TrustedInput(source={self._source.value!r}, value={self._value!r})"


@dataclass(frozen=True)
class SanitizeResult(Generic[T]):
    """Outcome of ``safe_sanitize``: either ``data`` or ``error`` is set."""

    success: bool
    data: T | None = None
    error: ValidationFailure | None = None


def classify_input(value: Any, source: InputSource | str) -> ClassifiedInput:
    """Tag a value with its source. Never fails for a known source."""
    classified = ClassifiedInput(value=value, source=InputSource(source))
    logger.debug(
        "input_classified",
        source=classified.source.value,
        trusted=classified.trusted,
        length=len(value) if isinstance(value, (str, bytes)) else None,
    )
    return classified


def is_trusted(classified: ClassifiedInput) -> bool:
    return classified.trusted


def _adapter(schema: Schema) -> TypeAdapter[Any]:
    if isinstance(schema, TypeAdapter):
        return schema
    return TypeAdapter(schema)


def sanitize(value: Any, schema: Schema) -> Any:
    """Validate a value against a schema and return the validated value.

    Raises:
        ValidationFailure: If the schema rejects the value.
    """
    try:
        result = _adapter(schema).validate_python(value)
    except ValidationError as e:
        logger.warning("input_validation_failed", errors=e.error_count())
        raise ValidationFailure(f"Input failed validation: {e}", e.errors()) from e
    logger.debug("input_validated")
    return result


def safe_sanitize(value: Any, schema: Schema) -> SanitizeResult[Any]:
    """Like ``sanitize`` but returns a result instead of raising."""
    try:
        return SanitizeResult(success=True, data=sanitize(value, schema))
    except ValidationFailure as e:
        return SanitizeResult(success=False, error=e)


def promote_to_trusted(classified: ClassifiedInput, schema: Schema) -> TrustedInput[Any]:
    """Promote trusted-provenance input to a validated TrustedInput.

    Raises:
        TrustViolation: If the input's source is not trusted.
        ValidationFailure: If the schema rejects the value.
    """
    if not classified.trusted:
        logger.error("untrusted_input_promotion", source=classified.source.value)
        raise TrustViolation(classified.source.value)
    return TrustedInput(sanitize(classified.value, schema), classified.source, _token=_MINT)


def sanitize_and_trust(value: Any, source: InputSource | str, schema: Schema) -> TrustedInput[Any]:
    """Validate external input and mark it trusted.

    This is the only sanctioned path from raw external data to a
    trusted value: classify, validate, relabel.

    Raises:
        ValidationFailure: If the schema rejects the value.
    """
    classified = classify_input(value, source)
    validated = sanitize(classified.value, schema)
    logger.info(
        "input_promoted_to_trusted",
        source=classified.source.value,
        length=len(validated) if isinstance(validated, str) else None,
    )
    return TrustedInput(validated, classified.source, _token=_MINT)


def sanitize_user_command(command: str) -> TrustedInput[str]:
    return sanitize_and_trust(command, InputSource.USER_COMMAND, USER_COMMAND_SCHEMA)


def sanitize_file_content(content: str) -> TrustedInput[str]:
    return sanitize_and_trust(content, InputSource.FILE_CONTENT, FILE_CONTENT_SCHEMA)


def sanitize_file_path(path: str) -> TrustedInput[str]:
    """Validate a file path. Relative components are logged, not rejected."""
    if ".." in path or "./" in path:
        logger.warning("file_path_relative_components", path=path)
    return sanitize_and_trust(path, InputSource.FILE_CONTENT, FILE_PATH_SCHEMA)


def sanitize_environment_var(value: str) -> TrustedInput[str]:
    return sanitize_and_trust(value, InputSource.ENVIRONMENT, ENVIRONMENT_VAR_SCHEMA)


def sanitize_network_response(raw: str | bytes) -> TrustedInput[NetworkResponse]:
    """Parse and validate a JSON network response body.

    Raises:
        ValidationFailure: If the JSON is malformed or does not match.
    """
    classified = classify_input(raw, InputSource.NETWORK)
    try:
        validated = NETWORK_RESPONSE_SCHEMA.validate_json(classified.value)
    except ValidationError as e:
        logger.warning("input_validation_failed", source=classified.source.value, errors=e.error_count())
        raise ValidationFailure(f"Network response failed validation: {e}", e.errors()) from e
    logger.info("input_promoted_to_trusted", source=classified.source.value)
    return TrustedInput(validated, classified.source, _token=_MINT)
