# Parameter validation against the tool's JSON Schema
import copy
import json
from typing import Any, Dict, Iterable, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError, best_match

from agentloop.domain.errors import SchemaValidationError
from .schema import ArrayParameter, IntegerParameter, ObjectParameter


class ToolParameterValidator:
    @staticmethod
    def validate_tool_call(parameters: ObjectParameter, arguments: Union[Dict[str, Any], str, None]) -> Dict[str, Any]:
        """Return validated arguments with defaults applied.

        Raises:
            SchemaValidationError: naming the first offending field
        """

        if arguments is None:
            arguments = {}
        elif isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                raise SchemaValidationError("", f"arguments are not valid JSON ({e.msg})") from e

        if not isinstance(arguments, dict):
            raise SchemaValidationError("", f"expected an object, got {type(arguments).__name__}")

        arguments = _drop_nulls(parameters, arguments)
        validator = Draft202012Validator(parameters.to_json_schema())
        error = best_match(validator.iter_errors(arguments))
        if error is not None:
            raise SchemaValidationError(_error_field(error), error.message)

        return _finalize(parameters, arguments)


def _format_path(path: Iterable[Union[str, int]]) -> str:
    text = ""
    for part in path:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text = f"{text}.{part}" if text else str(part)
    return text


def _error_field(error: ValidationError) -> str:
    path = list(error.absolute_path)

    # Object-level errors point at the object; name the offending key instead
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [name for name in error.validator_value if name not in error.instance]
        path += missing[:1]
    elif error.validator == "additionalProperties" and isinstance(error.instance, dict):
        declared = error.schema.get("properties", {})
        path += [name for name in error.instance if name not in declared][:1]

    return _format_path(path)


def _drop_nulls(schema, value: Any) -> Any:
    # Providers often send null for omitted optional fields
    if isinstance(schema, ObjectParameter) and isinstance(value, dict):
        return {
            name: _drop_nulls(schema.properties.get(name), item)
            for name, item in value.items()
            if not (item is None and name in schema.properties)
        }
    if isinstance(schema, ArrayParameter) and isinstance(value, list):
        return [_drop_nulls(schema.items, item) for item in value]
    return value


def _finalize(schema, value: Any) -> Any:
    """Apply defaults and narrow integral floats on already valid arguments"""

    if isinstance(schema, ObjectParameter):
        result: Dict[str, Any] = {}
        for name, prop in schema.properties.items():
            if name in value:
                result[name] = _finalize(prop, value[name])
            elif prop.has_default:
                result[name] = copy.deepcopy(prop.default)
        for name in value:
            if name not in schema.properties:
                result[name] = value[name]
        return result
    if isinstance(schema, ArrayParameter):
        return [_finalize(schema.items, item) for item in value]
    if isinstance(schema, IntegerParameter) and isinstance(value, float):
        return int(value)
    return value
