from typing import Dict, Any, List, Optional, Literal, Union, Annotated
from pydantic import BaseModel, Field, TypeAdapter, model_validator


class _Parameter(BaseModel):
    """Fields shared by every parameter shape"""
    description: Optional[str] = None
    default: Any = None
    enum: Optional[List[Any]] = None

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    def _base_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.has_default:
            schema["default"] = self.default
        return schema

    def to_json_schema(self) -> Dict[str, Any]:
        return self._base_json_schema()


class StringParameter(_Parameter):
    type: Literal["string"] = "string"


class NumberParameter(_Parameter):
    type: Literal["number"] = "number"


class IntegerParameter(_Parameter):
    type: Literal["integer"] = "integer"


class BooleanParameter(_Parameter):
    type: Literal["boolean"] = "boolean"


class ArrayParameter(_Parameter):
    type: Literal["array"] = "array"
    items: "ParameterSchema"

    def to_json_schema(self) -> Dict[str, Any]:
        schema = self._base_json_schema()
        schema["items"] = self.items.to_json_schema()
        return schema


class ObjectParameter(_Parameter):
    type: Literal["object"] = "object"
    properties: Dict[str, "ParameterSchema"] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)
    additional_properties: bool = False

    @model_validator(mode="after")
    def _required_fields_are_declared(self) -> "ObjectParameter":
        missing = [name for name in self.required if name not in self.properties]
        if missing:
            raise ValueError(f"required fields not declared in properties: {missing}")
        return self

    def to_json_schema(self) -> Dict[str, Any]:
        schema = self._base_json_schema()
        schema["properties"] = {
            name: prop.to_json_schema() for name, prop in self.properties.items()
        }
        if self.required:
            schema["required"] = list(self.required)
        schema["additionalProperties"] = self.additional_properties
        return schema


ParameterSchema = Annotated[
    Union[
        StringParameter,
        NumberParameter,
        IntegerParameter,
        BooleanParameter,
        ArrayParameter,
        ObjectParameter,
    ],
    Field(discriminator="type"),
]

ArrayParameter.model_rebuild()
ObjectParameter.model_rebuild()

_parameter_adapter = TypeAdapter(ParameterSchema)


def parse_parameter(spec: Dict[str, Any]) -> ParameterSchema:
    """Parse one parameter declaration, accepting JSON Schema spelling"""

    spec = dict(spec)
    # Compact field maps mark each field with a boolean "required" flag
    if isinstance(spec.get("required"), bool):
        del spec["required"]

    kind = spec.get("type")
    if kind == "array" and isinstance(spec.get("items"), dict):
        spec["items"] = parse_parameter(spec["items"])
    elif kind == "object":
        if "additionalProperties" in spec:
            spec["additional_properties"] = spec.pop("additionalProperties")
        properties = spec.get("properties", {})
        if "required" not in spec and any(
            isinstance(prop.get("required"), bool) for prop in properties.values()
        ):
            nested = parameters_from_dict(
                properties,
                additional_properties=spec.get("additional_properties", False),
            )
            return nested.model_copy(update={"description": spec.get("description")})
        spec["properties"] = {name: parse_parameter(prop) for name, prop in properties.items()}
    return _parameter_adapter.validate_python(spec)


def parameters_from_dict(fields: Dict[str, Dict[str, Any]], additional_properties: bool = False) -> ObjectParameter:
    """Build an object schema from a compact field map.

    Each field is declared as ``{"type": ..., "required": True}`` or with a
    ``default``; fields without ``required`` are optional::

        parameters_from_dict({
            "query": {"type": "string", "required": True},
            "limit": {"type": "integer", "default": 10},
        })
    """

    properties = {}
    required = []
    for name, field_spec in fields.items():
        if field_spec.get("required") is True:
            required.append(name)
        properties[name] = parse_parameter(field_spec)

    return ObjectParameter(
        properties=properties,
        required=required,
        additional_properties=additional_properties,
    )
