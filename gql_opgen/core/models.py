"""Runtime base classes and helpers imported by generated bindings."""

from collections.abc import Mapping
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    model_serializer,
)

from .errors import MissingDiscriminator, UnknownVariant

TYPENAME = "__typename"


class _Unset:
    """Marker for an optional argument the caller did not pass."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class BindingModel(BaseModel):
    """Base class of generated response models.

    Attributes use snake_case names; the wire key is the alias.

    A variant model inherits the fields of its abstract shape first, so it
    lists its attributes in `selection_order` and dumps in that order.
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    selection_order: ClassVar[tuple[str, ...]] = ()

    @model_serializer(mode="wrap")
    def serialize_in_selection_order(
        self, handler: SerializerFunctionWrapHandler, info: SerializationInfo
    ) -> Any:
        data = handler(self)
        if not self.selection_order or not isinstance(data, dict):
            return data
        fields = type(self).model_fields
        keys = []
        for name in self.selection_order:
            alias = fields[name].alias if name in fields else None
            keys.append(alias if info.by_alias and alias else name)
        ordered = {key: data[key] for key in keys if key in data}
        ordered.update((key, value) for key, value in data.items() if key not in ordered)
        return ordered


class InputModel(BaseModel):
    """Base class of generated input and variables models.

    Optional fields the caller never set are left out of `serialize()`
    entirely, while fields explicitly set to None are sent as null.
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    @classmethod
    def build(cls, **values: Any):
        """Construct the model, skipping arguments left as UNSET."""
        return cls(**{k: v for k, v in values.items() if v is not UNSET})

    def serialize(self, mode: str = "json") -> dict[str, Any]:
        """Dump by wire key, leaving out unset fields at every level."""
        return self.model_dump(mode=mode, by_alias=True, exclude_unset=True)


def decode_variant(
    value: Any,
    variants: Mapping[str, type[BaseModel]],
    abstract_type: str,
) -> Any:
    """Decode a polymorphic wire value into the variant named by __typename.

    Lists are decoded element-wise and None is passed through. Values that
    are not objects are returned unchanged for pydantic to reject.

    Raises:
        MissingDiscriminator: If the object has no __typename
        UnknownVariant: If __typename is not one of `variants`
    """
    if value is None or isinstance(value, BaseModel):
        return value
    if isinstance(value, list):
        return [decode_variant(item, variants, abstract_type) for item in value]
    if not isinstance(value, Mapping):
        return value
    if TYPENAME not in value:
        raise MissingDiscriminator(abstract_type)
    typename = value[TYPENAME]
    model = variants.get(typename) if isinstance(typename, str) else None
    if model is None:
        raise UnknownVariant(abstract_type, typename, list(variants))
    return model.model_validate(value)
