"""
Bolsa de propiedades tipada de un documento Notion.

El JSON crudo de `page.properties` se parsea a una unión etiquetada (una
dataclass por tipo). Los accesores `get_*` fallan cerrado: una propiedad
ausente o de otro tipo lanza ValidationError en vez de devolver un valor
por defecto.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from posts_sync.shared.exceptions import ValidationError


def _plain_text(items: Any) -> str:
    if not isinstance(items, list):
        return ""
    return "".join(str(i.get("plain_text") or "") for i in items if isinstance(i, dict))


@dataclass(frozen=True)
class TitleProperty:
    text: str
    type_tag: str = "title"


@dataclass(frozen=True)
class RichTextProperty:
    text: str
    type_tag: str = "rich_text"


@dataclass(frozen=True)
class SelectProperty:
    name: Optional[str]
    type_tag: str = "select"


@dataclass(frozen=True)
class MultiSelectProperty:
    names: Tuple[str, ...] = ()
    type_tag: str = "multi_select"


@dataclass(frozen=True)
class PeopleProperty:
    names: Tuple[str, ...] = ()
    type_tag: str = "people"


@dataclass(frozen=True)
class NumberProperty:
    value: Optional[float]
    type_tag: str = "number"


@dataclass(frozen=True)
class UrlProperty:
    url: Optional[str]
    type_tag: str = "url"


@dataclass(frozen=True)
class RelationProperty:
    ids: Tuple[str, ...] = ()
    type_tag: str = "relation"


@dataclass(frozen=True)
class UnsupportedProperty:
    type_tag: str
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


Property = Union[
    TitleProperty,
    RichTextProperty,
    SelectProperty,
    MultiSelectProperty,
    PeopleProperty,
    NumberProperty,
    UrlProperty,
    RelationProperty,
    UnsupportedProperty,
]

P = TypeVar("P")


def _shape_error(type_tag: str, name: Optional[str]) -> ValidationError:
    label = name or type_tag
    return ValidationError(f"Propiedad '{label}' con forma inválida para tipo {type_tag}", field=name)


def _object(raw: Mapping[str, Any], type_tag: str, name: Optional[str]) -> Mapping[str, Any]:
    value = raw.get(type_tag)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise _shape_error(type_tag, name)
    return value


def _objects(raw: Mapping[str, Any], type_tag: str, name: Optional[str]) -> List[Mapping[str, Any]]:
    value = raw.get(type_tag)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(i, Mapping) for i in value):
        raise _shape_error(type_tag, name)
    return value


def _values(items: List[Mapping[str, Any]], key: str) -> Tuple[str, ...]:
    return tuple(str(i[key]) for i in items if i.get(key))


def parse_property(raw: Mapping[str, Any], name: Optional[str] = None) -> Property:
    """
    Convierte un valor crudo de la API en su variante tipada.

    Raises:
        ValidationError: el valor no tiene la forma de su tipo declarado
    """
    type_tag = str(raw.get("type") or "")

    if type_tag in ("title", "rich_text"):
        text = _plain_text(_objects(raw, type_tag, name))
        return TitleProperty(text=text) if type_tag == "title" else RichTextProperty(text=text)
    if type_tag == "select":
        return SelectProperty(name=_object(raw, type_tag, name).get("name") or None)
    if type_tag == "multi_select":
        return MultiSelectProperty(names=_values(_objects(raw, type_tag, name), "name"))
    if type_tag == "people":
        return PeopleProperty(names=_values(_objects(raw, type_tag, name), "name"))
    if type_tag == "number":
        value = raw.get("number")
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise _shape_error(type_tag, name)
        return NumberProperty(value=value)
    if type_tag == "url":
        url = raw.get("url")
        if url is not None and not isinstance(url, str):
            raise _shape_error(type_tag, name)
        return UrlProperty(url=url or None)
    if type_tag == "relation":
        return RelationProperty(ids=_values(_objects(raw, type_tag, name), "id"))

    return UnsupportedProperty(type_tag=type_tag or "unknown", raw=dict(raw))


class PropertyBag:
    """Propiedades de un documento indexadas por nombre."""

    def __init__(self, properties: Mapping[str, Property]) -> None:
        self._properties = dict(properties)

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> "PropertyBag":
        """
        Raises:
            ValidationError: `properties` no es un objeto o alguna propiedad
                tiene una forma que no corresponde a su tipo
        """
        if raw is None:
            return cls({})
        if not isinstance(raw, Mapping):
            raise ValidationError("El campo 'properties' no es un objeto", field="properties")
        parsed: Dict[str, Property] = {}
        for name, value in raw.items():
            if isinstance(value, Mapping):
                parsed[name] = parse_property(value, name=name)
        return cls(parsed)

    def __contains__(self, name: str) -> bool:
        return name in self._properties

    def names(self) -> List[str]:
        return list(self._properties)

    def get(self, name: str) -> Optional[Property]:
        return self._properties.get(name)

    def _require(self, name: str, kind: Type[P]) -> P:
        prop = self._properties.get(name)
        if prop is None:
            raise ValidationError(f"Propiedad '{name}' ausente", field=name)
        if not isinstance(prop, kind):
            expected = kind.__name__.replace("Property", "")
            raise ValidationError(
                f"Propiedad '{name}' tiene tipo '{prop.type_tag}', se esperaba {expected}",
                field=name,
            )
        return prop

    # ---- accesores estrictos ----

    def get_title(self, name: str) -> str:
        text = self._require(name, TitleProperty).text.strip()
        if not text:
            raise ValidationError(f"Propiedad '{name}' (title) vacía", field=name)
        return text

    def get_rich_text(self, name: str, *, optional: bool = False) -> Optional[str]:
        """
        Texto de una propiedad rich_text, o None si está vacía.

        Con `optional=True` una propiedad ausente devuelve None; un tipo
        incorrecto sigue siendo error.
        """
        if optional and name not in self._properties:
            return None
        text = self._require(name, RichTextProperty).text.strip()
        return text or None

    def get_select(self, name: str) -> str:
        value = self._require(name, SelectProperty).name
        if not value:
            raise ValidationError(f"Propiedad '{name}' (select) sin valor", field=name)
        return value

    def get_multi_select(self, name: str) -> List[str]:
        return list(self._require(name, MultiSelectProperty).names)

    def get_people(self, name: str) -> str:
        """Nombre de la primera persona asignada."""
        names = self._require(name, PeopleProperty).names
        if not names:
            raise ValidationError(f"Propiedad '{name}' (people) sin personas", field=name)
        return names[0]

    def get_number(self, name: str) -> Optional[float]:
        return self._require(name, NumberProperty).value

    def get_url(self, name: str) -> Optional[str]:
        return self._require(name, UrlProperty).url

    def get_relation(self, name: str) -> List[str]:
        return list(self._require(name, RelationProperty).ids)

    # ---- consultas tolerantes (para el filtro de validez) ----

    def has_text(self, name: str) -> bool:
        """True si la propiedad es title/rich_text con texto no vacío."""
        prop = self._properties.get(name)
        if isinstance(prop, (TitleProperty, RichTextProperty)):
            return bool(prop.text.strip())
        return False

    def relation_count(self, name: str) -> int:
        prop = self._properties.get(name)
        if isinstance(prop, RelationProperty):
            return len(prop.ids)
        return 0
