"""Card parameters merged with runtime parameter values."""

from __future__ import annotations

from typing import Any

# template tag type -> parameter type
_TAG_PARAMETER_TYPES = {
    "date": "date/single",
    "number": "category",
    "text": "category",
}


def get_template_tag_parameters(tags: dict) -> list[dict[str, Any]]:
    """Parameters implied by native query template tags.

    Dimension tags need a configured widget type to become a parameter;
    variable tags map by their value type.
    """
    parameters = []
    for tag in tags.values():
        tag_type = tag.get("type")
        if tag_type == "dimension":
            if not tag.get("widget_type"):
                continue
            parameter_type = tag["widget_type"]
            target = ["dimension", ["template-tag", tag.get("name")]]
        elif tag_type in _TAG_PARAMETER_TYPES:
            parameter_type = _TAG_PARAMETER_TYPES[tag_type]
            target = ["variable", ["template-tag", tag.get("name")]]
        else:
            continue
        parameters.append(
            {
                "id": tag.get("id"),
                "type": parameter_type,
                "target": target,
                "name": tag.get("display_name") or tag.get("name"),
                "slug": tag.get("name"),
                "default": tag.get("default"),
            }
        )
    return parameters


def get_parameters(card: dict) -> list[dict[str, Any]]:
    """The card's parameters, or those of its native query's template tags."""
    if card.get("parameters"):
        return [dict(p) for p in card["parameters"]]

    dataset_query = card.get("dataset_query") or {}
    native = dataset_query.get("native") or {}
    tags = native.get("template_tags") or native.get("template-tags") or {}
    return get_template_tag_parameters(tags)


def get_parameters_with_extras(
    card: dict,
    parameter_values: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Parameters of ``card`` with ``value`` filled in from runtime values.

    Parameters without a runtime value carry no ``value`` key.
    """
    parameter_values = parameter_values or {}
    parameters = []
    for parameter in get_parameters(card):
        if parameter.get("id") in parameter_values:
            parameter = {**parameter, "value": parameter_values[parameter["id"]]}
        parameters.append(parameter)
    return parameters
