from pydantic import BaseModel, ConfigDict


def _lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


class ApiModel(BaseModel):
    """Base for request/response bodies: PascalCase in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=_lower_first, populate_by_name=True)
