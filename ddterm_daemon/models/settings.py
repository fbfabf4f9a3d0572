"""Persisted window settings model.

Mirrors the GSettings schema of the ddterm extension: one size ratio, the
maximize flag, the attached edge and the toggle hotkey.
"""

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .geometry import WindowPosition


class WindowSettings(BaseModel):
    """Settings stored in settings.json (keys use the GSettings names)."""

    window_size: float = Field(
        0.6,
        gt=0.0,
        le=1.0,
        alias="window-size",
        validation_alias=AliasChoices("window-size", "window-height", "window_size"),
        description="Window size as a fraction of the work area on the edge's axis",
    )

    window_maximize: bool = Field(
        False,
        alias="window-maximize",
        validation_alias=AliasChoices("window-maximize", "window_maximize"),
    )

    window_position: WindowPosition = Field(
        WindowPosition.TOP,
        alias="window-position",
        validation_alias=AliasChoices("window-position", "window_position"),
    )

    toggle_hotkey: str = Field(
        "F12",
        alias="ddterm-toggle-hotkey",
        validation_alias=AliasChoices("ddterm-toggle-hotkey", "toggle_hotkey"),
        description="Sway key combination bound to toggle",
    )

    model_config = {"populate_by_name": True, "validate_assignment": True}

    @field_validator("window_position", mode="before")
    @classmethod
    def parse_position(cls, v):
        """Accept positions in any case."""
        if isinstance(v, str):
            return WindowPosition.from_str(v)
        return v

    @field_validator("toggle_hotkey")
    @classmethod
    def validate_hotkey(cls, v: str) -> str:
        """Reject empty or malformed key combos (e.g. 'Mod4+', 'Mod4++F12')."""
        if not v or v.endswith("+") or "++" in v:
            raise ValueError(f"Invalid key combination '{v}'")
        return v

    @classmethod
    def key_to_field(cls) -> dict:
        """Map every accepted settings key to its field name."""
        mapping = {}
        for name, field in cls.model_fields.items():
            mapping[field.alias] = name
            if isinstance(field.validation_alias, AliasChoices):
                for choice in field.validation_alias.choices:
                    mapping[choice] = name
        return mapping

    def to_dict(self) -> dict:
        """Convert to dictionary keyed by settings names for JSON serialization."""
        return self.model_dump(mode="json", by_alias=True)
