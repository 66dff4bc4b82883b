from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PORT = 8080
WRAPPER_MARKER = "%s"


class ModificationMode(Enum):
    APPEND = "append"
    REPLACE = "replace"


class Modification(BaseModel):
    """
    One rewrite rule.

    The source element is ``selector`` match number ``index``. Its value is the
    ``attribute`` when set, else its first text child. The value is optionally
    trimmed and wrapped, then appended to (``appendTo``) or used to replace
    (``replace``) the destination elements.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url_match: str = Field(default="", alias="urlMatch")
    selector: str = ""
    index: int = 0
    attribute: str = ""
    wrapper: str = ""
    append_to: str = Field(default="", alias="appendTo")
    replace: str = ""
    trim: bool = False

    @field_validator(
        "url_match", "selector", "attribute", "wrapper", "append_to", "replace",
        mode="before",
    )
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value

    @property
    def mode(self) -> Optional[ModificationMode]:
        # appendTo wins when both are set
        if self.append_to:
            return ModificationMode.APPEND
        if self.replace:
            return ModificationMode.REPLACE
        return None

    @property
    def destination(self) -> str:
        if self.mode is ModificationMode.APPEND:
            return self.append_to
        if self.mode is ModificationMode.REPLACE:
            return self.replace
        return ""


class Config(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    port: int = DEFAULT_PORT
    ssl_rewrite: Tuple[str, ...] = Field(default=(), alias="sslRewrite")
    modifications: Tuple[Modification, ...] = ()

    @field_validator("ssl_rewrite", "modifications", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return () if value is None else value
