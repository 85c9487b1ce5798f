"""Config module to share a configuration across all modules in sheetsdb."""

import logging
import re
import sys
from pathlib import Path

from pydantic import BaseModel, field_validator, model_validator
from typing_extensions import Self

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_DATETIME_FORMAT = "%m/%d/%Y %H:%M:%S"

# === Configuration imported from sheetsdb.toml stored as pydantic model ===


class ValueSettings(BaseModel):
    """How raw cell strings are converted to typed values and back."""

    strip: bool = True
    datetime_format: str = DEFAULT_DATETIME_FORMAT
    # Reading tolerates whitespace after the delimiter, writing emits a bare one.
    read_separator: str = r",\s*"
    write_separator: str = ","
    truthy_values: list[str] = ["y", "yes", "true", "1"]
    falsy_values: list[str] = ["n", "no", "false", "0"]
    strict_numbers: bool = False

    @field_validator("read_separator")
    @classmethod
    def check_read_separator(cls, value):
        if not value:
            msg = "read_separator must not be empty."
            raise ValueError(msg)
        try:
            re.compile(value)
        except re.error as exc:
            msg = f"read_separator is not a valid regular expression: {exc}"
            raise ValueError(msg) from exc
        return value

    @field_validator("write_separator")
    @classmethod
    def check_write_separator(cls, value):
        if not value:
            msg = "write_separator must not be empty."
            raise ValueError(msg)
        return value

    @field_validator("truthy_values", "falsy_values")
    @classmethod
    def lower_case_tokens(cls, value):
        return [token.strip().lower() for token in value]

    @model_validator(mode="after")
    def check_boolean_tokens_disjoint(self) -> Self:
        both = sorted(set(self.truthy_values) & set(self.falsy_values))
        if both:
            msg = f"Tokens cannot be both truthy and falsy: {', '.join(both)}"
            raise ValueError(msg)
        if not re.search(self.read_separator, self.write_separator):
            msg = (
                f'write_separator "{self.write_separator}" is not matched by '
                f'read_separator "{self.read_separator}".'
            )
            raise ValueError(msg)
        return self


class SheetsDBConfig(BaseModel):
    config_version: str = ""
    values: ValueSettings = ValueSettings()
    default_config: bool = False


# This parameter will be updated/set by load_config.
SETTINGS = SheetsDBConfig(default_config=True)


def load_config(
    config_file: Path | None = None, config: SheetsDBConfig | None = None
) -> SheetsDBConfig:
    global SETTINGS  # noqa: PLW0603

    if config_file is not None and not config_file.exists():
        logger.warning('Configuration file "%s" not found.', config_file)
    if (True if config_file is None else not config_file.exists()) and config is None:
        new_settings = SheetsDBConfig(default_config=True)
        logger.debug("Initializing default config.")
    elif config_file and config is None:
        with config_file.open(mode="rb") as fp:
            conf = tomllib.load(fp)
        logger.debug("Config loaded from: %s", config_file)
        new_settings = SheetsDBConfig(**conf)
    else:
        # pydantic does not re-validate on attribute change, so round-trip it.
        new_settings = SheetsDBConfig.model_validate_json(config.model_dump_json())
        logger.debug("Refreshing global state of config.")

    SETTINGS = new_settings
    return SETTINGS
