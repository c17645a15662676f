"""Builder configuration and defaults."""

import os

from pydantic import BaseModel, ConfigDict

from api_spec_builder.schema.naming import (
    GenericNamingConfig,
    SchemaNameFunc,
    SchemaNamer,
    SchemaNaming,
    validate_name_template,
)

DEFAULT_OAS_VERSION = "3.0.3"


def default_version() -> str:
    """Target version used when none is given; overridable via ``API_SPEC_VERSION``."""
    return os.getenv("API_SPEC_VERSION", DEFAULT_OAS_VERSION)


class BuilderConfig(BaseModel):
    """Schema naming settings for a Builder.

    The defaults name schemas ``<module>.<Type>`` and replace generic
    brackets with underscores.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    naming: SchemaNaming = SchemaNaming.DEFAULT
    generic_naming: GenericNamingConfig = GenericNamingConfig()
    name_template: str | None = None  # str.format over SchemaNameContext fields
    name_func: SchemaNameFunc | None = None

    def template_error(self) -> str | None:
        """Return a message if ``name_template`` is unusable, else None."""
        if self.name_template is None:
            return None
        try:
            validate_name_template(self.name_template)
        except ValueError as e:
            return str(e)
        return None

    def make_namer(self) -> SchemaNamer:
        template = self.name_template if self.template_error() is None else None
        return SchemaNamer(
            strategy=self.naming,
            generic_config=self.generic_naming,
            template=template,
            fn=self.name_func,
        )
