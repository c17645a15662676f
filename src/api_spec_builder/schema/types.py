"""Marker types for values whose OpenAPI format Python types cannot express.

Use them in annotations or as parameter types::

    @dataclass
    class Upload:
        size: Int32
        content: File
"""

from typing import NewType

Int32 = NewType("Int32", int)
Int64 = NewType("Int64", int)
Float32 = NewType("Float32", float)
Float64 = NewType("Float64", float)


class File:
    """Uploaded file content. Rendered as a binary string, or a 2.0 ``file`` parameter."""


class OASTag(str):
    """An ``oas`` annotation string carried in ``typing.Annotated`` metadata.

    ``Annotated[int, OASTag("minimum=1,maximum=10")]``
    """
