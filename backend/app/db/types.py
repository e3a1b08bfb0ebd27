"""
Column type helpers shared by the models.
"""

from sqlalchemy import Enum


def db_enum(enum_cls, length: int = 32) -> Enum:
    """
    Store an enum by its value (e.g. "in_progress") as a plain string column.

    The hosted product writes lowercase values, so names must not be used.
    """
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )
