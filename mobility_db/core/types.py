"""Column types shared by the migrations and the ORM models.

The research warehouse runs on MySQL; SQLite and PostgreSQL are used for
local work and CI. Each factory returns a generic SQLAlchemy type with the
exact MySQL type attached as a dialect variant.
"""

import sqlalchemy as sa
from sqlalchemy.dialects import mysql

_MYSQL_DIALECTS = ("mysql", "mariadb")


def unsigned_integer() -> sa.types.TypeEngine[int]:
    """INTEGER, UNSIGNED on MySQL."""
    return sa.Integer().with_variant(mysql.INTEGER(unsigned=True), *_MYSQL_DIALECTS)


def tiny_integer() -> sa.types.TypeEngine[int]:
    """SMALLINT, TINYINT on MySQL."""
    return sa.SmallInteger().with_variant(mysql.TINYINT(), *_MYSQL_DIALECTS)


def coordinate() -> sa.types.TypeEngine[float]:
    """Double precision latitude/longitude."""
    return sa.Double()


def timestamp() -> sa.types.TypeEngine:
    return sa.DateTime(timezone=True)
