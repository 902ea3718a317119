from __future__ import annotations
from sqlalchemy.orm import declarative_base

# Single metadata shared by every model and by Alembic autogenerate
Base = declarative_base()
