from sqlalchemy import Column, DateTime, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Single object store holding arbitrary JSON values keyed by string
STORE_NAME = "app_data"


class AppData(Base):
    __tablename__ = STORE_NAME

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)  # JSON text
    updated_at = Column(
        DateTime,
        default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )

    def __repr__(self):
        return f"<AppData {self.key} ({len(self.value or '')} bytes)>"
