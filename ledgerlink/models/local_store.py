from sqlalchemy import Column, Integer, String, Text
from ledgerlink.database import Base
from ledgerlink.models.audit_mixin import TimestampMixin


class LocalSetting(Base, TimestampMixin):
    """One entry of the on-device key-value store."""
    __tablename__ = "local_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False, index=True)
    value = Column(Text, nullable=True)
