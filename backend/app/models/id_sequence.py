from sqlalchemy import Column, String, Integer

from app.core.database import Base


class IdSequence(Base):
    """Last number handed out for each human readable id prefix (UR, SR, TC, ...)"""
    __tablename__ = "id_sequences"

    prefix = Column(String(20), primary_key=True)
    last_value = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<IdSequence {self.prefix}={self.last_value}>"
