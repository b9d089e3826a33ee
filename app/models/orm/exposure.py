from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from .base import Base


class ExposureORM(Base):
    __tablename__ = "exposures"

    exposure_id = Column(String, primary_key=True, index=True)

    experiment_id = Column(
        String, ForeignKey("experiments.experiment_id"), nullable=False, index=True
    )
    test_set_id = Column(String, nullable=False)
    visitor_id = Column(String, nullable=True, index=True)

    # Encoded the same way as the client-held token
    combination = Column(String, nullable=False)
    first_exposure = Column(Boolean, default=False, nullable=False)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    experiment = relationship("ExperimentORM", back_populates="exposures")
