"""SQLAlchemy database models for workflows and rules."""

from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Text, JSON, Integer
from .database import Base


class WorkflowModel(Base):
    """Database model for workflow graphs."""
    __tablename__ = "workflows"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    flow = Column(JSON, nullable=False)  # nodes, transitions and entry_node_id
    enabled = Column(Boolean, nullable=False, default=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RuleModel(Base):
    """Database model for automation rules (manual and derived)."""
    __tablename__ = "rules"

    id = Column(String, primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # evaluation order
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # trigger, automation, sla
    enabled = Column(Boolean, nullable=False, default=True)
    conditions = Column(JSON, nullable=False)
    actions = Column(JSON, nullable=False)
