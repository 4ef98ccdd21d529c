from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Foreign keys
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    class_session_id = Column(Integer, ForeignKey("class_sessions.id"), nullable=False)
    
    # Attendance details
    status = Column(SQLEnum(AttendanceStatus), default=AttendanceStatus.ABSENT)
    check_in_time = Column(DateTime(timezone=True), nullable=True)
    
    # State management
    is_manual_override = Column(Boolean, default=False)
    notes = Column(String(500), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    # Relationships
    student = relationship("User", back_populates="attendance_records")
    class_session = relationship("ClassSession", back_populates="attendance_records")
    
    __table_args__ = (
        UniqueConstraint('student_id', 'class_session_id', name='uq_attendance_student_session'),
    )
