from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from app.core.database import Base


class Class(Base):
    """Model for classes/courses (a teacher's classroom)."""
    __tablename__ = "classes"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    # Relationships
    teacher = relationship("User", foreign_keys=[teacher_id])
    enrollments = relationship("StudentEnrollment", back_populates="class_")
    sessions = relationship("ClassSession", back_populates="class_")
    
    __table_args__ = (
        Index('idx_class_teacher_created', 'teacher_id', 'created_at'),
    )


class StudentEnrollment(Base):
    """Model for student enrollment in classes."""
    __tablename__ = "student_enrollments"
    
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    
    # Enrollment details
    enrollment_date = Column(DateTime(timezone=True), server_default=func.now())
    withdrawal_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    class_ = relationship("Class", back_populates="enrollments")
    
    __table_args__ = (
        Index('idx_enrollment_class_active', 'class_id', 'is_active'),
        Index('idx_enrollment_unique_student_class', 'student_id', 'class_id', unique=True),
    )


class ClassSession(Base):
    """One scheduled meeting (class day) of a class."""
    __tablename__ = "class_sessions"
    
    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False)
    session_date = Column(Date, nullable=False)
    name = Column(String(255), nullable=True)
    
    # Sessions marked as non-instructional days carry no attendance
    is_class_day = Column(Boolean, default=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    class_ = relationship("Class", back_populates="sessions")
    attendance_records = relationship("AttendanceRecord", back_populates="class_session", cascade="all, delete-orphan")
    
    __table_args__ = (
        Index('idx_class_session_class_date', 'class_id', 'session_date'),
    )
