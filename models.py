# models.py - newest survey schema. Older databases may lack the optional
# columns; the query layer checks schema_probe.SchemaFeatures before using them.
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, UnicodeText, Unicode
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime

Base = declarative_base()


class User(Base):
    __tablename__ = "Users"

    UserID = Column(Integer, primary_key=True, autoincrement=True)
    Username = Column(Unicode(100), nullable=False, unique=True)
    PasswordHash = Column(String(255), nullable=False)
    UserLevel = Column(Integer, nullable=False, default=2)  # 1 = super-admin, 2 = admin
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime, nullable=True, default=datetime.now)
    PasswordChangedAt = Column(DateTime, nullable=True)
    LastLogin = Column(DateTime, nullable=True)


class Department(Base):
    __tablename__ = "Departments"

    DepartmentID = Column(Integer, primary_key=True, autoincrement=True)
    Name = Column(Unicode(128), nullable=False)
    Slug = Column(String(64), nullable=True, unique=True)
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime, nullable=True)
    UpdatedAt = Column(DateTime, nullable=True)

    questions = relationship("SurveyQuestion", back_populates="department")


class SurveyQuestion(Base):
    __tablename__ = "SurveyQuestions"

    QuestionID = Column(Integer, primary_key=True, autoincrement=True)
    DepartmentID = Column(Integer, ForeignKey("Departments.DepartmentID"), nullable=False)
    QuestionText = Column(UnicodeText, nullable=False)
    IsActive = Column(Boolean, nullable=False, default=True)
    CreatedAt = Column(DateTime, nullable=True)
    UpdatedAt = Column(DateTime, nullable=True)

    department = relationship("Department", back_populates="questions")
    answers = relationship("SurveyAnswer", back_populates="question")


class SurveyAnswer(Base):
    __tablename__ = "SurveyAnswers"

    AnswerID = Column(Integer, primary_key=True, autoincrement=True)
    QuestionID = Column(Integer, ForeignKey("SurveyQuestions.QuestionID"), nullable=False)
    DepartmentID = Column(Integer, nullable=True)  # denormalised for reporting
    AnswerEmoji = Column(Unicode(16), nullable=True)
    EmojiID = Column(Integer, nullable=True)
    AnsweredAt = Column(DateTime, nullable=True)
    CreatedAt = Column(DateTime, nullable=True)

    question = relationship("SurveyQuestion", back_populates="answers")
