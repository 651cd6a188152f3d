from datetime import datetime
from pydantic import BaseModel
from typing import Optional, List


# --- Admin Schemas ---
class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class LoginResponse(BaseModel):
    token: str
    userLevel: int
    username: str
    passwordExpired: bool
    daysSinceChange: int

class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    userLevel: Optional[int] = None

class PasswordResetRequest(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None

class CurrentUserResponse(BaseModel):
    userId: int
    username: str
    userLevel: int

class PasswordExpiryResponse(BaseModel):
    expired: bool
    daysSinceChange: int


# --- Department Schemas ---
class DepartmentPayload(BaseModel):
    name: Optional[str] = None

class DepartmentCreated(BaseModel):
    success: bool = True
    urlSlug: str

class DepartmentInfo(BaseModel):
    id: int
    name: str
    slug: str
    isActive: bool


# --- Question & Answer Schemas ---
class QuestionPayload(BaseModel):
    questionText: Optional[str] = None

class ActiveQuestion(BaseModel):
    QuestionID: int
    QuestionText: str

class AnswerPayload(BaseModel):
    emoji: Optional[str] = None
    emojiId: Optional[int] = None

class AnswerSubmitted(BaseModel):
    success: bool = True
    departmentId: int


# --- Report Schemas ---
class ScaleBucket(BaseModel):
    EmojiID: int
    AnswerEmoji: str
    Label: str
    Count: int
    Percentage: float

class DepartmentReport(BaseModel):
    department: str
    departmentId: int
    question: str
    questionId: int
    totalResponses: int
    responses: List[ScaleBucket]

class HistoryEmoji(BaseModel):
    emoji: str
    label: str
    count: int
    percentage: float
    id: int

class HistoryReport(BaseModel):
    department: str
    question: str
    questionId: int
    departmentId: int
    createdAt: Optional[datetime] = None
    totalResponses: int
    emojiData: List[HistoryEmoji]

class EmojiStat(BaseModel):
    EmojiID: int
    AnswerEmoji: str
    Label: str
    TotalCount: int
    Percentage: float

