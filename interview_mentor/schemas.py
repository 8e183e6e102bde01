from pydantic import BaseModel, Field
from typing import List, Optional

from interview_mentor.models import Question, UserProfile


class SignUpIn(BaseModel):
	email: str = Field(..., min_length=3)
	password: str = Field(..., min_length=6)
	display_name: str = Field(default="", description="Shown in the dashboard header")


class LoginIn(BaseModel):
	email: str = Field(..., min_length=3)
	password: str = Field(..., min_length=1)


class GoogleLoginIn(BaseModel):
	id_token: str = Field(..., min_length=1, description="Google ID token from the sign-in popup")


class ProfileIn(BaseModel):
	display_name: str = Field(..., min_length=1)


class UserOut(BaseModel):
	uid: str
	email: Optional[str] = None
	display_name: Optional[str] = None
	email_verified: bool = False

	@classmethod
	def from_profile(cls, user: UserProfile) -> "UserOut":
		return cls(uid=user.uid, email=user.email, display_name=user.display_name, email_verified=user.email_verified)


class SignUpOut(BaseModel):
	status: str = "verification-sent"
	user: UserOut


class LoginOut(BaseModel):
	token: str
	user: UserOut


class QuestionIn(BaseModel):
	text: str = Field(..., min_length=1)


class QuestionOut(BaseModel):
	id: str
	text: str
	category: Optional[str] = None
	cached_answer: Optional[str] = None
	is_custom: bool = False

	@classmethod
	def from_question(cls, q: Question) -> "QuestionOut":
		return cls(id=q.id, text=q.text, category=q.category, cached_answer=q.cached_answer, is_custom=q.is_custom)


class QuestionList(BaseModel):
	status: str
	detail: Optional[str] = None
	categories: List[str]
	items: List[QuestionOut]


class AnswerOut(BaseModel):
	question_id: str
	answer: str
	cached: bool
	failed: bool = False


class SpeechOut(BaseModel):
	question_id: str
	audio: str = Field(..., description="Base64 mono PCM16")
	sample_rate: int
	encoding: str = "pcm_s16le"
