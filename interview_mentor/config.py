from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List
from dotenv import load_dotenv


# Ensure .env is loaded eagerly
load_dotenv(dotenv_path=".env")


MENTOR_SYSTEM_INSTRUCTION = (
	"You are a professional Angular Mentor. Conduct a mock interview. "
	"Be encouraging, technical, and concise. No transcripts, focus on audio conversation."
)


class Settings(BaseSettings):
	# Server
	host: str = "0.0.0.0"
	port: int = 8000
	cors_allow_origins: List[str] = [
		"http://localhost:3000",
		"http://localhost:5173",
		"http://127.0.0.1:3000",
		"http://127.0.0.1:5173"
	]

	# Identity provider + document store (Firebase REST)
	firebase_api_key: str | None = None
	firebase_project_id: str | None = None
	identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
	firestore_base_url: str = "https://firestore.googleapis.com/v1"
	google_request_uri: str = "http://localhost"
	remote_timeout_seconds: float = 10.0

	# Local cache
	cache_dir: str | None = "data/cache"

	# LLM Provider Selection
	llm_provider: str = "gemini"  # options: groq, gemini

	# Groq
	groq_api_key: str | None = None
	groq_model: str = "openai/gpt-oss-120b"
	answer_temperature: float = 0.4
	groq_max_tokens: int = 1500

	# Google Gemini
	gemini_api_key: str | None = None
	gemini_model: str = "gemini-2.5-flash"
	gemini_use_search: bool = True

	# Speech synthesis
	tts_model: str = "gemini-2.5-flash-preview-tts"
	tts_voice: str = "Kore"
	tts_sample_rate: int = 24000

	# Live mentor
	live_model: str = "gemini-2.5-flash-native-audio-preview-12-2025"
	live_voice: str = "Zephyr"
	live_system_instruction: str = MENTOR_SYSTEM_INSTRUCTION
	live_input_sample_rate: int = 16000
	live_output_sample_rate: int = 24000
	live_frame_size: int = 4096
	live_connect_timeout_seconds: float | None = 15.0
	microphone_timeout_seconds: float = 30.0

	# Logging
	log_level: str = "INFO"
	analytics_path: str | None = None  # e.g., logs/mentor.jsonl

	@field_validator("answer_temperature")
	@classmethod
	def clamp_temperature(cls, v: float) -> float:
		return max(0.0, min(1.0, v))

	@field_validator("cors_allow_origins", mode="before")
	@classmethod
	def parse_cors_origins(cls, v):
		# Allow environment variable override
		if isinstance(v, str):
			return [origin.strip() for origin in v.split(",")]
		return v

	@property
	def remote_enabled(self) -> bool:
		return bool(self.firebase_api_key and self.firebase_project_id)

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"


settings = Settings()
