from fastapi import APIRouter, HTTPException, Depends, Query, status
from fastapi.responses import Response
from typing import Optional

from interview_mentor.audio.pcm import decode_frame, pcm16_to_wav
from interview_mentor.catalog import catalog_categories
from interview_mentor.errors import GenerationError
from interview_mentor.models import AuthSession
from interview_mentor.schemas import AnswerOut, QuestionIn, QuestionList, QuestionOut, SpeechOut
from interview_mentor.services.container import Services
from interview_mentor.utils.audit import auditor
from interview_mentor.utils.security import get_services, require_session


router = APIRouter()

ALL_CATEGORIES = "All"


@router.get("/questions", response_model=QuestionList)
async def list_questions(
	category: Optional[str] = Query(default=None),
	session: AuthSession = Depends(require_session),
	services: Services = Depends(get_services),
):
	result = await services.reconciler.sync(session.user.uid)
	items = result.questions
	categories = [ALL_CATEGORIES] + catalog_categories(items)
	if category and category != ALL_CATEGORIES:
		items = [q for q in items if q.category == category]
	return QuestionList(
		status=result.status.value,
		detail=result.detail,
		categories=categories,
		items=[QuestionOut.from_question(q) for q in items],
	)


@router.post("/questions", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
async def add_question(payload: QuestionIn, session: AuthSession = Depends(require_session), services: Services = Depends(get_services)):
	if not payload.text.strip():
		raise HTTPException(status_code=400, detail="Empty question")
	question = await services.reconciler.add_question(session.user.uid, payload.text.strip())
	await auditor.record("question_added", session.user.uid, question_id=question.id, text=question.text)
	return QuestionOut.from_question(question)


@router.patch("/questions/{question_id}", response_model=QuestionOut)
async def edit_question(
	question_id: str,
	payload: QuestionIn,
	session: AuthSession = Depends(require_session),
	services: Services = Depends(get_services),
):
	if not payload.text.strip():
		raise HTTPException(status_code=400, detail="Empty question")
	question = await services.reconciler.update_question(session.user.uid, question_id, payload.text.strip())
	if question is None:
		raise HTTPException(status_code=404, detail="Custom question not found")
	return QuestionOut.from_question(question)


@router.delete("/questions/{question_id}")
async def delete_question(
	question_id: str,
	confirm: bool = Query(default=False, description="Must be true; deletion cannot be undone"),
	session: AuthSession = Depends(require_session),
	services: Services = Depends(get_services),
):
	if not confirm:
		raise HTTPException(status_code=400, detail="Deletion is permanent. Repeat the request with confirm=true.")
	deleted = await services.reconciler.delete_question(session.user.uid, question_id, confirmed=True)
	if not deleted:
		raise HTTPException(status_code=404, detail="Custom question not found")
	await auditor.record("question_deleted", session.user.uid, question_id=question_id)
	return {"status": "ok", "deleted": True}


@router.post("/questions/{question_id}/answer", response_model=AnswerOut)
async def answer_question(question_id: str, session: AuthSession = Depends(require_session), services: Services = Depends(get_services)):
	question = services.reconciler.get_question(session.user.uid, question_id)
	if question is None:
		raise HTTPException(status_code=404, detail="Question not found")
	outcome = await services.answers.answer_for(session.user.uid, question)
	if not outcome.cached:
		await auditor.record(
			"answer_generated",
			session.user.uid,
			question_id=question_id,
			question=question.text,
			failed=outcome.failed,
		)
	return AnswerOut(question_id=question_id, answer=outcome.answer, cached=outcome.cached, failed=outcome.failed)


@router.post("/questions/{question_id}/speech")
async def speak_answer(
	question_id: str,
	format: str = Query(default="pcm", pattern="^(pcm|wav)$"),
	session: AuthSession = Depends(require_session),
	services: Services = Depends(get_services),
):
	question = services.reconciler.get_question(session.user.uid, question_id)
	if question is None:
		raise HTTPException(status_code=404, detail="Question not found")
	if not question.cached_answer:
		raise HTTPException(status_code=409, detail="Generate the answer before requesting audio")
	try:
		audio = await services.speech.generate_tts(question.cached_answer)
	except GenerationError as exc:
		raise HTTPException(status_code=502, detail=f"Audio generation failed: {exc.message}")
	if format == "wav":
		return Response(content=pcm16_to_wav(decode_frame(audio), services.speech.sample_rate), media_type="audio/wav")
	return SpeechOut(question_id=question_id, audio=audio, sample_rate=services.speech.sample_rate)
