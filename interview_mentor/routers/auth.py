from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from interview_mentor.errors import AccountExistsError, AuthError, EmailNotVerifiedError, InvalidCredentialsError
from interview_mentor.models import AuthSession
from interview_mentor.schemas import GoogleLoginIn, LoginIn, LoginOut, ProfileIn, SignUpIn, SignUpOut, UserOut
from interview_mentor.services.container import Services
from interview_mentor.utils.security import get_services, require_session


router = APIRouter()


def _auth_http_error(exc: AuthError) -> HTTPException:
	if isinstance(exc, EmailNotVerifiedError):
		return HTTPException(
			status_code=status.HTTP_403_FORBIDDEN,
			detail={"code": exc.code, "message": exc.message, "email": exc.email},
		)
	if isinstance(exc, InvalidCredentialsError):
		return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": exc.code, "message": exc.message})
	if isinstance(exc, AccountExistsError):
		return HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"code": exc.code, "message": exc.message})
	return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": exc.code, "message": exc.message or "Authentication failed"})


@router.post("/auth/signup", response_model=SignUpOut, status_code=status.HTTP_201_CREATED)
async def sign_up(payload: SignUpIn, services: Services = Depends(get_services)):
	try:
		user = await services.auth.sign_up(payload.email.strip(), payload.password, payload.display_name.strip())
	except AuthError as exc:
		raise _auth_http_error(exc)
	return SignUpOut(user=UserOut.from_profile(user))


@router.post("/auth/login", response_model=LoginOut)
async def login(payload: LoginIn, services: Services = Depends(get_services)):
	try:
		session = await services.auth.sign_in(payload.email.strip(), payload.password)
	except AuthError as exc:
		raise _auth_http_error(exc)
	return LoginOut(token=session.token, user=UserOut.from_profile(session.user))


@router.post("/auth/google", response_model=LoginOut)
async def login_with_google(payload: GoogleLoginIn, services: Services = Depends(get_services)):
	try:
		session = await services.auth.sign_in_with_google(payload.id_token)
	except AuthError as exc:
		raise _auth_http_error(exc)
	return LoginOut(token=session.token, user=UserOut.from_profile(session.user))


@router.post("/auth/resend-verification")
async def resend_verification(payload: LoginIn, services: Services = Depends(get_services)):
	try:
		await services.auth.resend_verification(payload.email.strip(), payload.password)
	except AuthError as exc:
		raise _auth_http_error(exc)
	return {"status": "verification-sent"}


@router.post("/auth/logout")
async def logout(session: AuthSession = Depends(require_session), services: Services = Depends(get_services)):
	services.auth.sign_out(session.token)
	return {"status": "ok"}


@router.get("/auth/me", response_model=UserOut)
async def me(session: AuthSession = Depends(require_session)):
	return UserOut.from_profile(session.user)


@router.patch("/auth/profile", response_model=UserOut)
async def update_profile(payload: ProfileIn, session: AuthSession = Depends(require_session), services: Services = Depends(get_services)):
	try:
		user = await services.auth.update_profile(session.token, payload.display_name.strip())
	except AuthError as exc:
		raise _auth_http_error(exc)
	return UserOut.from_profile(user)
