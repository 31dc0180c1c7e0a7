import re
from typing import Dict, List
from structlog import get_logger
from property_admin.exceptions import ApiError, ValidationFailed
from property_admin.schemas.views import LoginResult, Outcome
from property_admin.services.session import SessionGate

logger = get_logger()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6

def validate_credentials(email: str, password: str) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    if not email:
        errors["email"] = ["Email is required."]
    elif not EMAIL_RE.match(email):
        errors["email"] = ["Email is not valid."]
    if not password:
        errors["password"] = ["Password is required."]
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = [f"Password must be at least {MIN_PASSWORD_LENGTH} characters."]
    return errors

class LoginViewModel:
    def __init__(self, gate: SessionGate):
        self.gate = gate
        self.loading = False

    async def submit(self, email: str, password: str) -> LoginResult:
        if self.loading:
            return LoginResult(outcome=Outcome.REJECTED, message="Login already in progress.")
        errors = validate_credentials(email, password)
        if errors:
            return LoginResult(outcome=Outcome.INVALID, errors=errors)
        self.loading = True
        try:
            session = await self.gate.login(email, password)
        except ValidationFailed as e:
            return LoginResult(outcome=Outcome.INVALID, errors=e.errors, message=e.message)
        except ApiError as e:
            logger.info("Login failed", email=email, status_code=e.status_code)
            return LoginResult(
                outcome=Outcome.FAILED,
                status_code=e.status_code,
                message=e.message or "Login failed. Please try again.",
            )
        finally:
            self.loading = False
        return LoginResult(outcome=Outcome.SUCCESS, redirect_to="/", user=session.user)
