"""
Pydantic request and response models for authentication flows.

Route handlers validate incoming payloads with these models; the password
fields enforce the configured password policy.
"""
from typing import Annotated, List, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    model_validator,
)

from .password_validator import (
    PasswordRequirements,
    PasswordStrengthResult,
    UserContext,
    build_password_schema,
    evaluate_strength,
)

PolicyPassword = Annotated[str, AfterValidator(build_password_schema().parse)]


# ============================================
# Password Models
# ============================================

class SignUpRequest(BaseModel):
    """
    User registration request.

    Password must satisfy the default password policy.
    """
    email: EmailStr = Field(..., description="Valid email address")
    password: PolicyPassword = Field(..., description="Password meeting the password policy")
    full_name: str = Field(..., min_length=2, description="Full name")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "legal@contracts.example",
                "password": "Tr1cky-Gl@cier-Lamp",
                "full_name": "Dana Legal",
            }
        }
    )


class ChangePasswordRequest(BaseModel):
    """
    Password change request.

    Requires the current password; the new one must satisfy the policy
    and be typed twice.
    """
    current_password: str = Field(..., min_length=1, description="Current account password")
    new_password: PolicyPassword = Field(..., description="New password")
    confirm_password: str = Field(..., description="New password, repeated")

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class PasswordStrengthRequest(BaseModel):
    """Live password strength check, optionally with personal details."""
    password: str
    email: Optional[str] = None
    name: Optional[str] = None

    def user_context(self) -> Optional[UserContext]:
        if self.email is None and self.name is None:
            return None
        return UserContext(email=self.email, name=self.name)

    def evaluate(
        self, requirements: Optional[PasswordRequirements] = None
    ) -> "PasswordStrengthResponse":
        """Score the password against the policy and the supplied details."""
        result = evaluate_strength(self.password, requirements, self.user_context())
        return PasswordStrengthResponse.from_result(result)


class PasswordStrengthResponse(BaseModel):
    """Password strength score (0-4) with feedback."""
    score: int = Field(..., ge=0, le=4)
    is_strong: bool
    feedback: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PasswordStrengthResult) -> "PasswordStrengthResponse":
        return cls(
            score=result.score,
            is_strong=result.is_strong,
            feedback=list(result.feedback),
            suggestions=list(result.suggestions),
        )


# ============================================
# MFA Models
# ============================================

class MFASetupResponse(BaseModel):
    """MFA setup response with QR code."""
    secret: str
    provisioning_uri: str
    qr_code: str = Field(..., description="PNG data URI, or the provisioning URI if rendering failed")


class MFAVerifyRequest(BaseModel):
    """MFA verification request."""
    code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class MFAVerifyResponse(BaseModel):
    """
    MFA verification success response.

    On the verification that enables MFA, contains backup codes that should
    be stored securely. Each backup code can only be used once.
    """
    message: str = "MFA verification successful"
    mfa_enabled: bool = True
    backup_codes: List[str] = Field(default_factory=list, description="One-time backup codes (first verification only)")


class MFABackupCodeRequest(BaseModel):
    """Login with a one-time backup code."""
    backup_code: str = Field(..., min_length=1, description="One-time backup code (format: XXXX-XXXX)")
