"""Staff authentication

Tokens are issued by the venue's identity service; this module only
verifies them and enforces role levels on the reservation endpoints.
"""

from datetime import datetime, timedelta
from typing import Optional
import enum

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from dinebook.config import settings

router = APIRouter()

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class StaffRole(str, enum.Enum):
    """Staff roles for RBAC"""
    ADMIN = "admin"
    HOST = "host"
    VIEWER = "viewer"


ROLE_HIERARCHY = {
    StaffRole.VIEWER: 1,
    StaffRole.HOST: 2,
    StaffRole.ADMIN: 3,
}


class StaffPrincipal(BaseModel):
    """Authenticated staff member taken from the token claims"""
    id: str
    name: Optional[str] = None
    role: StaffRole = StaffRole.VIEWER

    def has_permission(self, required_role: StaffRole) -> bool:
        """Check if staff member has at least the required role level"""
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(required_role, 0)

    @property
    def actor(self) -> str:
        return self.name or self.id


def create_access_token(subject: str, role: StaffRole, name: Optional[str] = None, minutes: int = 15) -> str:
    """Create a JWT access token (used by tooling and tests)"""
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    payload = {
        "sub": subject,
        "name": name,
        "role": role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def principal_from_token(token: str) -> Optional[StaffPrincipal]:
    """Decode an access token, returning None when it is not valid"""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        subject: str = payload.get("sub")
        token_type: str = payload.get("type")
        if subject is None or token_type != "access":
            return None
        role = StaffRole(payload.get("role", StaffRole.VIEWER.value))
    except (JWTError, ValueError):
        return None

    return StaffPrincipal(id=subject, name=payload.get("name"), role=role)


async def get_current_staff(token: str = Depends(oauth2_scheme)) -> StaffPrincipal:
    """Get current authenticated staff member from token"""
    principal = principal_from_token(token)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_role(required_role: StaffRole):
    """Dependency factory for role-based access control"""
    async def role_checker(current_staff: StaffPrincipal = Depends(get_current_staff)) -> StaffPrincipal:
        if not current_staff.has_permission(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_staff
    return role_checker


@router.get("/me", response_model=StaffPrincipal)
async def get_current_staff_info(
    current_staff: StaffPrincipal = Depends(get_current_staff),
):
    """Get current staff member information"""
    return current_staff
