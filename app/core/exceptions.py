"""
Error taxonomy shared by all modules.

Every error is an HTTPException so services can raise it directly and the
routes let it propagate, the same way the rest of the app raises HTTPException.
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class MissingDateComponent(ValidationError):
    def __init__(self, date_type: str, component: str):
        super().__init__(detail=f"{component.capitalize()} is required for {date_type} filter")
        self.date_type = date_type
        self.component = component


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class DuplicateInvitation(Conflict):
    def __init__(self):
        super().__init__(detail="A pending invitation already exists for this user in the specified group")


class AlreadyMember(Conflict):
    def __init__(self):
        super().__init__(detail="User is already an active member of this group")
