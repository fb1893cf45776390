from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


# ---------------------------------------------------------
# Uniform success envelope: {"success": true, "message": ..., "data": ...}
# ---------------------------------------------------------
class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class CountRead(BaseModel):
    count: int
