"""
Directory Service
Resolves users, departments and approvers
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from src.models.department import Department
from src.models.request import StepRole
from src.models.user import User, UserRole
from src.schemas.request import ActingUser
from src.services.approval_engine import STEP_ACTORS


def to_acting_user(user: User) -> ActingUser:
    """Identity the approval engine works with"""
    return ActingUser(
        id=user.id,
        display_name=user.display_name,
        role=user.role.value if isinstance(user.role, UserRole) else str(user.role),
        department_id=user.department_id,
    )


class DirectoryService:
    """Lookups over users and departments"""

    def get_user(self, db: Session, user_id: int) -> Optional[ActingUser]:
        user = db.query(User).filter(User.id == user_id).first()
        return to_acting_user(user) if user else None

    def get_department_name(self, db: Session, department_id: Optional[str]) -> Optional[str]:
        """Department name, falling back to the id for unknown departments"""
        if not department_id:
            return None
        department = db.query(Department).filter(Department.id == department_id).first()
        return department.name if department else department_id

    def department_names(self, db: Session) -> dict:
        """Map of department id to name"""
        return {dept.id: dept.name for dept in db.query(Department).all()}

    def find_approvers(
        self,
        db: Session,
        step_role: StepRole,
        department_id: Optional[str] = None
    ) -> List[User]:
        """
        Active users who can act on a step

        Args:
            db: Database session
            step_role: Role of the pending step
            department_id: Request department, narrows manager steps

        Returns:
            List[User]: Users to notify
        """
        roles = STEP_ACTORS.get(step_role, ())
        if not roles:
            return []

        query = db.query(User).filter(
            User.role.in_(roles),
            User.is_active == True
        )
        if step_role == StepRole.MANAGER:
            if not department_id:
                return []
            query = query.filter(User.department_id == department_id)

        return query.all()


# Create singleton instance
directory_service = DirectoryService()
