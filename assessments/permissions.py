from rest_framework import permissions

class IsGraderOrAdmin(permissions.BasePermission):
    """
    Allows access to Teachers and Admins.
    Strictly blocks Students.
    """
    def has_permission(self, request, view):
        # 1. User must be logged in
        if not request.user or not request.user.is_authenticated:
            return False

        # 2. Check Role
        # Allow if Superuser/Staff OR Role is in allowed list
        return getattr(request.user, 'can_grade', False)

class IsStudent(permissions.BasePermission):
    """Exam taking is for student accounts only."""
    message = "Only students can take exams."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return getattr(request.user, 'is_student', False)
