from rest_framework import permissions


class IsTeacher(permissions.BasePermission):
    """
    Role gate for authoring, grading and class analytics endpoints.
    Ownership of the individual test is checked by the services.
    """
    message = 'Teacher access required.'

    def has_permission(self, request, view):
        return bool(request.user and getattr(request.user, 'is_teacher', False))


class IsStudent(permissions.BasePermission):
    message = 'Student access required.'

    def has_permission(self, request, view):
        return bool(request.user and getattr(request.user, 'is_student', False))
