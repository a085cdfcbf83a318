"""Role dashboards, menus and the permission matrix served to clients."""
from typing import Dict, List, Optional

from ..models.user import ADMIN_ROLES

LOGIN_PATH = "/auth/login"

GUEST_BANNER = (
    "You are in Guest mode with limited access. "
    "Data is read-only and changes will not be saved."
)


def guest_limitations(hours: int) -> List[str]:
    return [
        "Read-only access",
        "Limited to public information",
        f"Session expires in {hours} hours",
    ]


ROLE_DASHBOARDS: Dict[str, str] = {
    "student": "/dashboard/student",
    "parent": "/dashboard/parent",
    "teacher": "/dashboard/teacher",
    "school_admin": "/dashboard/school",
    "principal": "/dashboard/school",
    "staff": "/dashboard/school",
    "guest": "/dashboard/guest",
    **{role: "/dashboard/admin" for role in ADMIN_ROLES},
}

RESOURCES = (
    "students", "teachers", "classes", "subjects", "attendance", "grades",
    "fees", "timetables", "announcements", "events", "messages", "reports",
    "users", "schools",
)

ACTIONS = ("view", "create", "edit", "delete", "manage")

ALL = set(ACTIONS)
VIEW = {"view"}
AUTHOR = {"view", "create", "edit"}

PERMISSIONS: Dict[str, Dict[str, set]] = {
    "super_admin": {resource: ALL for resource in RESOURCES},
    "school_admin": {
        **{resource: ALL for resource in RESOURCES if resource != "schools"},
        "schools": {"view", "edit"},
    },
    "teacher": {
        "students": VIEW,
        "classes": VIEW,
        "subjects": VIEW,
        "timetables": VIEW,
        "attendance": AUTHOR,
        "grades": AUTHOR,
        "announcements": AUTHOR,
        "events": AUTHOR,
        "messages": {"view", "create"},
        "reports": VIEW,
    },
    "staff": {
        "students": VIEW,
        "classes": VIEW,
        "timetables": VIEW,
        "fees": AUTHOR,
        "announcements": VIEW,
        "events": VIEW,
        "messages": {"view", "create"},
    },
    "student": {
        "grades": VIEW,
        "attendance": VIEW,
        "timetables": VIEW,
        "fees": VIEW,
        "announcements": VIEW,
        "events": VIEW,
        "messages": {"view", "create"},
    },
    "parent": {
        "students": VIEW,
        "grades": VIEW,
        "attendance": VIEW,
        "fees": VIEW,
        "announcements": VIEW,
        "events": VIEW,
        "messages": {"view", "create"},
        "reports": VIEW,
    },
    "guest": {
        "announcements": VIEW,
        "events": VIEW,
    },
}
PERMISSIONS["principal"] = PERMISSIONS["school_admin"]
for _role in ADMIN_ROLES - {"super_admin"}:
    PERMISSIONS[_role] = {resource: VIEW for resource in RESOURCES} | {"schools": AUTHOR}

MENUS: Dict[str, List[Dict[str, str]]] = {
    "student": [
        {"text": "Dashboard", "path": "/dashboard/student"},
        {"text": "Grades", "path": "/grades"},
        {"text": "Attendance", "path": "/attendance"},
        {"text": "Timetable", "path": "/timetables"},
        {"text": "Fees", "path": "/fees"},
        {"text": "Messages", "path": "/messages"},
    ],
    "parent": [
        {"text": "Dashboard", "path": "/dashboard/parent"},
        {"text": "My Children", "path": "/students"},
        {"text": "Grades", "path": "/grades"},
        {"text": "Attendance", "path": "/attendance"},
        {"text": "Fees", "path": "/fees"},
        {"text": "Messages", "path": "/messages"},
    ],
    "teacher": [
        {"text": "Dashboard", "path": "/dashboard/teacher"},
        {"text": "Students", "path": "/students"},
        {"text": "Classes", "path": "/classes"},
        {"text": "Attendance", "path": "/attendance"},
        {"text": "Grades", "path": "/grades"},
        {"text": "Timetable", "path": "/timetables"},
        {"text": "Messages", "path": "/messages"},
    ],
    "school_admin": [
        {"text": "Dashboard", "path": "/dashboard/school"},
        {"text": "Students", "path": "/students"},
        {"text": "Teachers", "path": "/teachers"},
        {"text": "Classes", "path": "/classes"},
        {"text": "Subjects", "path": "/subjects"},
        {"text": "Attendance", "path": "/attendance"},
        {"text": "Grades", "path": "/grades"},
        {"text": "Fees", "path": "/fees"},
        {"text": "Announcements", "path": "/announcements"},
        {"text": "Events", "path": "/events"},
        {"text": "Reports", "path": "/reports"},
        {"text": "Users", "path": "/users"},
    ],
    "staff": [
        {"text": "Dashboard", "path": "/dashboard/school"},
        {"text": "Students", "path": "/students"},
        {"text": "Fees", "path": "/fees"},
        {"text": "Messages", "path": "/messages"},
    ],
    "admin": [
        {"text": "Dashboard", "path": "/dashboard/admin"},
        {"text": "Schools", "path": "/schools"},
        {"text": "Users", "path": "/users"},
        {"text": "Reports", "path": "/reports"},
    ],
    "guest": [
        {"text": "Dashboard", "path": "/dashboard/guest"},
        {"text": "Announcements", "path": "/announcements"},
        {"text": "Events", "path": "/events"},
    ],
}
MENUS["principal"] = MENUS["school_admin"]

COMMON_PATHS = {"/profile", "/settings", "/notifications"}


def dashboard_for(role: str) -> str:
    return ROLE_DASHBOARDS.get(role, LOGIN_PATH)


def menu_for(role: str) -> List[Dict[str, str]]:
    if role in ADMIN_ROLES:
        return MENUS["admin"]
    return MENUS.get(role, [])


def permissions_for(role: str) -> Dict[str, Dict[str, bool]]:
    granted = PERMISSIONS.get(role, {})
    matrix = {}
    for resource in RESOURCES:
        actions = granted.get(resource, set())
        manage = "manage" in actions
        matrix[resource] = {
            f"can_{action}": manage or action in actions
            for action in ACTIONS
        }
    return matrix


def can(role: str, resource: str, action: str = "view") -> bool:
    actions = PERMISSIONS.get(role, {}).get(resource, set())
    return "manage" in actions or action in actions


def resolve_path(role: str, path: str) -> Optional[str]:
    """Return None when the role may open ``path``, else where to send it."""
    path = "/" + path.strip("/")
    if path.startswith("/dashboard"):
        return None if path == dashboard_for(role) else dashboard_for(role)
    if path in COMMON_PATHS:
        return None if role != "guest" or path == "/profile" else dashboard_for(role)
    resource = path.split("/")[1]
    if resource in RESOURCES and can(role, resource, "view"):
        return None
    return dashboard_for(role)
